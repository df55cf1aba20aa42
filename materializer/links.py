"""
Materialización de relaciones N:M desde campos array.

Trabaja sobre los registros ORIGINALES (antes de transformar), porque los
arrays se eliminan de la fila destino. Para cada campo declarado en links:

1. Resolver el id propio del registro (debe estar registrado: si falta,
   el upsert de ese registro no ocurrió y se omite con advertencia)
2. Resolver cada elemento: colección dueña explícita si el link la declara;
   si no, búsqueda global (resolve_any) con advertencia
3. Armar la fila de link (id propio, id foráneo, atributos extra)
4. Insertar en lote; los conflictos de unicidad no son fatales

Los elementos sin resolver se omiten (referencias borradas o inválidas en
el origen, no un error de la migración).
"""

import config
from bson import ObjectId
from .errors import LinkConflict, ResolutionWarning
from .transform import is_sequence


def element_identifier(element, element_key=None):
    """
    Obtiene el identificador de origen de un elemento de array.

    Soporta strings/ints/ObjectId, {'$oid': ...} (Extended JSON) y objetos
    embebidos cuyo id está en element_key.

    Returns:
        str|None
    """
    if element is None:
        return None
    if isinstance(element, dict):
        if element_key and element_key in element:
            return element_identifier(element[element_key])
        if "$oid" in element:
            return str(element["$oid"])
        return None
    if isinstance(element, (str, int, ObjectId)) and not isinstance(element, bool):
        return str(element)
    return None


def _resolve_element(registry, spec, identifier):
    """Retorna (target_id, motivo_si_falla)."""
    if spec.collection:
        target_id = registry.resolve(spec.collection, identifier)
        if target_id is None:
            return None, f"sin mapeo en '{spec.collection}'"
        return target_id, None

    found = registry.matches(identifier)
    if not found:
        return None, "sin mapeo en ninguna colección"
    if len(found) > 1:
        owners = ", ".join(collection for collection, _ in found)
        return None, f"ambiguo, existe en varias colecciones ({owners})"
    return found[0][1], None


def materialize_links(store, collection_name, cfg, records, registry, result,
                      batch_size=None, id_column=None):
    """
    Escribe las filas de link de todos los campos declarados en cfg.links.

    Args:
        store: BaseStore dentro de la transacción de la colección
        collection_name: Colección dueña de los arrays
        cfg: CollectionConfig
        records: Registros de origen sin transformar
        registry: StagedRegistry (incluye los ids recién asignados)
        result: CollectionResult

    Returns:
        int: Filas de link insertadas
    """
    batch_size = batch_size or config.BATCH_SIZE
    id_column = id_column or config.SOURCE_ID_COLUMN
    total = 0

    for field, spec in cfg.links.items():
        link_rows = []
        if not spec.collection:
            result.warn(ResolutionWarning(
                collection_name,
                f"links['{field}'] sin colección dueña; se usa búsqueda global (ambigua)",
            ))

        handled = set()
        for record in records:
            source_id = record.get(id_column)
            # Duplicados del origen: el upsert solo conserva el primero
            if str(source_id) in handled:
                continue
            handled.add(str(source_id))

            values = record.get(field)
            if values is None or (is_sequence(values) and not values):
                continue
            if not is_sequence(values):
                result.warn(ResolutionWarning(
                    collection_name, f"link '{field}' no es un array; se omite", source_id
                ))
                continue

            self_id = registry.resolve(collection_name, source_id)
            if self_id is None:
                result.warn(ResolutionWarning(
                    collection_name, f"link '{field}' omitido: el registro no tiene id destino", source_id
                ))
                continue

            for element in values:
                identifier = element_identifier(element, spec.element_key)
                if identifier is None:
                    result.warn(ResolutionWarning(
                        collection_name, f"link '{field}': elemento sin identificador {element!r}", source_id
                    ))
                    continue

                foreign_id, reason = _resolve_element(registry, spec, identifier)
                if foreign_id is None:
                    result.warn(ResolutionWarning(
                        collection_name, f"link '{field}' → '{identifier}' {reason}; se omite", source_id
                    ))
                    continue

                link_row = {spec.self_column: self_id, spec.foreign_column: foreign_id}
                if spec.extra is not None:
                    try:
                        extra = spec.extra(self_id, foreign_id, record) or {}
                        link_row = dict(extra, **link_row)
                    except Exception as e:
                        result.warn(ResolutionWarning(
                            collection_name,
                            f"extra de link '{field}' falló ({type(e).__name__}: {e}); fila sin atributos extra",
                            source_id,
                        ))
                link_rows.append(link_row)

        if not link_rows:
            continue

        inserted, conflicted = store.insert_links(spec.table, link_rows, batch_size)
        if conflicted:
            result.warn(LinkConflict(
                collection_name,
                f"{spec.table}: {len(link_rows) - inserted:,} filas duplicadas omitidas "
                f"(probable corrida previa parcial)",
            ))
        print(f"   🔗 {collection_name} → {spec.table}: {inserted:,} filas de link insertadas")
        total += inserted

    result.link_rows_inserted += total
    return total
