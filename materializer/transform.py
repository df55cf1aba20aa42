"""
Pipeline de transformación: un registro de origen → una fila destino.

Pasos, en orden fijo:
1. rename: copia campo_viejo → campo_nuevo y elimina el viejo
2. redefine: reemplaza el valor por fn(valor, registro); si fn falla se
   deja el valor original y se registra una advertencia
3. foreign_keys: traduce el source_id referenciado al target_id usando el
   registro; si no se resuelve, el campo queda en NULL (con advertencia)
4. arrays: los campos de links se quitan (los materializa links.py); el
   resto de los arrays se descartan con advertencia

Es una función pura de (registro, configuración, registro de traducción):
no modifica el registro de entrada, no escribe en el registro de
traducción y no imprime. Las advertencias se retornan al coordinador.
"""

import config
from .errors import ResolutionWarning


def is_sequence(value):
    """Arrays de origen: list/tuple (los strings y dicts no cuentan)."""
    return isinstance(value, (list, tuple))


def transform_record(record, collection_name, cfg, registry, id_column=None):
    """
    Transforma un registro de origen en una fila destino.

    Args:
        record: Registro de origen (dict con source_id)
        collection_name: Colección a la que pertenece el registro
        cfg: CollectionConfig de la colección
        registry: TranslationRegistry (o StagedRegistry) de solo lectura
        id_column: Nombre de la columna de identificador estable

    Returns:
        tuple: (fila, advertencias)
            fila (dict): Columnas planas listas para insertar
            advertencias (list[ResolutionWarning])

    Ejemplo:
        >>> row, warnings = transform_record(
        ...     {'source_id': 'e1', 'name': 'Ann', 'department': 'd1'},
        ...     'employees', cfg, registry)
        >>> row
        {'source_id': 'e1', 'name': 'Ann', 'department': 1}
    """
    id_column = id_column or config.SOURCE_ID_COLUMN
    row = dict(record)
    source_id = row.get(id_column)
    warnings = []

    def warn(message):
        warnings.append(ResolutionWarning(collection_name, message, source_id))

    # 1. rename
    for old, new in cfg.rename.items():
        if old in row:
            row[new] = row.pop(old)

    # 2. redefine
    for field, fn in cfg.redefine.items():
        if field not in row:
            continue
        try:
            row[field] = fn(row[field], row)
        except Exception as e:
            warn(f"redefine de '{field}' falló ({type(e).__name__}: {e}); se conserva el valor original")

    # 3. foreign keys
    for field, ref_collection in cfg.foreign_keys.items():
        value = row.get(field)
        if value is None:
            continue

        if is_sequence(value):
            resolved = [registry.resolve(ref_collection, v) for v in value if v is not None]
            resolved = [v for v in resolved if v is not None]
            row[field] = resolved[0] if resolved else None
            dropped = len(value) - (1 if resolved else 0)
            if dropped:
                warn(
                    f"FK '{field}' es un array de {len(value)} elementos; "
                    f"se conserva {'el primero resoluble' if resolved else 'NULL'} "
                    f"y se descartan {dropped} (usar links para relaciones N:M)"
                )
            continue

        target_id = registry.resolve(ref_collection, value)
        if target_id is None:
            warn(f"FK '{field}' → {ref_collection}['{value}'] sin resolver; queda NULL")
        row[field] = target_id

    # 4. arrays
    for field in list(row):
        if field in cfg.links:
            del row[field]
        elif is_sequence(row[field]):
            warn(f"array '{field}' sin configuración de links; se descarta")
            del row[field]

    return row, warnings
