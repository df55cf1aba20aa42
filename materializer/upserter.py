"""
Upsert idempotente de las filas principales de una colección.

Algoritmo:
1. Consultar filas existentes por source_id
2. Particionar en toSkip (ya migradas) y toInsert (nuevas)
3. toSkip: registrar sus target_id existentes (sin escribir)
4. toInsert: un INSERT por lote con RETURNING y registrar los ids nuevos

Los registros se hacen sobre el StagedRegistry de la colección, que solo
se publica cuando la transacción hace commit.
"""

import config
from .errors import ResolutionWarning


def upsert_rows(store, collection_name, table, rows, registry, result, batch_size=None,
                id_column=None):
    """
    Escribe solo las filas cuyo source_id no existe todavía.

    Args:
        store: BaseStore dentro de la transacción de la colección
        collection_name: Colección materializada
        table: Tabla destino
        rows: Filas transformadas (cada una con source_id)
        registry: StagedRegistry de la colección
        result: CollectionResult donde se acumulan contadores y advertencias
        batch_size: Tamaño de lote para consulta e inserción

    Returns:
        tuple: (omitidas, insertadas)
    """
    batch_size = batch_size or config.BATCH_SIZE
    id_column = id_column or config.SOURCE_ID_COLUMN

    # Duplicados dentro de la misma entrada: se conserva el primero
    unique_rows = []
    seen = set()
    for row in rows:
        source_id = str(row[id_column])
        if source_id in seen:
            result.warn(ResolutionWarning(
                collection_name, "source_id duplicado en el origen; se omite la repetición", source_id
            ))
            continue
        seen.add(source_id)
        unique_rows.append(dict(row, **{id_column: source_id}))

    if not unique_rows:
        print(f"   💤 {table}: nada para insertar")
        return 0, 0

    existing = store.fetch_existing(table, [row[id_column] for row in unique_rows], batch_size)

    to_skip = [row for row in unique_rows if row[id_column] in existing]
    to_insert = [row for row in unique_rows if row[id_column] not in existing]

    if to_skip:
        print(f"   ♻️  {table}: {len(to_skip):,} ya existen (omitidas por idempotencia)")
        for row in to_skip:
            registry.register(collection_name, row[id_column], existing[row[id_column]])

    inserted = 0
    if to_insert:
        for source_id, target_id in store.insert_rows(table, to_insert, batch_size):
            registry.register(collection_name, source_id, target_id)
            inserted += 1
    print(f"   💾 {table}: {inserted:,} insertadas")

    result.skipped += len(to_skip)
    result.inserted += inserted
    return len(to_skip), inserted
