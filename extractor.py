"""
Extracción de documentos desde MongoDB como registros de origen.

Cada documento se convierte en un dict plano:
- _id → source_id (string, identificador estable para la migración)
- __v (metadata de Mongoose) se descarta

El resto de los valores se conserva tal cual (ObjectId, fechas, objetos
embebidos, arrays): el motor decide qué hacer con cada uno.
"""

import config


def normalize_document(doc):
    """
    Convierte un documento MongoDB en registro de origen.

    Ejemplo:
        >>> normalize_document({'_id': ObjectId('650c...'), 'name': 'Eng', '__v': 0})
        {'name': 'Eng', 'source_id': '650c...'}
    """
    record = dict(doc)
    _id = record.pop("_id", None)
    if isinstance(_id, dict) and "$oid" in _id:
        _id = _id["$oid"]
    if _id is not None:
        record[config.SOURCE_ID_COLUMN] = str(_id)
    record.pop("__v", None)
    return record


def fetch_records(mongo_client, mongo_db, collection_name):
    """
    Lee todos los documentos de una colección.

    Usa sesión explícita y no_cursor_timeout para colecciones grandes.

    Args:
        mongo_client: MongoClient (para la sesión)
        mongo_db: Base de datos de pymongo
        collection_name: Colección a leer

    Returns:
        list[dict]: Registros normalizados
    """
    source_collection = mongo_db[collection_name]
    records = []
    with mongo_client.start_session() as session:
        cursor = source_collection.find({}, no_cursor_timeout=True, session=session)
        try:
            for doc in cursor:
                records.append(normalize_document(doc))
        finally:
            cursor.close()

    print(f"   📥 {collection_name}: {len(records):,} documentos leídos de MongoDB")
    return records
