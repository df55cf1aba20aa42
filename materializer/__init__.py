"""
Motor de materialización relacional: colecciones de documentos → tablas.

Estructura:
    registry.py: TranslationRegistry (source_id → id destino por colección)
    collection_config.py: CollectionConfig, LinkSpec y validación anticipada
    transform.py: Pipeline rename → redefine → FKs → arrays
    store.py: BaseStore y PostgresStore (psycopg2)
    upserter.py: Inserción idempotente por source_id
    links.py: Filas N:M desde campos array
    coordinator.py: MigrationRun, una transacción por colección
    errors.py: Errores fatales y advertencias

La extracción desde MongoDB (extractor.py), la creación de tablas
(dbsetup.py) y el orquestador (mongomigra.py) viven fuera del paquete.
"""

from .collection_config import CollectionConfig, LinkSpec
from .coordinator import CollectionResult, MigrationRun
from .registry import TranslationRegistry
