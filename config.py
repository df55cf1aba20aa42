"""
Configuración centralizada para el motor de migración MongoDB → PostgreSQL.

ARQUITECTURA:
Cada colección MongoDB se materializa en una tabla relacional propia:
- Las filas conservan el identificador original en la columna source_id
  (única), lo que permite re-ejecutar la migración sin duplicar filas.
- Los campos escalares que referencian otra colección (foreign_keys) se
  traducen al id entero asignado en PostgreSQL.
- Los arrays declarados en links se materializan como filas de una tabla
  N:M; cualquier otro array se descarta con advertencia.

FLUJO DE MIGRACIÓN:
1. dbsetup.py crea las tablas (o ya existen)
2. mongomigra.py ejecuta las colecciones en el orden de MIGRATION_ORDER
3. Cada colección se migra en una única transacción

USO DE LAS FUNCIONES HELPER:
    # Obtener configuración de colección
    cfg = get_collection_config('employees')
    table = cfg['table']  # 'employees'

    # Dependencias que deben materializarse antes
    deps = get_dependencies('employees')
    # ['departments', 'awards']
"""

import os
from datetime import datetime
from dotenv import load_dotenv

# Carga las variables del archivo .env en las variables de entorno del sistema
load_dotenv(override=True)

# --- Configuración de MongoDB (Origen) ---
if os.getenv("MONGO_URI"):
    MONGO_URI = os.getenv("MONGO_URI")
elif os.getenv("MONGO_USER"):
    MONGO_URI = (
        f"mongodb://{os.getenv('MONGO_USER')}:{os.getenv('MONGO_PASSWORD')}"
        f"@{os.getenv('MONGO_HOST') or 'localhost'}:{os.getenv('MONGO_PORT') or '27017'}/"
        f"?authSource={os.getenv('MONGO_AUTH_SOURCE') or 'admin'}&readPreference=primary"
        f"&directConnection=true&ssl=false"
    )
else:
    MONGO_URI = (
        f"mongodb://{os.getenv('MONGO_HOST') or 'localhost'}:{os.getenv('MONGO_PORT') or '27017'}/"
    )
MONGO_DATABASE_NAME = os.getenv("MONGO_DATABASE") or "mongo_test"

# --- Configuración de PostgreSQL (Destino) ---
POSTGRES_CONFIG = {
    "dbname": os.getenv("POSTGRES_DB") or "",
    "user": os.getenv("POSTGRES_USER") or "",
    "password": os.getenv("POSTGRES_PASSWORD") or "",
    "host": os.getenv("POSTGRES_HOST") or "localhost",
    "port": os.getenv("POSTGRES_PORT") or "5432",
}

# --- Configuración de Migración ---
BATCH_SIZE = int(os.getenv("MIGRATION_BATCH_SIZE") or 2000)  # Registros por lote

# Columna única con el identificador estable del origen (idempotencia)
SOURCE_ID_COLUMN = "source_id"

# Columna PK autoincremental de las tablas destino
TARGET_ID_COLUMN = "id"

# Máximo de advertencias impresas por colección (todas quedan en el resultado)
WARNING_PRINT_LIMIT = int(os.getenv("MIGRATION_WARNING_PRINT_LIMIT") or 20)


def _parse_timestamp(value, record):
    """Convierte timestamps ISO 8601 (string) a datetime; deja pasar el resto."""
    if isinstance(value, str):
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    return value


# --- Configuración Multi-Colección ---
# Cada colección MongoDB define:
# - table: Tabla destino en PostgreSQL
# - rename: {campo_origen: campo_destino}, se aplica antes de redefine
# - redefine: {campo: funcion(valor, registro)}
# - foreign_keys: {campo: coleccion_referenciada} (solo referencias escalares)
# - links: {campo_array: {table, self_column, foreign_column, collection, extra}}
# - depends_on: Colecciones que DEBEN migrarse antes
# - description: Descripción de negocio de la colección

COLLECTIONS = {
    # === CATÁLOGOS (sin dependencias) ===
    "departments": {
        "table": "departments",
        "rename": {
            "type": "dep_type",
            "createdAt": "created_at",
            "updatedAt": "updated_at",
        },
        "redefine": {
            "dep_type": lambda value, record: int(value) if value is not None else None,
            "created_at": _parse_timestamp,
            "updated_at": _parse_timestamp,
        },
        "foreign_keys": {},
        "links": {},
        "depends_on": [],
        "description": "Departamentos de la organización",
    },
    "awards": {
        "table": "awards",
        "rename": {
            "createdAt": "created_at",
            "updatedAt": "updated_at",
        },
        "redefine": {
            "created_at": _parse_timestamp,
            "updated_at": _parse_timestamp,
        },
        "foreign_keys": {},
        "links": {},
        "depends_on": [],
        "description": "Catálogo de premios",
    },
    # === COLECCIONES CONSUMIDORAS (referencian catálogos) ===
    "employees": {
        "table": "employees",
        "rename": {
            "createdAt": "created_at",
            "updatedAt": "updated_at",
        },
        "redefine": {
            "created_at": _parse_timestamp,
            "updated_at": _parse_timestamp,
        },
        "foreign_keys": {"department": "departments"},
        "links": {
            "award_ids": {
                "table": "employees_awards",
                "self_column": "employee_id",
                "foreign_column": "award_id",
                "collection": "awards",
            },
        },
        "depends_on": ["departments", "awards"],
        "description": "Empleados; department → departments.id, award_ids → employees_awards (N:M)",
    },
}

# --- Orden de Migración ---
# Derivado de las dependencias declaradas en COLLECTIONS.
# Ejecutar en este orden garantiza que las FKs y links se puedan resolver.
MIGRATION_ORDER = [
    "departments",  # Sin dependencias
    "awards",  # Sin dependencias
    "employees",  # Depende de departments, awards
]


# --- Funciones Helper ---


def get_collection_config(collection_name: str) -> dict:
    """
    Obtiene la configuración de una colección por nombre.

    Args:
        collection_name: Nombre de la colección MongoDB (ej: 'employees')

    Returns:
        dict: Configuración cruda de la colección (ver COLLECTIONS)

    Raises:
        KeyError: Si la colección no está configurada

    Ejemplo:
        >>> get_collection_config('employees')['foreign_keys']
        {'department': 'departments'}
    """
    if collection_name not in COLLECTIONS:
        available = ", ".join(COLLECTIONS.keys())
        raise KeyError(
            f"Colección '{collection_name}' no está configurada.\n"
            f"Colecciones disponibles: {available}"
        )
    return COLLECTIONS[collection_name]


def validate_migration_order(collection_name: str) -> list:
    """
    Retorna las dependencias declaradas (depends_on) de una colección.

    Ejemplo:
        >>> validate_migration_order('employees')
        ['departments', 'awards']
        >>> validate_migration_order('departments')
        []
    """
    config = get_collection_config(collection_name)
    return config.get("depends_on", [])


def get_dependencies(collection_name: str) -> list:
    """
    Dependencias transitivas de una colección, en orden de MIGRATION_ORDER.

    Como el registro de traducción vive solo durante el proceso, migrar una
    colección aislada exige volver a materializar sus dependencias (normalmente
    todo se omite por idempotencia, pero así se recuperan los ids asignados).
    """
    pending = list(validate_migration_order(collection_name))
    found = set()
    while pending:
        dep = pending.pop()
        if dep in found:
            continue
        found.add(dep)
        pending.extend(validate_migration_order(dep))
    return [name for name in MIGRATION_ORDER if name in found]


def get_table_for_collection(collection_name: str) -> str:
    """Helper de conveniencia: tabla destino de una colección."""
    config = get_collection_config(collection_name)
    return config.get("table") or collection_name


def get_link_tables() -> list:
    """Tablas N:M declaradas en links, sin repetir, en orden de aparición."""
    tables = []
    for name in MIGRATION_ORDER:
        for link in get_collection_config(name).get("links", {}).values():
            table = link["table"] if isinstance(link, dict) else link[0]
            if table not in tables:
                tables.append(table)
    return tables
