# dbsetup.py
"""
Script de configuración de base de datos PostgreSQL.
Crea las tablas destino de la migración y verifica la columna source_id.

ARQUITECTURA:
- departments, awards: catálogos sin dependencias
- employees: FK department → departments.id
- employees_awards: relación N:M (employee_id, award_id)

CONVENCIÓN:
Toda tabla destino tiene:
- id SERIAL PRIMARY KEY (id asignado por PostgreSQL)
- source_id TEXT UNIQUE (_id original de MongoDB, clave de idempotencia)

PRE-FLIGHT:
reconcile_source_id_columns() se ejecuta una vez antes de migrar (lo llama
mongomigra.py). Si una tabla no tiene source_id lo agrega con índice único;
si no puede verificarlo retorna SchemaDriftWarning y la migración sigue.
"""

import psycopg2
from psycopg2 import sql

import config
from materializer.errors import SchemaDriftWarning
from materializer.store import split_table_name, table_identifier

# Orden crítico: tablas referenciadas primero
TABLE_DEFINITIONS = {
    "departments": """
        CREATE TABLE IF NOT EXISTS departments (
            id SERIAL PRIMARY KEY,
            source_id TEXT UNIQUE,
            name VARCHAR(255),
            dep_type INTEGER,
            created_at TIMESTAMP,
            updated_at TIMESTAMP
        )
    """,
    "awards": """
        CREATE TABLE IF NOT EXISTS awards (
            id SERIAL PRIMARY KEY,
            source_id TEXT UNIQUE,
            name VARCHAR(255),
            created_at TIMESTAMP,
            updated_at TIMESTAMP
        )
    """,
    "employees": """
        CREATE TABLE IF NOT EXISTS employees (
            id SERIAL PRIMARY KEY,
            source_id TEXT UNIQUE,
            name VARCHAR(255),
            department INTEGER REFERENCES departments(id),
            created_at TIMESTAMP,
            updated_at TIMESTAMP
        )
    """,
    # Unicidad (employee_id, award_id): evita links duplicados al re-ejecutar
    "employees_awards": """
        CREATE TABLE IF NOT EXISTS employees_awards (
            id SERIAL PRIMARY KEY,
            employee_id INTEGER REFERENCES employees(id) ON DELETE CASCADE,
            award_id INTEGER REFERENCES awards(id) ON DELETE CASCADE,
            UNIQUE (employee_id, award_id)
        )
    """,
}


def create_connection():
    """Establece conexión con PostgreSQL."""
    try:
        conn = psycopg2.connect(**config.POSTGRES_CONFIG)
        return conn
    except Exception as e:
        print(f"❌ Error conectando a PostgreSQL: {e}")
        return None


def setup_tables(cursor):
    """Crea todas las tablas de TABLE_DEFINITIONS (idempotente)."""
    for table, ddl in TABLE_DEFINITIONS.items():
        print(f"   🔧 Creando tabla '{table}'...")
        cursor.execute(ddl)
    print(f"   ✅ {len(TABLE_DEFINITIONS)} tablas verificadas")


def _has_column(cursor, table, column):
    schema, name = split_table_name(table)
    cursor.execute(
        """
        SELECT 1 FROM information_schema.columns
        WHERE table_schema = %s AND table_name = %s AND column_name = %s
        """,
        (schema, name, column),
    )
    return cursor.fetchone() is not None


def _has_unique_index(cursor, table, column):
    """True si existe un índice único (o PK/UNIQUE) sobre exactamente esa columna."""
    schema, name = split_table_name(table)
    cursor.execute(
        """
        SELECT 1 FROM pg_index i
        JOIN pg_class t ON t.oid = i.indrelid
        JOIN pg_namespace n ON n.oid = t.relnamespace
        JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = i.indkey[0]
        WHERE n.nspname = %s AND t.relname = %s AND a.attname = %s
          AND i.indisunique AND i.indnatts = 1
        """,
        (schema, name, column),
    )
    return cursor.fetchone() is not None


def reconcile_source_id_columns(conn, tables, column=None):
    """
    Verifica (o agrega) la columna de idempotencia en cada tabla destino.

    Cada tabla se procesa en su propia transacción para que un fallo no
    afecte a las demás.

    Args:
        conn: Conexión psycopg2
        tables: {coleccion: tabla}
        column: Columna de idempotencia (default config.SOURCE_ID_COLUMN)

    Returns:
        dict: {coleccion: [SchemaDriftWarning, ...]} solo para tablas con problemas
    """
    column = column or config.SOURCE_ID_COLUMN
    drift = {}

    print("\n🔍 Verificando columna de idempotencia en tablas destino...")
    for collection_name, table in tables.items():
        try:
            with conn.cursor() as cursor:
                if _has_column(cursor, table, column):
                    if _has_unique_index(cursor, table, column):
                        print(f"   ✅ {table}.{column}")
                    else:
                        warning = SchemaDriftWarning(
                            collection_name,
                            f"'{table}.{column}' no tiene restricción única; "
                            f"se continúa sin garantía de unicidad",
                        )
                        print(f"   ⚠️  {warning}")
                        drift.setdefault(collection_name, []).append(warning)
                else:
                    cursor.execute(
                        sql.SQL("ALTER TABLE {table} ADD COLUMN {column} TEXT").format(
                            table=table_identifier(table), column=sql.Identifier(column)
                        )
                    )
                    cursor.execute(
                        sql.SQL("CREATE UNIQUE INDEX IF NOT EXISTS {index} ON {table} ({column})").format(
                            index=sql.Identifier(f"uq_{split_table_name(table)[1]}_{column}"),
                            table=table_identifier(table),
                            column=sql.Identifier(column),
                        )
                    )
                    print(f"   🔧 {table}: columna '{column}' agregada (índice único)")
            conn.commit()
        except psycopg2.Error as e:
            conn.rollback()
            warning = SchemaDriftWarning(
                collection_name,
                f"no se pudo verificar/agregar '{column}' en '{table}': {str(e).strip()}; "
                f"se continúa sin garantía de unicidad",
            )
            print(f"   ⚠️  {warning}")
            drift.setdefault(collection_name, []).append(warning)

    return drift


def main():
    """
    Punto de entrada principal.

    ORDEN DE EJECUCIÓN:
    1. departments, awards (sin dependencias)
    2. employees (depende de departments)
    3. employees_awards (depende de employees y awards)
    """
    print("=" * 80)
    print("🚀 CONFIGURACIÓN DE BASE DE DATOS PostgreSQL")
    print("=" * 80)

    conn = create_connection()
    if not conn:
        print("\n❌ No se pudo conectar a la base de datos")
        return

    cursor = conn.cursor()

    try:
        print("\n🔨 Creando estructura de base de datos...")
        setup_tables(cursor)
        conn.commit()

        print("\n" + "=" * 80)
        print("✅ Base de datos configurada correctamente")
        print("=" * 80)

        print("\n📊 TABLAS CREADAS:")
        for table in TABLE_DEFINITIONS:
            print(f"  - {table}")

    except Exception as e:
        conn.rollback()
        print(f"\n❌ Error durante la configuración: {e}")
        import traceback
        traceback.print_exc()
    finally:
        cursor.close()
        conn.close()


if __name__ == '__main__':
    main()
