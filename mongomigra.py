r"""
Script principal de migración de colecciones MongoDB a PostgreSQL.

Arquitectura:
- mongomigra.py: Infraestructura (conexiones, selección, pre-flight, resumen)
- materializer/: Motor (transformación, upsert idempotente, links, transacciones)
- config.py: Configuración centralizada de colecciones
- dbsetup.py: Creación de tablas y verificación de source_id

Flujo de ejecución:
1. Selección de colecciones (argumentos o menú interactivo)
2. Se agregan las dependencias de cada colección (el registro de ids vive
   solo durante el proceso, hay que re-materializarlas)
3. Pre-flight: columna source_id en cada tabla destino
4. Una transacción por colección, en orden de MIGRATION_ORDER
5. Resumen por colección: omitidas, insertadas, links, advertencias

Re-ejecutar es seguro: las filas ya migradas se omiten por source_id.

Prerrequisitos:
- Base de datos creada
- Estructura de tablas creada (ejecutar dbsetup.py primero)

Uso:
    python mongomigra.py                 # menú interactivo
    python mongomigra.py employees       # employees + dependencias
    python mongomigra.py --all           # todas las colecciones
"""

import sys
import psycopg2
from pymongo import MongoClient
from pymongo.errors import ConnectionFailure
from psycopg2 import OperationalError

import config
import dbsetup
from extractor import fetch_records
from materializer import CollectionConfig, MigrationRun
from materializer.errors import MigrationError
from materializer.store import PostgresStore


def connect_to_mongo():
    """
    Establece conexión a MongoDB usando credenciales de config.py.

    Returns:
        tuple: (client, database) de pymongo

    Raises:
        SystemExit: Si no puede conectar
    """
    try:
        print("🔌 Conectando a MongoDB...")
        client = MongoClient(config.MONGO_URI, serverSelectionTimeoutMS=5000)
        client.admin.command("ping")
        db = client[config.MONGO_DATABASE_NAME]
        print("✅ Conexión a MongoDB exitosa")
        return client, db
    except ConnectionFailure as e:
        print(f"❌ Error de conexión a MongoDB", file=sys.stderr)
        print(f"   Detalle: {e}", file=sys.stderr)
        sys.exit(1)


def connect_to_postgres():
    """
    Establece conexión a PostgreSQL usando credenciales de config.py.

    Returns:
        conexión de psycopg2

    Raises:
        SystemExit: Si no puede conectar
    """
    try:
        print("🔌 Conectando a PostgreSQL...")
        conn = psycopg2.connect(**config.POSTGRES_CONFIG)
        print("✅ Conexión a PostgreSQL exitosa")
        return conn
    except OperationalError as e:
        print(f"❌ Error de conexión a PostgreSQL", file=sys.stderr)
        print(f"   Detalle: {e}", file=sys.stderr)
        sys.exit(1)


def build_migration_plan(selected):
    """
    Arma el plan ordenado [(coleccion, CollectionConfig), ...].

    Incluye las colecciones seleccionadas y sus dependencias transitivas,
    ordenadas según config.MIGRATION_ORDER.

    Raises:
        KeyError: Si alguna colección no está configurada

    Example:
        >>> [name for name, _ in build_migration_plan(['employees'])]
        ['departments', 'awards', 'employees']
    """
    wanted = set()
    for collection_name in selected:
        config.get_collection_config(collection_name)
        wanted.add(collection_name)
        wanted.update(config.get_dependencies(collection_name))

    return [
        (name, CollectionConfig.from_dict(name, config.get_collection_config(name)))
        for name in config.MIGRATION_ORDER
        if name in wanted
    ]


def select_collections():
    """
    Muestra menú interactivo para seleccionar colección a migrar.

    Returns:
        list: Colecciones seleccionadas (una, o todas con 'T')

    Raises:
        SystemExit: Si no hay colecciones configuradas o usuario cancela
    """
    available = config.MIGRATION_ORDER

    if not available:
        print("❌ No hay colecciones configuradas en config.MIGRATION_ORDER")
        sys.exit(1)

    print("\n" + "=" * 70)
    print("📚 COLECCIONES DISPONIBLES (orden de migración)")
    print("=" * 70)

    for i, coll_name in enumerate(available, 1):
        coll_config = config.get_collection_config(coll_name)
        desc = coll_config.get("description", "Sin descripción")
        depends_on = coll_config.get("depends_on", [])

        print(f"\n{i}. {coll_name}")
        print(f"   └─ {desc}")
        print(f"   └─ Tabla: {config.get_table_for_collection(coll_name)}")
        if depends_on:
            print(f"   └─ Requiere: {', '.join(depends_on)}")

    print("\n" + "=" * 70)

    while True:
        try:
            choice = input(
                "Seleccione el número de colección, T para todas (0 para salir): "
            ).strip()

            if choice == "0":
                print("\n👋 Migración cancelada por usuario")
                sys.exit(0)

            if choice.upper() == "T":
                return list(available)

            idx = int(choice) - 1

            if 0 <= idx < len(available):
                return [available[idx]]
            else:
                print("❌ Número fuera de rango. Intente nuevamente.")
        except ValueError:
            print("❌ Entrada inválida. Ingrese un número.")
        except (KeyboardInterrupt, EOFError):
            print("\n\n👋 Migración cancelada por usuario")
            sys.exit(0)


def print_summary(results):
    """Imprime el resumen por colección."""
    print("\n" + "=" * 70)
    print("📊 RESUMEN POR COLECCIÓN")
    print("=" * 70)
    if not results:
        print("   (ninguna colección confirmada)")
    for result in results:
        print(f"   {result.summary_line()}")
    print("=" * 70)


def main(argv=None):
    """
    Función principal que coordina el flujo completo de migración.

    Exit Codes:
        0: Éxito
        1: Error de conexión, configuración o migración
    """
    argv = sys.argv[1:] if argv is None else argv

    print("=" * 70)
    print("🚀 SISTEMA DE MIGRACIÓN MONGODB → POSTGRESQL")
    print("=" * 70)
    print(f"📍 MongoDB: {config.MONGO_DATABASE_NAME}")
    print(f"📍 PostgreSQL: {config.POSTGRES_CONFIG['dbname']}")

    if "--all" in argv:
        selected = list(config.MIGRATION_ORDER)
    elif argv:
        selected = argv
    else:
        selected = select_collections()

    try:
        plan = build_migration_plan(selected)
    except KeyError as e:
        print(f"❌ {e.args[0]}", file=sys.stderr)
        sys.exit(1)

    print("\n" + "=" * 70)
    print(f"📦 Plan: {' → '.join(name for name, _ in plan)}")
    print("=" * 70)

    mongo_client, mongo_db = connect_to_mongo()
    pg_conn = connect_to_postgres()

    run = MigrationRun(PostgresStore(pg_conn))

    try:
        drift = dbsetup.reconcile_source_id_columns(
            pg_conn, {name: cfg.table for name, cfg in plan}
        )

        run.migrate(
            plan,
            lambda name: fetch_records(mongo_client, mongo_db, name),
            preflight_warnings=drift,
        )

        print_summary(run.results)
        print("✅ PROCESO COMPLETADO EXITOSAMENTE")
        print("=" * 70)

    except MigrationError as e:
        print(f"\n❌ Error durante la migración: {e}", file=sys.stderr)
        print_summary(run.results)
        sys.exit(1)

    except Exception as e:
        print(f"\n❌ Error inesperado: {e}", file=sys.stderr)
        import traceback

        traceback.print_exc()
        pg_conn.rollback()
        print_summary(run.results)
        sys.exit(1)

    finally:
        print("\n🔒 Cerrando conexiones...")
        pg_conn.close()
        mongo_client.close()
        print("✅ Conexiones cerradas correctamente")


if __name__ == "__main__":
    main()
