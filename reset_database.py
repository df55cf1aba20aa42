
# reset_database.py
"""
Script para limpiar completamente las tablas destino antes de una migración.

ADVERTENCIA: Esto destruye TODOS los datos migrados. Después de ejecutarlo
la siguiente corrida inserta todo de nuevo (no hay nada que omitir).
"""

import psycopg2
from psycopg2 import sql

import config
from materializer.store import table_identifier


def get_tables_to_drop():
    """Tablas de links primero, luego tablas principales en orden inverso."""
    tables = list(config.get_link_tables())
    for name in reversed(config.MIGRATION_ORDER):
        table = config.get_table_for_collection(name)
        if table not in tables:
            tables.append(table)
    return tables


def reset_database():
    """Elimina todas las tablas destino configuradas."""

    conn = psycopg2.connect(**config.POSTGRES_CONFIG)
    cursor = conn.cursor()

    print("=" * 70)
    print("🗑️  LIMPIEZA COMPLETA DE BASE DE DATOS")
    print("=" * 70)

    for table in get_tables_to_drop():
        try:
            print(f"\n🗑️  Eliminando tabla '{table}'...")
            cursor.execute(
                sql.SQL("DROP TABLE IF EXISTS {} CASCADE").format(table_identifier(table))
            )
            conn.commit()
            print(f"   ✅ Tabla '{table}' eliminada")
        except psycopg2.Error as e:
            conn.rollback()
            print(f"   ⚠️  Error eliminando '{table}': {e}")

    cursor.close()
    conn.close()

    print("\n" + "=" * 70)
    print("✅ LIMPIEZA COMPLETA FINALIZADA")
    print("=" * 70)
    print("\nAhora ejecutar:")
    print("  1. python dbsetup.py    (recrear estructura)")
    print("  2. python mongomigra.py (migrar datos)")


if __name__ == "__main__":
    import sys

    # Seguridad: pedir confirmación
    print("\n⚠️  ADVERTENCIA: Esto eliminará TODOS los datos migrados.")
    response = input("¿Continuar? (escribir 'SI' en mayúsculas): ")

    if response == "SI":
        reset_database()
    else:
        print("\n❌ Operación cancelada")
        sys.exit(0)
