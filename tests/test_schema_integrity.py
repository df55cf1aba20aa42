"""
Test de integridad de schemas.

Valida que:
1. Toda tabla referenciada en config.py tiene DDL en dbsetup.py
2. Toda tabla principal declara la columna source_id única
3. Las tablas de link declaran las columnas de ambos ids
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import config
import dbsetup
from materializer import CollectionConfig


def _plan():
    return [
        (name, CollectionConfig.from_dict(name, config.get_collection_config(name)))
        for name in config.MIGRATION_ORDER
    ]


def test_tables_have_ddl():
    """Verifica que cada tabla principal y de link tiene DDL."""
    print("\n🔍 Test: Tablas con DDL en dbsetup.py")

    errors = []
    for name, cfg in _plan():
        tables = [cfg.table] + [spec.table for spec in cfg.links.values()]
        for table in tables:
            if table not in dbsetup.TABLE_DEFINITIONS:
                errors.append(f"{name}: Falta DDL para '{table}'")
                print(f"   ❌ {table}")
            else:
                print(f"   ✅ {table}")

    assert not errors, errors


def test_main_tables_declare_source_id():
    """Verifica la columna de idempotencia en cada tabla principal."""
    print("\n🔍 Test: Columna source_id única")

    for name, cfg in _plan():
        ddl = dbsetup.TABLE_DEFINITIONS[cfg.table]
        assert f"{config.SOURCE_ID_COLUMN} TEXT UNIQUE" in ddl, f"{cfg.table} sin source_id único"
        assert f"{config.TARGET_ID_COLUMN} SERIAL PRIMARY KEY" in ddl
        print(f"   ✅ {cfg.table}.{config.SOURCE_ID_COLUMN}")


def test_link_tables_declare_columns():
    """Verifica columnas y unicidad de las tablas de link."""
    print("\n🔍 Test: Columnas de tablas de link")

    for name, cfg in _plan():
        for field, spec in cfg.links.items():
            ddl = dbsetup.TABLE_DEFINITIONS[spec.table]
            assert spec.self_column in ddl and spec.foreign_column in ddl
            assert f"UNIQUE ({spec.self_column}, {spec.foreign_column})" in ddl
            print(f"   ✅ {name}.{field} → {spec.table}")


def test_ddl_order_respects_references():
    """Las tablas referenciadas se crean antes que las que las referencian."""
    order = list(dbsetup.TABLE_DEFINITIONS)
    for position, table in enumerate(order):
        ddl = dbsetup.TABLE_DEFINITIONS[table]
        for referenced in order[position + 1:]:
            assert f"REFERENCES {referenced}(" not in ddl, f"{table} referencia {referenced} antes de crearla"


def test_reset_drops_links_first():
    import reset_database

    tables = reset_database.get_tables_to_drop()
    assert tables[0] == "employees_awards"
    assert set(tables) == set(dbsetup.TABLE_DEFINITIONS)


TESTS = [
    test_tables_have_ddl,
    test_main_tables_declare_source_id,
    test_link_tables_declare_columns,
    test_ddl_order_respects_references,
    test_reset_drops_links_first,
]


def run_all_tests():
    """Ejecuta todos los tests de integridad de schema."""
    print("=" * 70)
    print("🧪 TESTS DE INTEGRIDAD DE SCHEMAS")
    print("=" * 70)

    failed = 0
    for test_func in TESTS:
        try:
            test_func()
        except AssertionError as e:
            print(f"\n❌ FALLO: {test_func.__name__}")
            print(f"   {e}")
            failed += 1

    print("\n" + "=" * 70)
    print("✅ TODOS LOS TESTS PASARON" if failed == 0 else f"❌ {failed} TEST(S) FALLARON")
    return failed == 0


if __name__ == "__main__":
    success = run_all_tests()
    sys.exit(0 if success else 1)
