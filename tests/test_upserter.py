"""
Tests del upsert idempotente por source_id.
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from materializer import CollectionResult, TranslationRegistry
from materializer.upserter import upsert_rows
from tests.helpers import FakeStore


def _upsert(store, registry, rows, batch_size=2):
    staged = registry.staging("departments")
    result = CollectionResult("departments", "departments", print_limit=0)
    counts = upsert_rows(store, "departments", "departments", rows, staged, result, batch_size)
    return staged, result, counts


def test_inserts_new_rows_and_registers_ids():
    print("\n=== TEST 1: inserción inicial ===")
    store = FakeStore()
    registry = TranslationRegistry()
    rows = [{"source_id": "d1", "name": "Eng"}, {"source_id": "d2", "name": "Ops"}]

    staged, result, counts = _upsert(store, registry, rows)

    assert counts == (0, 2)
    assert (result.skipped, result.inserted) == (0, 2)
    assert staged.resolve("departments", "d1") == 1
    assert staged.resolve("departments", "d2") == 2
    assert store.rows("departments")[0] == {"id": 1, "source_id": "d1", "name": "Eng"}
    print("   ✅ 2 filas insertadas, ids registrados")


def test_existing_rows_are_skipped_but_registered():
    print("\n=== TEST 2: re-ejecución ===")
    store = FakeStore()
    rows = [{"source_id": "d1", "name": "Eng"}, {"source_id": "d2", "name": "Ops"}]
    staged, _, _ = _upsert(store, TranslationRegistry(), rows)
    store.commit()

    registry = TranslationRegistry()
    staged, result, counts = _upsert(store, registry, rows + [{"source_id": "d3", "name": "HR"}])

    assert counts == (2, 1)
    assert len(store.rows("departments")) == 3
    assert staged.resolve("departments", "d1") == 1
    assert staged.resolve("departments", "d3") == 3
    print("   ✅ 2 omitidas, 1 insertada")


def test_duplicate_source_ids_in_input_keep_first():
    store = FakeStore()
    rows = [
        {"source_id": "d1", "name": "Eng"},
        {"source_id": "d1", "name": "Eng (copia)"},
    ]
    staged, result, counts = _upsert(store, TranslationRegistry(), rows)

    assert counts == (0, 1)
    assert store.rows("departments")[0]["name"] == "Eng"
    assert len(result.warnings) == 1
    assert result.warnings[0].source_id == "d1"


def test_numeric_source_ids_are_stored_as_strings():
    store = FakeStore()
    staged, _, _ = _upsert(store, TranslationRegistry(), [{"source_id": 10, "name": "X"}])
    assert store.rows("departments")[0]["source_id"] == "10"
    assert staged.resolve("departments", "10") == 1


def test_empty_input_writes_nothing():
    store = FakeStore()
    _, result, counts = _upsert(store, TranslationRegistry(), [])
    assert counts == (0, 0)
    assert store.rows("departments") == []
    assert result.warnings == []


def test_registry_not_touched_before_commit():
    store = FakeStore()
    registry = TranslationRegistry()
    _upsert(store, registry, [{"source_id": "d1"}])
    assert registry.resolve("departments", "d1") is None


TESTS = [
    test_inserts_new_rows_and_registers_ids,
    test_existing_rows_are_skipped_but_registered,
    test_duplicate_source_ids_in_input_keep_first,
    test_numeric_source_ids_are_stored_as_strings,
    test_empty_input_writes_nothing,
    test_registry_not_touched_before_commit,
]


def run_all_tests():
    """Ejecuta los tests del módulo y retorna True si todos pasan."""
    failed = 0
    for test_func in TESTS:
        try:
            test_func()
        except AssertionError as e:
            print(f"\n❌ FALLO: {test_func.__name__}")
            print(f"   {e}")
            failed += 1
    return failed == 0


if __name__ == "__main__":
    print("=" * 70)
    print("🧪 TESTS: upsert idempotente")
    print("=" * 70)
    sys.exit(0 if run_all_tests() else 1)
