"""
Tests de normalización de documentos MongoDB (extractor.py).
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from bson import ObjectId

from extractor import fetch_records, normalize_document


def test_normalize_document():
    oid = ObjectId()
    doc = {"_id": oid, "name": "Eng", "__v": 3, "department": oid}

    record = normalize_document(doc)

    assert record == {"source_id": str(oid), "name": "Eng", "department": oid}
    # El documento original no se modifica
    assert "_id" in doc and "__v" in doc


def test_normalize_extended_json_id():
    assert normalize_document({"_id": {"$oid": "abc123"}})["source_id"] == "abc123"


def test_document_without_id_has_no_source_id():
    assert "source_id" not in normalize_document({"name": "x"})


class _FakeCursor:
    def __init__(self, docs):
        self.docs = docs
        self.closed = False

    def __iter__(self):
        return iter(self.docs)

    def close(self):
        self.closed = True


class _FakeSession:
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class _FakeClient:
    def start_session(self):
        return _FakeSession()


class _FakeCollection:
    def __init__(self, docs):
        self.cursor = _FakeCursor(docs)

    def find(self, query, **kwargs):
        assert query == {}
        assert kwargs["no_cursor_timeout"] is True
        return self.cursor


def test_fetch_records():
    print("\n=== TEST: fetch_records ===")
    collection = _FakeCollection([{"_id": "d1", "name": "Eng"}, {"_id": "d2", "__v": 0}])
    db = {"departments": collection}

    records = fetch_records(_FakeClient(), db, "departments")

    assert records == [{"source_id": "d1", "name": "Eng"}, {"source_id": "d2"}]
    assert collection.cursor.closed


TESTS = [
    test_normalize_document,
    test_normalize_extended_json_id,
    test_document_without_id_has_no_source_id,
    test_fetch_records,
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
    sys.exit(0 if run_all_tests() else 1)
