"""
Funciones helper compartidas para todos los tests.

Proporciona un almacén en memoria (FakeStore) que implementa BaseStore,
para probar el motor sin PostgreSQL, y configuraciones de ejemplo basadas
en la configuración de demo (departments, awards, employees).
"""

import copy
import os
import sys

import psycopg2

# Agregar directorio raíz al path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from materializer import CollectionConfig
from materializer.store import BaseStore


class FakeStore(BaseStore):
    """
    Almacén en memoria con semántica transaccional mínima.

    - Cada tabla asigna ids autoincrementales desde 1
    - source_id es único por tabla (como la restricción UNIQUE real)
    - link_unique: {tabla_link: (col, col)} simula UNIQUE en tablas de link
    - rollback() restaura el último estado confirmado
    - fail_on: {'insert_rows'|'insert_links'|'fetch_existing': tabla}
      lanza psycopg2.OperationalError para simular fallos de base

    Attributes:
        tables (dict): {tabla: [fila, ...]} estado actual
        commits (int): Cantidad de commits
        rollbacks (int): Cantidad de rollbacks
    """

    def __init__(self, link_unique=None, fail_on=None):
        self.tables = {}
        self._sequences = {}
        self._committed = ({}, {})
        self.link_unique = link_unique or {}
        self.fail_on = fail_on or {}
        self.commits = 0
        self.rollbacks = 0

    def _maybe_fail(self, operation, table):
        if self.fail_on.get(operation) == table:
            raise psycopg2.OperationalError(f"fallo simulado en {operation}({table})")

    def rows(self, table):
        return self.tables.get(table, [])

    def fetch_existing(self, table, source_ids, batch_size):
        self._maybe_fail("fetch_existing", table)
        wanted = set(source_ids)
        return {
            row["source_id"]: row["id"]
            for row in self.rows(table)
            if row.get("source_id") in wanted
        }

    def insert_rows(self, table, rows, batch_size):
        self._maybe_fail("insert_rows", table)
        stored = self.tables.setdefault(table, [])
        existing = {row["source_id"] for row in stored}
        assigned = []
        for row in rows:
            if row["source_id"] in existing:
                raise psycopg2.IntegrityError(f"duplicate key source_id={row['source_id']}")
            next_id = self._sequences.get(table, 0) + 1
            self._sequences[table] = next_id
            stored.append(dict(row, id=next_id))
            existing.add(row["source_id"])
            assigned.append((row["source_id"], next_id))
        return assigned

    def insert_links(self, table, rows, batch_size):
        self._maybe_fail("insert_links", table)
        stored = self.tables.setdefault(table, [])
        unique = self.link_unique.get(table)
        if not unique:
            stored.extend(dict(row) for row in rows)
            return len(rows), False

        keys = {tuple(row[c] for c in unique) for row in stored}
        inserted, conflicted = 0, False
        for row in rows:
            key = tuple(row[c] for c in unique)
            if key in keys:
                conflicted = True
                continue
            keys.add(key)
            stored.append(dict(row))
            inserted += 1
        return inserted, conflicted

    def commit(self):
        self.commits += 1
        self._committed = (copy.deepcopy(self.tables), dict(self._sequences))

    def rollback(self):
        self.rollbacks += 1
        tables, sequences = self._committed
        self.tables = copy.deepcopy(tables)
        self._sequences = dict(sequences)


def departments_config():
    return CollectionConfig("departments", rename={"type": "dep_type"})


def awards_config():
    return CollectionConfig("awards")


def employees_config(**links):
    """employees con FK department; links opcionales por keyword."""
    return CollectionConfig(
        "employees",
        foreign_keys={"department": "departments"},
        links=links,
    )


def demo_records():
    """Snapshot de origen de ejemplo: {coleccion: [registros]}."""
    return {
        "departments": [
            {"source_id": "d1", "name": "Eng", "type": "1"},
            {"source_id": "d2", "name": "Ops", "type": "2"},
        ],
        "awards": [
            {"source_id": "a1", "name": "MVP"},
            {"source_id": "a2", "name": "Rookie"},
        ],
        "employees": [
            {"source_id": "e1", "name": "Ann", "department": "d1", "award_ids": ["a1", "a2"]},
            {"source_id": "e2", "name": "Bob", "department": "d2", "award_ids": ["a1"]},
            {"source_id": "e3", "name": "Cid", "department": None, "award_ids": []},
        ],
    }


def demo_plan():
    return [
        ("departments", departments_config()),
        ("awards", awards_config()),
        ("employees", employees_config(
            award_ids=("employees_awards", "employee_id", "award_id"),
        )),
    ]


def extractor_for(snapshot):
    """Función extract(coleccion) sobre un snapshot en memoria."""
    return lambda name: [dict(record) for record in snapshot.get(name, [])]
