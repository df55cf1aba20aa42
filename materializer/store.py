"""
Acceso al almacén destino (PostgreSQL).

Patrón de diseño: Strategy Pattern
- BaseStore = contrato que usan upserter.py, links.py y coordinator.py
- PostgresStore = implementación con psycopg2
- Los tests usan un almacén en memoria que implementa el mismo contrato

Todas las operaciones corren dentro de la transacción abierta de la
conexión; commit()/rollback() las cierran. Los nombres de tabla pueden
venir calificados con schema ('public.employees').
"""

from abc import ABC, abstractmethod

from bson import Decimal128, ObjectId, json_util
from psycopg2 import errors, sql
from psycopg2.extras import Json, execute_values

import config


def chunks(items, size):
    """Divide una lista en trozos de tamaño size."""
    size = max(int(size or 1), 1)
    for start in range(0, len(items), size):
        yield items[start:start + size]


def split_table_name(table):
    """'schema.tabla' → ('schema', 'tabla'); sin schema → ('public', tabla)."""
    if "." in table:
        schema, name = table.split(".", 1)
        return schema, name
    return "public", table


def table_identifier(table):
    return sql.Identifier(*table.split("."))


def adapt_value(value):
    """
    Adapta valores de MongoDB a tipos que psycopg2 sabe enviar.

    - ObjectId → str
    - Decimal128 → decimal.Decimal (NUMERIC)
    - objetos embebidos → JSON (serializado con bson.json_util para
      soportar ObjectId/fechas anidadas)
    """
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, Decimal128):
        return value.to_decimal()
    if isinstance(value, dict):
        return Json(value, dumps=json_util.dumps)
    return value


def group_by_columns(rows):
    """
    Agrupa filas por su conjunto de columnas, preservando el orden.

    Las filas sin una columna no deben enviar NULL explícito (perderían el
    DEFAULT de la tabla), por eso cada grupo se inserta por separado.

    Returns:
        list: [(columnas, [fila, ...]), ...]
    """
    groups = {}
    for row in rows:
        groups.setdefault(tuple(row), []).append(row)
    return list(groups.items())


class BaseStore(ABC):
    """Contrato del almacén destino usado por el motor."""

    @abstractmethod
    def fetch_existing(self, table, source_ids, batch_size):
        """
        Busca filas ya migradas.

        Returns:
            dict: {source_id: target_id} de las filas existentes
        """

    @abstractmethod
    def insert_rows(self, table, rows, batch_size):
        """
        Inserta filas nuevas en lote.

        Returns:
            list: [(source_id, target_id), ...] asignados por la base
        """

    @abstractmethod
    def insert_links(self, table, rows, batch_size):
        """
        Inserta filas de link.

        Returns:
            tuple: (insertadas, hubo_conflicto). Un conflicto de unicidad no
            es fatal: se insertan las filas no duplicadas.
        """

    @abstractmethod
    def commit(self):
        pass

    @abstractmethod
    def rollback(self):
        pass


class PostgresStore(BaseStore):
    """
    Almacén PostgreSQL sobre una conexión psycopg2.

    Args:
        conn: Conexión psycopg2 (autocommit desactivado)
        id_column: PK autoincremental de las tablas destino
        source_id_column: Columna única con el identificador de origen
    """

    def __init__(self, conn, id_column=None, source_id_column=None):
        self.conn = conn
        self.id_column = id_column or config.TARGET_ID_COLUMN
        self.source_id_column = source_id_column or config.SOURCE_ID_COLUMN

    def fetch_existing(self, table, source_ids, batch_size):
        query = sql.SQL("SELECT {id}, {sid} FROM {table} WHERE {sid} = ANY(%s)").format(
            id=sql.Identifier(self.id_column),
            sid=sql.Identifier(self.source_id_column),
            table=table_identifier(table),
        )
        existing = {}
        with self.conn.cursor() as cursor:
            for chunk in chunks(list(source_ids), batch_size):
                cursor.execute(query, (chunk,))
                for target_id, source_id in cursor.fetchall():
                    existing[str(source_id)] = int(target_id)
        return existing

    def insert_rows(self, table, rows, batch_size):
        assigned = []
        with self.conn.cursor() as cursor:
            for columns, group in group_by_columns(rows):
                query = sql.SQL("INSERT INTO {table} ({columns}) VALUES %s RETURNING {sid}, {id}").format(
                    table=table_identifier(table),
                    columns=sql.SQL(", ").join(map(sql.Identifier, columns)),
                    sid=sql.Identifier(self.source_id_column),
                    id=sql.Identifier(self.id_column),
                )
                values = [tuple(adapt_value(row[c]) for c in columns) for row in group]
                returned = execute_values(cursor, query, values, page_size=batch_size, fetch=True)
                assigned.extend((str(source_id), int(target_id)) for source_id, target_id in returned)
        return assigned

    def insert_links(self, table, rows, batch_size):
        groups = group_by_columns(rows)
        with self.conn.cursor() as cursor:
            cursor.execute("SAVEPOINT link_insert")
            try:
                for columns, group in groups:
                    self._execute_link_insert(cursor, table, columns, group, batch_size)
                inserted, conflicted = len(rows), False
            except errors.UniqueViolation:
                # Corrida previa parcial: reintentar omitiendo duplicados
                cursor.execute("ROLLBACK TO SAVEPOINT link_insert")
                inserted, conflicted = 0, True
                for columns, group in groups:
                    inserted += self._execute_link_insert(
                        cursor, table, columns, group, batch_size, skip_conflicts=True
                    )
            cursor.execute("RELEASE SAVEPOINT link_insert")
        return inserted, conflicted

    def _execute_link_insert(self, cursor, table, columns, group, batch_size, skip_conflicts=False):
        query = sql.SQL("INSERT INTO {table} ({columns}) VALUES %s").format(
            table=table_identifier(table),
            columns=sql.SQL(", ").join(map(sql.Identifier, columns)),
        )
        values = [tuple(adapt_value(row[c]) for c in columns) for row in group]
        if not skip_conflicts:
            execute_values(cursor, query, values, page_size=batch_size)
            return len(values)
        query = query + sql.SQL(" ON CONFLICT DO NOTHING RETURNING 1")
        return len(execute_values(cursor, query, values, page_size=batch_size, fetch=True))

    def commit(self):
        self.conn.commit()

    def rollback(self):
        self.conn.rollback()
