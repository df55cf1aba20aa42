"""
Registro de traducción: coleccion → {source_id (str) → target_id (int)}.

Reglas:
- Solo se agrega (append-only): un par (colección, source_id) registrado
  nunca cambia de target_id dentro de la corrida.
- Cada colección escribe únicamente su propio sub-mapa y solo después de
  que su transacción hace commit. Mientras tanto escribe en un
  StagedRegistry, que las demás colecciones no ven.
- Se crea uno por corrida (MigrationRun), nunca a nivel de módulo.
"""

from .errors import ConflictError


class TranslationRegistry:
    """
    Mapeo de identificadores de origen a identificadores relacionales.

    Ejemplo:
        >>> registry = TranslationRegistry()
        >>> registry.register('departments', 'd1', 1)
        >>> registry.resolve('departments', 'd1')
        1
        >>> registry.resolve_any('d1')
        ('departments', 1)
    """

    def __init__(self):
        self._maps = {}

    def register(self, collection, source_id, target_id):
        """
        Registra un par. Es no-op si ya existe con el mismo target_id.

        Raises:
            ConflictError: Si ya existe con otro target_id
        """
        ids = self._maps.setdefault(collection, {})
        key = str(source_id)
        current = ids.get(key)
        if current is not None and current != target_id:
            raise ConflictError(
                f"{collection}[{key}] ya registrado como {current}, se intentó {target_id}"
            )
        ids[key] = target_id

    def add_collection(self, collection):
        """Marca la colección como materializada aunque no tenga registros."""
        self._maps.setdefault(collection, {})

    def resolve(self, collection, source_id):
        if source_id is None:
            return None
        return self._maps.get(collection, {}).get(str(source_id))

    def matches(self, source_id):
        """Todas las colecciones que contienen el source_id: [(coleccion, target_id)]."""
        key = str(source_id)
        return [
            (collection, ids[key]) for collection, ids in self._maps.items() if key in ids
        ]

    def resolve_any(self, source_id):
        """
        Busca el source_id en todas las colecciones, en orden de registro.

        Ambiguo si el mismo valor existe en más de una colección; usar
        resolve() con colección explícita siempre que sea posible.
        """
        found = self.matches(source_id)
        return found[0] if found else None

    def has_collection(self, collection):
        return collection in self._maps

    def staging(self, collection):
        """Vista transaccional para materializar una colección."""
        return StagedRegistry(self, collection)


class StagedRegistry:
    """
    Vista del registro con escrituras pendientes para UNA colección.

    Las lecturas ven el registro base más las entradas pendientes de la
    propia colección (el materializador de links necesita los ids recién
    asignados). commit() las publica en el registro base; discard() las
    descarta cuando la transacción se revierte.
    """

    def __init__(self, base, collection):
        self.base = base
        self.collection = collection
        self._pending = {}

    def register(self, collection, source_id, target_id):
        if collection != self.collection:
            raise ConflictError(
                f"'{self.collection}' no puede escribir en el sub-mapa de '{collection}'"
            )
        key = str(source_id)
        current = self._pending.get(key)
        if current is None:
            current = self.base.resolve(collection, key)
        if current is not None and current != target_id:
            raise ConflictError(
                f"{collection}[{key}] ya registrado como {current}, se intentó {target_id}"
            )
        self._pending[key] = target_id

    def resolve(self, collection, source_id):
        if source_id is None:
            return None
        if collection == self.collection:
            pending = self._pending.get(str(source_id))
            if pending is not None:
                return pending
        return self.base.resolve(collection, source_id)

    def matches(self, source_id):
        key = str(source_id)
        found = self.base.matches(key)
        if key in self._pending and not any(c == self.collection for c, _ in found):
            found.append((self.collection, self._pending[key]))
        return found

    def commit(self):
        self.base.add_collection(self.collection)
        for source_id, target_id in self._pending.items():
            self.base.register(self.collection, source_id, target_id)
        self._pending = {}

    def discard(self):
        self._pending = {}
