"""
Taxonomía de errores y advertencias del motor de materialización.

FATALES (se lanzan, abortan la corrida completa):
- ConfigurationError: configuración de colección o plan inconsistente
- ConflictError: el registro de traducción recibió otro target_id para
  un par (colección, source_id) ya registrado
- SourceContractError: un registro de origen no trae source_id
- TransactionFailure: error de base de datos dentro de la unidad de
  trabajo de una colección (la transacción se revierte)

NO FATALES (se acumulan en el resultado de la colección):
- ResolutionWarning: FK o elemento de link sin resolver, redefine fallido
- SchemaDriftWarning: no se pudo verificar/agregar la columna source_id
- LinkConflict: violación de unicidad al insertar filas de link
"""


class MigrationError(Exception):
    """Base de todos los errores fatales de la migración."""


class ConfigurationError(MigrationError):
    pass


class ConflictError(MigrationError):
    pass


class SourceContractError(MigrationError):
    pass


class TransactionFailure(MigrationError):
    """
    Error de base de datos dentro de la transacción de una colección.

    Attributes:
        collection (str): Colección cuya transacción se revirtió
    """

    def __init__(self, collection, message):
        super().__init__(f"{collection}: {message}")
        self.collection = collection


class MigrationWarning:
    """
    Advertencia no fatal. No se lanza: se registra en CollectionResult.

    Attributes:
        collection (str): Colección en la que se produjo
        message (str): Descripción legible
        source_id (str|None): Registro de origen afectado, si aplica
    """

    kind = "warning"

    def __init__(self, collection, message, source_id=None):
        self.collection = collection
        self.message = message
        self.source_id = source_id

    def __str__(self):
        where = f" [source_id={self.source_id}]" if self.source_id is not None else ""
        return f"{self.kind}: {self.collection}{where}: {self.message}"

    def __repr__(self):
        return f"{type(self).__name__}({self.collection!r}, {self.message!r}, source_id={self.source_id!r})"

    def to_dict(self):
        return {
            "kind": self.kind,
            "collection": self.collection,
            "source_id": self.source_id,
            "message": self.message,
        }


class ResolutionWarning(MigrationWarning):
    kind = "resolution"


class SchemaDriftWarning(MigrationWarning):
    kind = "schema_drift"


class LinkConflict(MigrationWarning):
    kind = "link_conflict"
