"""
Modelo de configuración por colección y validación anticipada.

La validación se ejecuta ANTES de procesar cualquier registro: un error de
configuración (ciclos de rename, FKs hacia colecciones no materializadas,
links incompletos) aborta la corrida con ConfigurationError en lugar de
producir datos a medias.

Formatos aceptados para links (campo_array → especificación):
    # Tupla posicional: (tabla, columna_propia, columna_foranea[, extra])
    {'award_ids': ('employees_awards', 'employee_id', 'award_id')}

    # Dict con colección dueña explícita (recomendado)
    {'award_ids': {
        'table': 'employees_awards',
        'self_column': 'employee_id',
        'foreign_column': 'award_id',
        'collection': 'awards',
    }}
"""

import config
from .errors import ConfigurationError


class LinkSpec:
    """
    Especificación de una relación N:M materializada desde un campo array.

    Attributes:
        table (str): Tabla de links destino
        self_column (str): Columna con el id del registro dueño del array
        foreign_column (str): Columna con el id del elemento referenciado
        extra (callable|None): extra(self_id, foreign_id, record) → dict con
            atributos adicionales para la fila de link
        collection (str|None): Colección dueña de los elementos. Si es None
            se busca en todas las colecciones registradas (ambiguo)
        element_key (str|None): Si los elementos son objetos embebidos,
            clave que contiene el identificador
    """

    def __init__(self, table, self_column, foreign_column, extra=None,
                 collection=None, element_key=None):
        self.table = table
        self.self_column = self_column
        self.foreign_column = foreign_column
        self.extra = extra
        self.collection = collection
        self.element_key = element_key

    @classmethod
    def from_value(cls, value):
        if isinstance(value, cls):
            return value
        if isinstance(value, dict):
            try:
                return cls(
                    value["table"],
                    value["self_column"],
                    value["foreign_column"],
                    extra=value.get("extra"),
                    collection=value.get("collection"),
                    element_key=value.get("element_key"),
                )
            except KeyError as e:
                raise ConfigurationError(f"link sin clave requerida {e}") from None
        if isinstance(value, (list, tuple)) and 3 <= len(value) <= 4:
            return cls(*value)
        raise ConfigurationError(f"especificación de link no reconocida: {value!r}")

    def __repr__(self):
        return (
            f"LinkSpec({self.table!r}, {self.self_column!r}, {self.foreign_column!r}, "
            f"collection={self.collection!r})"
        )


class CollectionConfig:
    """
    Configuración estática de una colección. Inmutable durante la corrida.

    Attributes:
        table (str): Tabla destino
        rename (dict): {campo_viejo: campo_nuevo}
        redefine (dict): {campo: funcion(valor, registro)}
        foreign_keys (dict): {campo: coleccion_referenciada}
        links (dict): {campo_array: LinkSpec}
        depends_on (list): Dependencias declaradas (informativo)
        description (str): Descripción de negocio
    """

    def __init__(self, table, rename=None, redefine=None, foreign_keys=None,
                 links=None, depends_on=None, description=""):
        self.table = table
        self.rename = dict(rename or {})
        self.redefine = dict(redefine or {})
        self.foreign_keys = dict(foreign_keys or {})
        self.links = {
            field: LinkSpec.from_value(spec) for field, spec in (links or {}).items()
        }
        self.depends_on = list(depends_on or [])
        self.description = description

    @classmethod
    def from_dict(cls, collection_name, data):
        """
        Construye la configuración desde un dict de config.COLLECTIONS.

        Acepta también claves camelCase (foreignKeys, fieldsRename,
        fieldsRedefine, tableName).
        """
        return cls(
            table=data.get("table") or data.get("tableName") or collection_name,
            rename=data.get("rename") or data.get("fieldsRename"),
            redefine=data.get("redefine") or data.get("fieldsRedefine"),
            foreign_keys=data.get("foreign_keys") or data.get("foreignKeys"),
            links=data.get("links"),
            depends_on=data.get("depends_on"),
            description=data.get("description", ""),
        )

    def referenced_collections(self):
        """Colecciones referenciadas por FKs y links con dueño explícito."""
        refs = list(self.foreign_keys.values())
        for spec in self.links.values():
            if spec.collection and spec.collection not in refs:
                refs.append(spec.collection)
        return refs


def _find_rename_cycle(rename):
    for start in rename:
        seen = [start]
        current = rename[start]
        while current in rename:
            if current in seen:
                return seen[seen.index(current):] + [current]
            seen.append(current)
            current = rename[current]
    return None


def validate_collection_config(collection_name, cfg, id_column=None):
    """
    Valida la configuración de una colección de forma aislada.

    Raises:
        ConfigurationError: Con el primer problema encontrado
    """
    id_column = id_column or config.SOURCE_ID_COLUMN

    def fail(message):
        raise ConfigurationError(f"{collection_name}: {message}")

    if not cfg.table or not isinstance(cfg.table, str):
        fail("tabla destino vacía")

    # --- rename ---
    targets = {}
    for old, new in cfg.rename.items():
        if not isinstance(old, str) or not isinstance(new, str) or not new:
            fail(f"rename inválido {old!r} → {new!r}")
        if id_column in (old, new):
            fail(f"rename no puede tocar '{id_column}'")
        if new in targets:
            fail(f"rename '{old}' y '{targets[new]}' apuntan ambos a '{new}'")
        targets[new] = old
    cycle = _find_rename_cycle(cfg.rename)
    if cycle:
        fail(f"ciclo en rename: {' → '.join(cycle)}")

    # --- redefine ---
    for field, fn in cfg.redefine.items():
        if field == id_column:
            fail(f"redefine no puede tocar '{id_column}'")
        if not callable(fn):
            fail(f"redefine['{field}'] no es invocable")

    # --- foreign_keys ---
    for field, ref in cfg.foreign_keys.items():
        if field == id_column:
            fail(f"'{id_column}' no puede ser foreign key")
        if not isinstance(ref, str) or not ref:
            fail(f"foreign_keys['{field}'] debe nombrar una colección")
        if field in cfg.links:
            fail(f"'{field}' está declarado como foreign key y como link")

    # --- links ---
    for field, spec in cfg.links.items():
        if field == id_column:
            fail(f"'{id_column}' no puede ser link")
        if field in cfg.rename:
            fail(f"el campo de link '{field}' no puede renombrarse")
        for attr in ("table", "self_column", "foreign_column"):
            value = getattr(spec, attr)
            if not isinstance(value, str) or not value:
                fail(f"links['{field}'].{attr} vacío")
        if spec.self_column == spec.foreign_column:
            fail(f"links['{field}'] usa la misma columna para ambos ids")
        if spec.extra is not None and not callable(spec.extra):
            fail(f"links['{field}'].extra no es invocable")


def validate_plan(plan, registry=None, id_column=None):
    """
    Valida un plan completo [(coleccion, CollectionConfig), ...] antes de
    procesar ningún registro.

    Además de validar cada configuración, verifica que toda colección
    referenciada por una FK o por un link con dueño explícito se materialice
    antes en el plan (o ya esté en el registro de este proceso).

    Raises:
        ConfigurationError: Con el primer problema encontrado
    """
    def known(name):
        return registry is not None and registry.has_collection(name)

    seen = set()

    for collection_name, cfg in plan:
        if collection_name in seen:
            raise ConfigurationError(f"'{collection_name}' aparece dos veces en el plan")
        validate_collection_config(collection_name, cfg, id_column)

        for field, ref in cfg.foreign_keys.items():
            if ref not in seen and not known(ref):
                raise ConfigurationError(
                    f"{collection_name}.{field} referencia '{ref}', "
                    f"que no se materializa antes en el plan"
                )
        for field, spec in cfg.links.items():
            ref = spec.collection
            if ref and ref != collection_name and ref not in seen and not known(ref):
                raise ConfigurationError(
                    f"{collection_name}.{field} enlaza con '{ref}', "
                    f"que no se materializa antes en el plan"
                )
        seen.add(collection_name)
