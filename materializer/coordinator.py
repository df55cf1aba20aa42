"""
Coordinador transaccional de la migración.

Cada colección se materializa en UNA unidad atómica:
    transformar → upsert idempotente → links → commit

Si algo falla dentro de la unidad (que no sea una advertencia ya manejada)
se hace rollback completo: ninguna fila, ningún id del registro y ninguna
fila de link de esa colección se conservan. La corrida se detiene en la
primera colección fallida (fail-fast), porque las siguientes pueden
depender de sus ids.

Uso:
    store = PostgresStore(pg_conn)
    run = MigrationRun(store)
    results = run.migrate(plan, extract)  # plan: [(coleccion, CollectionConfig)]

    for result in results:
        print(result.summary_line())
"""

import psycopg2

import config
from .collection_config import validate_collection_config, validate_plan
from .errors import SourceContractError, TransactionFailure
from .links import materialize_links
from .registry import TranslationRegistry
from .transform import transform_record
from .upserter import upsert_rows


class CollectionResult:
    """
    Resumen de la materialización de una colección.

    Attributes:
        collection (str): Nombre de la colección
        table (str): Tabla destino
        skipped (int): Filas ya existentes (omitidas)
        inserted (int): Filas nuevas
        link_rows_inserted (int): Filas de link escritas
        warnings (list[MigrationWarning]): Advertencias acumuladas
    """

    def __init__(self, collection, table, print_limit=None):
        self.collection = collection
        self.table = table
        self.skipped = 0
        self.inserted = 0
        self.link_rows_inserted = 0
        self.warnings = []
        self.print_limit = config.WARNING_PRINT_LIMIT if print_limit is None else print_limit

    def warn(self, warning):
        """Acumula la advertencia y la imprime mientras no se supere el límite."""
        self.warnings.append(warning)
        count = len(self.warnings)
        if count <= self.print_limit:
            print(f"   ⚠️  {warning}")
        elif count == self.print_limit + 1:
            print(f"   ⚠️  ... más advertencias omitidas en consola (ver resumen)")

    def to_dict(self):
        return {
            "collection": self.collection,
            "table": self.table,
            "skipped": self.skipped,
            "inserted": self.inserted,
            "link_rows_inserted": self.link_rows_inserted,
            "warnings": len(self.warnings),
        }

    def summary_line(self):
        return (
            f"{self.collection:<20} omitidas={self.skipped:<8,} insertadas={self.inserted:<8,} "
            f"links={self.link_rows_inserted:<8,} advertencias={len(self.warnings):,}"
        )


class MigrationRun:
    """
    Contexto de una corrida: dueño del registro de traducción.

    Nunca se comparte entre corridas: cada MigrationRun crea su propio
    TranslationRegistry salvo que se le pase uno explícitamente.

    Args:
        store: BaseStore (PostgresStore en producción)
        registry: TranslationRegistry opcional
        batch_size: Tamaño de lote (default config.BATCH_SIZE)
    """

    def __init__(self, store, registry=None, batch_size=None, id_column=None):
        self.store = store
        self.registry = registry if registry is not None else TranslationRegistry()
        self.batch_size = batch_size or config.BATCH_SIZE
        self.id_column = id_column or config.SOURCE_ID_COLUMN
        self.results = []

    def materialize(self, collection_name, cfg, records, preflight_warnings=None):
        """
        Materializa una colección en una transacción.

        Args:
            collection_name: Nombre de la colección
            cfg: CollectionConfig
            records: Iterable de registros de origen
            preflight_warnings: Advertencias previas (ej: SchemaDriftWarning)

        Returns:
            CollectionResult

        Raises:
            ConfigurationError: Configuración inválida (antes de tocar la base)
            SourceContractError: Registro sin source_id
            TransactionFailure: Error de base de datos (con rollback)
        """
        validate_collection_config(collection_name, cfg, self.id_column)

        print(f"\n🚚 Materializando '{collection_name}' → {cfg.table}")
        result = CollectionResult(collection_name, cfg.table)
        for warning in preflight_warnings or []:
            result.warn(warning)

        records = list(records)
        for position, record in enumerate(records, 1):
            if record.get(self.id_column) is None:
                raise SourceContractError(
                    f"{collection_name}: el registro #{position} no tiene '{self.id_column}'"
                )
        print(f"   📊 Registros de origen: {len(records):,}")

        staged = self.registry.staging(collection_name)
        try:
            rows = []
            for record in records:
                row, warnings = transform_record(record, collection_name, cfg, staged, self.id_column)
                for warning in warnings:
                    result.warn(warning)
                rows.append(row)

            upsert_rows(self.store, collection_name, cfg.table, rows, staged, result,
                        self.batch_size, self.id_column)
            materialize_links(self.store, collection_name, cfg, records, staged, result,
                              self.batch_size, self.id_column)
            self.store.commit()
        except psycopg2.Error as e:
            self._abort(staged)
            print(f"   ❌ Rollback de '{collection_name}': {e}")
            raise TransactionFailure(collection_name, str(e).strip()) from e
        except Exception:
            self._abort(staged)
            print(f"   ❌ Rollback de '{collection_name}'")
            raise

        # Los ids solo se publican una vez confirmada la transacción
        staged.commit()
        print(f"   ✅ '{collection_name}' confirmada ({len(result.warnings):,} advertencias)")
        self.results.append(result)
        return result

    def _abort(self, staged):
        staged.discard()
        self.store.rollback()

    def migrate(self, plan, extract, preflight_warnings=None):
        """
        Ejecuta un plan ordenado [(coleccion, CollectionConfig), ...].

        Toda la configuración se valida antes de leer ningún registro.

        Args:
            plan: Lista ordenada; cada colección debe aparecer después de las
                colecciones que referencia
            extract: Función extract(coleccion) → iterable de registros
            preflight_warnings: {coleccion: [advertencias]} del pre-flight

        Returns:
            list[CollectionResult]: Un resultado por colección
        """
        validate_plan(plan, self.registry, self.id_column)
        preflight_warnings = preflight_warnings or {}

        results = []
        for collection_name, cfg in plan:
            results.append(self.materialize(
                collection_name, cfg, extract(collection_name),
                preflight_warnings.get(collection_name),
            ))
        return results
