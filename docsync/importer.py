# ==============================================
# CollectionImporter
# ==============================================
#
# PURPOSE:
#   Import one collection of one data source into its destination
#   table. Coordinates all 4 topics for that collection.
#
# FLOW (import_collection):
# -------------------------
#   1. sync_history row → in_progress
#   2. infer schema from a sample           (Topic 2, via the source)
#        no fields → completed with 0 records, nothing else happens
#   3. acquire a destination connection     (released at the end)
#   4. ensure the destination table         (Topic 3: TableManager)
#   5. count documents (incremental filter when asked)
#   6. pick the batch size (adaptive bands)
#   7. stream documents, write every full batch, then the tail
#                                            (Topic 3: BatchWriter)
#   8. sync_history row → completed / partial, or failed + re-raise
#
# ADAPTIVE BATCH SIZE (default d):
# --------------------------------
#   total < 1,000              → min(total, 4d), at least 1
#   1,000 ≤ total < 10,000     → 2d
#   10,000 ≤ total < 100,000   → d
#   100,000 ≤ total < 1M       → max(d // 2, min(500, d))
#   total ≥ 1M                 → max(d // 4, min(250, large band))
#
# ==============================================

from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional

import structlog

from docsync.config import ImportConfig
from docsync.normalization import generate_table_name
from docsync.persistence.models import SyncType
from docsync.storage.batch_writer import BatchWriter
from docsync.storage.table_manager import TableManager

logger = structlog.get_logger()

SMALL_COLLECTION = 1_000
MEDIUM_COLLECTION = 10_000
LARGE_COLLECTION = 100_000
VERY_LARGE_COLLECTION = 1_000_000


@dataclass
class ImportOptions:
    batch_size: int = 1000
    incremental: bool = False
    last_sync_field: Optional[str] = None
    adaptive: bool = True
    sample_size: int = 100

    @classmethod
    def from_config(cls, config: ImportConfig, **overrides: Any) -> "ImportOptions":
        options = cls(
            batch_size=config.batch_size,
            adaptive=config.adaptive_batch_size,
            sample_size=config.sample_size,
        )
        overrides = {k: v for k, v in overrides.items() if v is not None}
        return replace(options, **overrides)

    @property
    def sync_type(self) -> SyncType:
        return SyncType.INCREMENTAL if self.incremental else SyncType.FULL


def calculate_optimal_batch_size(total_records: int, default_batch_size: int) -> int:
    """
    Pick a batch size from the number of documents to import.

    Args:
        total_records: Documents matching the import filter
        default_batch_size: Configured batch size

    Returns:
        Batch size, never larger for a bigger band
    """
    d = max(1, default_batch_size)

    if total_records < SMALL_COLLECTION:
        return max(1, min(total_records, d * 4))
    if total_records < MEDIUM_COLLECTION:
        return d * 2
    if total_records < LARGE_COLLECTION:
        return d

    large = max(d // 2, min(500, d))
    if total_records < VERY_LARGE_COLLECTION:
        return large
    return max(d // 4, min(250, large))


def build_filter(data_source, options: ImportOptions) -> Dict[str, Any]:
    """Incremental runs only read documents newer than the last sync."""
    if options.incremental and options.last_sync_field and data_source.last_sync_at:
        return {options.last_sync_field: {"$gt": data_source.last_sync_at}}
    return {}


class CollectionImporter:
    """
    Imports collections of one data source, one at a time.

    The source is already connected; a destination connection is
    opened per collection from destination_factory.
    """

    def __init__(
        self,
        source,
        destination_factory,
        metadata_store,
        history_store,
        schema_name: str = "mongodb_import",
        reporter=None
    ):
        self.source = source
        self.destination_factory = destination_factory
        self.metadata_store = metadata_store
        self.history_store = history_store
        self.schema_name = schema_name
        self.reporter = reporter

    def import_collection(self, data_source, collection_name: str, options: Optional[ImportOptions] = None) -> int:
        """
        Import one collection.

        Args:
            data_source: DataSource being imported
            collection_name: Collection to import
            options: ImportOptions, defaults when None

        Returns:
            Number of records written successfully

        Raises:
            Any error that stops the collection, after the sync_history
            row has been marked failed
        """
        options = options or ImportOptions()
        log = logger.bind(data_source_id=data_source.id, collection=collection_name)

        table_name = generate_table_name(collection_name, data_source.id)
        history = self.history_store.create(data_source.id, collection_name, table_name, options.sync_type)

        synced = 0
        failed = 0
        try:
            schema = self.source.infer_schema(collection_name, options.sample_size)
            if schema.is_empty:
                log.info("Collection is empty, skipping")
                self.history_store.complete(history, 0, 0)
                return 0

            with self.destination_factory() as destination:
                table = TableManager(destination, self.metadata_store, self.schema_name).ensure_table(
                    table_name,
                    schema.fields,
                    data_source.id,
                    data_source.owner_id,
                    collection_name,
                )

                query = build_filter(data_source, options)
                total = self.source.count_documents(collection_name, query)
                batch_size = (
                    calculate_optimal_batch_size(total, options.batch_size)
                    if options.adaptive
                    else max(1, options.batch_size)
                )
                log.info("Importing collection", table=table_name, documents=total, batch_size=batch_size)
                if self.reporter:
                    self.reporter.set_collection_total(collection_name, total)

                writer = BatchWriter(destination)
                batch: List[Dict[str, Any]] = []
                for document in self.source.stream_documents(collection_name, query, batch_size):
                    batch.append(document)
                    if len(batch) >= batch_size:
                        written, rejected = self._write(writer, table, batch, collection_name)
                        synced += written
                        failed += rejected
                        log.debug("Batch written", processed=synced + failed, total=total)
                        batch = []

                if batch:
                    written, rejected = self._write(writer, table, batch, collection_name)
                    synced += written
                    failed += rejected

        except Exception as e:
            self.history_store.mark_failed(history, str(e), synced, failed)
            raise

        self.history_store.complete(history, synced, failed)
        log.info("Collection imported", records_synced=synced, records_failed=failed)
        return synced

    def _write(self, writer: BatchWriter, table, batch, collection_name: str):
        result = writer.write_batch(table, batch)
        if self.reporter:
            self.reporter.record_batch(collection_name, result.success_count, result.failed_count)
        return result.success_count, result.failed_count
