# ==============================================
# ImportOrchestrator
# ==============================================
#
# PURPOSE:
#   Import every collection of one data source, sequentially, and
#   record the outcome on the data source.
#
# WHY THIS CLASS EXISTS:
#   CollectionImporter knows one collection. Something has to own
#   the run: the source connection, the progress state, the order
#   of collections, and what the data source looks like afterwards.
#
# CLASS: ImportOrchestrator
# -------------------------
#   Holds only collaborators. Everything that belongs to one run
#   (progress state, reporter, source connection) is created inside
#   import_data_source(), so runs never share mutable state.
#
#   Constructor:
#   ------------
#   - __init__(source_factory, destination_factory, data_source_store,
#              metadata_store, history_store, channel=None,
#              config: ImportConfig = None, clock=utcnow)
#
#   Methods:
#   --------
#   - import_data_source(data_source, options=None, user_id=None)
#         -> ImportRunResult
#       Success → data source completed, last_sync_at, total synced,
#                 progress 100%.
#       Failure → data source failed + message, progress failed,
#                 collections imported so far stay, error re-raised.
#       Always  → source disconnected.
#       Every collection is counted first, so progress knows the
#       total of the whole run before any record is written.
#
# ==============================================

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Optional

import structlog

from docsync.config import ImportConfig
from docsync.importer import CollectionImporter, ImportOptions, build_filter
from docsync.persistence.models import SyncStatus, utcnow
from docsync.progress import ImportProgressState, LoggingProgressChannel, ProgressReporter, RunStatus

logger = structlog.get_logger()


@dataclass
class ImportRunResult:
    data_source_id: int
    status: RunStatus
    records_synced: int = 0
    records_failed: int = 0
    collections: Dict[str, int] = field(default_factory=dict)  # name → records synced
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data_source_id": self.data_source_id,
            "status": self.status.value,
            "records_synced": self.records_synced,
            "records_failed": self.records_failed,
            "collections": dict(self.collections),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


class ImportOrchestrator:
    def __init__(
        self,
        source_factory: Callable[[str], Any],
        destination_factory: Callable[[], Any],
        data_source_store,
        metadata_store,
        history_store,
        channel=None,
        config: Optional[ImportConfig] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.source_factory = source_factory
        self.destination_factory = destination_factory
        self.data_source_store = data_source_store
        self.metadata_store = metadata_store
        self.history_store = history_store
        self.channel = channel or LoggingProgressChannel()
        self.config = config or ImportConfig()
        self.clock = clock

    def _new_reporter(self, data_source_id: int, user_id: Optional[int]) -> ProgressReporter:
        state = ImportProgressState(
            data_source_id=data_source_id,
            user_id=user_id,
            started_at=self.clock(),
        )
        return ProgressReporter(
            state,
            self.channel,
            event_name=self.config.progress_event,
            every_records=self.config.progress_every_records,
            every_batches=self.config.progress_every_batches,
            clock=self.clock,
        )

    def import_data_source(
        self,
        data_source,
        options: Optional[ImportOptions] = None,
        user_id: Optional[int] = None
    ) -> ImportRunResult:
        """
        Run a full (or incremental) import of one data source.

        Args:
            data_source: DataSource to import
            options: ImportOptions for every collection
            user_id: Owner of the run; progress goes only to them when set

        Returns:
            ImportRunResult of a completed run

        Raises:
            The error that failed the run, after the data source has
            been marked failed
        """
        options = options or ImportOptions.from_config(self.config)
        reporter = self._new_reporter(data_source.id, user_id)
        state = reporter.state
        log = logger.bind(data_source_id=data_source.id)

        reporter.emit()
        self.data_source_store.update_sync_status(data_source.id, SyncStatus.IN_PROGRESS, sync_error_message=None)

        source = self.source_factory(data_source.connection_string)
        result = ImportRunResult(data_source_id=data_source.id, status=RunStatus.INITIALIZING, started_at=state.started_at)
        current = None
        try:
            source.connect()
            collections = source.list_collections()
            query = build_filter(data_source, options)
            totals = {name: source.count_documents(name, query) for name in collections}
            log.info(
                "Starting import",
                collections=len(collections),
                total_records=sum(totals.values()),
                incremental=options.incremental,
            )
            reporter.start_run(collections, totals)
            result.status = RunStatus.IN_PROGRESS

            importer = CollectionImporter(
                source,
                self.destination_factory,
                self.metadata_store,
                self.history_store,
                schema_name=self.config.schema_name,
                reporter=reporter,
            )
            for name in collections:
                current = name
                reporter.start_collection(name)
                result.collections[name] = importer.import_collection(data_source, name, options)
                reporter.finish_collection(name)
                current = None

            result.records_synced = state.processed_records
            result.records_failed = state.failed_records
            self.data_source_store.update_sync_status(
                data_source.id,
                SyncStatus.COMPLETED,
                last_sync_at=state.started_at,
                total_records_synced=result.records_synced,
                sync_error_message=None,
            )
            reporter.complete_run()
            result.status = RunStatus.COMPLETED
            result.completed_at = self.clock()
            log.info(
                "Import completed",
                records_synced=result.records_synced,
                records_failed=result.records_failed,
            )
            return result

        except Exception as e:
            message = str(e)
            log.error("Import failed", collection=current, error=message)
            if current is not None:
                reporter.fail_collection(current, message)
            self.data_source_store.update_sync_status(data_source.id, SyncStatus.FAILED, sync_error_message=message)
            reporter.fail_run(message)
            raise

        finally:
            source.disconnect()
