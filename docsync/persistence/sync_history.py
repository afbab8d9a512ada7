# ==============================================
# SyncHistoryStore
# ==============================================
#
# PURPOSE:
#   One `sync_history` row per attempt to import one collection.
#   Created as in_progress when the import starts and moved to a
#   terminal status exactly once when it ends.
#
# WHY THIS CLASS EXISTS:
#   Imports run in the background. The history table is how a
#   failure (or a partial import) becomes visible afterwards.
#
# CLASS: SyncHistoryStore
# -----------------------
#   Stateful: holds the catalog MySQLClient and a clock.
#
#   Methods:
#   --------
#   - create(data_source_id, collection_name, table_name, sync_type)
#         -> SyncHistoryRecord
#   - complete(record, records_synced, records_failed=0, error_message=None)
#         Status from terminal_status(): completed / partial / failed.
#   - mark_failed(record, error_message, records_synced=0, records_failed=0)
#   - get_history(data_source_id, limit=10) -> list[SyncHistoryRecord]
#   - get_last_sync(data_source_id) -> SyncHistoryRecord | None
#   - get_stats(data_source_id, days=30) -> dict
#   - cleanup(days_to_keep=90, data_source_id=None) -> int
#
# ==============================================

from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

import structlog

from .models import SyncHistoryRecord, SyncStatus, SyncType, terminal_status, utcnow

logger = structlog.get_logger()

_COLUMNS = (
    "id, data_source_id, collection_name, table_name, sync_type, status, "
    "records_synced, records_failed, started_at, completed_at, duration_ms, error_message"
)


class SyncHistoryStore:
    def __init__(self, client, clock: Callable[[], datetime] = utcnow):
        self.client = client
        self.clock = clock

    def create(
        self,
        data_source_id: int,
        collection_name: str,
        table_name: str,
        sync_type: SyncType = SyncType.FULL
    ) -> SyncHistoryRecord:
        record = SyncHistoryRecord(
            data_source_id=data_source_id,
            collection_name=collection_name,
            table_name=table_name,
            sync_type=sync_type,
            status=SyncStatus.IN_PROGRESS,
            started_at=self.clock(),
        )
        record.id = self.client.insert(
            "INSERT INTO sync_history "
            "(data_source_id, collection_name, table_name, sync_type, status, started_at) "
            "VALUES (%s, %s, %s, %s, %s, %s)",
            (
                record.data_source_id,
                record.collection_name,
                record.table_name,
                record.sync_type.value,
                record.status.value,
                record.started_at,
            )
        )
        return record

    def complete(
        self,
        record: SyncHistoryRecord,
        records_synced: int,
        records_failed: int = 0,
        error_message: Optional[str] = None
    ) -> SyncHistoryRecord:
        status = terminal_status(records_synced, records_failed, error_message)
        self._finish(record, status, records_synced, records_failed, error_message)
        logger.info(
            "Sync finished",
            sync_id=record.id,
            status=status.value,
            records_synced=records_synced,
            records_failed=records_failed,
            duration_ms=record.duration_ms,
        )
        return record

    def mark_failed(
        self,
        record: SyncHistoryRecord,
        error_message: str,
        records_synced: int = 0,
        records_failed: int = 0
    ) -> SyncHistoryRecord:
        self._finish(record, SyncStatus.FAILED, records_synced, records_failed, error_message)
        logger.error("Sync failed", sync_id=record.id, error=error_message)
        return record

    def _finish(self, record, status, records_synced, records_failed, error_message) -> None:
        if record.status.is_terminal:
            raise RuntimeError(f"Sync #{record.id} already finished as {record.status.value}")

        completed_at = self.clock()
        duration_ms = None
        if record.started_at is not None:
            duration_ms = int((completed_at - record.started_at).total_seconds() * 1000)

        self.client.execute(
            "UPDATE sync_history SET status = %s, records_synced = %s, records_failed = %s, "
            "completed_at = %s, duration_ms = %s, error_message = %s WHERE id = %s",
            (status.value, records_synced, records_failed, completed_at, duration_ms, error_message, record.id)
        )

        record.status = status
        record.records_synced = records_synced
        record.records_failed = records_failed
        record.completed_at = completed_at
        record.duration_ms = duration_ms
        record.error_message = error_message

    def get_history(self, data_source_id: int, limit: int = 10) -> List[SyncHistoryRecord]:
        rows = self.client.fetch_all(
            f"SELECT {_COLUMNS} FROM sync_history WHERE data_source_id = %s "
            "ORDER BY started_at DESC, id DESC LIMIT %s",
            (data_source_id, limit)
        )
        return [SyncHistoryRecord.from_row(row) for row in rows]

    def get_last_sync(self, data_source_id: int) -> Optional[SyncHistoryRecord]:
        history = self.get_history(data_source_id, limit=1)
        return history[0] if history else None

    def get_stats(self, data_source_id: int, days: int = 30) -> Dict[str, Any]:
        """
        Aggregate the history of one data source over the last `days` days.

        Returns:
            {
                "total_syncs": int,
                "successful_syncs": int,
                "failed_syncs": int,
                "partial_syncs": int,
                "total_records_synced": int,
                "average_duration_ms": int,
                "last_sync_at": datetime | None
            }
        """
        cutoff = self.clock() - timedelta(days=days)
        rows = self.client.fetch_all(
            f"SELECT {_COLUMNS} FROM sync_history "
            "WHERE data_source_id = %s AND started_at >= %s ORDER BY started_at DESC",
            (data_source_id, cutoff)
        )
        syncs = [SyncHistoryRecord.from_row(row) for row in rows]

        durations = [s.duration_ms or 0 for s in syncs]
        return {
            "total_syncs": len(syncs),
            "successful_syncs": sum(1 for s in syncs if s.status == SyncStatus.COMPLETED),
            "failed_syncs": sum(1 for s in syncs if s.status == SyncStatus.FAILED),
            "partial_syncs": sum(1 for s in syncs if s.status == SyncStatus.PARTIAL),
            "total_records_synced": sum(s.records_synced for s in syncs),
            "average_duration_ms": round(sum(durations) / len(durations)) if durations else 0,
            "last_sync_at": syncs[0].started_at if syncs else None,
        }

    def cleanup(self, days_to_keep: int = 90, data_source_id: Optional[int] = None) -> int:
        cutoff = self.clock() - timedelta(days=days_to_keep)
        query = "DELETE FROM sync_history WHERE started_at < %s"
        params: list = [cutoff]
        if data_source_id is not None:
            query += " AND data_source_id = %s"
            params.append(data_source_id)

        deleted = self.client.execute(query, params)
        logger.info("Cleaned up sync history", deleted=deleted, days_to_keep=days_to_keep)
        return deleted
