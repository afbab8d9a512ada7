# ==============================================
# Catalog Models
# ==============================================
#
# PURPOSE:
#   Plain data objects for the three catalog tables, plus the
#   status/type enums they share.
#
# CLASSES:
# --------
# - SyncStatus(Enum)  pending, in_progress, completed, partial, failed
# - SyncType(Enum)    full, incremental
# - DataSource          → row of `data_sources`
# - TableMetadataEntry  → row of `table_metadata`
# - SyncHistoryRecord   → row of `sync_history`
#
# Each model has from_row(dict) (a DictCursor row) and to_dict().
#
# ==============================================

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


def utcnow() -> datetime:
    """Naive UTC timestamp, the form DATETIME columns store."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class SyncStatus(Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    PARTIAL = "partial"      # some records synced, some failed
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SyncStatus.COMPLETED, SyncStatus.PARTIAL, SyncStatus.FAILED)


class SyncType(Enum):
    FULL = "full"
    INCREMENTAL = "incremental"


@dataclass
class DataSource:
    """A MongoDB database registered for import."""
    id: int
    name: str
    connection_string: str
    owner_id: Optional[int] = None
    sync_status: SyncStatus = SyncStatus.PENDING
    last_sync_at: Optional[datetime] = None
    sync_error_message: Optional[str] = None
    total_records_synced: int = 0

    @staticmethod
    def from_row(row: Dict[str, Any]) -> "DataSource":
        return DataSource(
            id=row["id"],
            name=row["name"],
            connection_string=row["connection_string"],
            owner_id=row.get("owner_id"),
            sync_status=SyncStatus(row.get("sync_status") or SyncStatus.PENDING.value),
            last_sync_at=row.get("last_sync_at"),
            sync_error_message=row.get("sync_error_message"),
            total_records_synced=row.get("total_records_synced") or 0,
        )

    def to_dict(self) -> Dict[str, Any]:
        # connection_string carries credentials, never serialized
        return {
            "id": self.id,
            "name": self.name,
            "owner_id": self.owner_id,
            "sync_status": self.sync_status.value,
            "last_sync_at": _iso(self.last_sync_at),
            "sync_error_message": self.sync_error_message,
            "total_records_synced": self.total_records_synced,
        }


@dataclass
class TableMetadataEntry:
    data_source_id: int
    schema_name: str
    physical_table_name: str
    logical_name: str
    owner_id: Optional[int] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    @staticmethod
    def from_row(row: Dict[str, Any]) -> "TableMetadataEntry":
        return TableMetadataEntry(
            id=row.get("id"),
            data_source_id=row["data_source_id"],
            owner_id=row.get("owner_id"),
            schema_name=row["schema_name"],
            physical_table_name=row["physical_table_name"],
            logical_name=row["logical_name"],
            created_at=row.get("created_at"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "data_source_id": self.data_source_id,
            "owner_id": self.owner_id,
            "schema_name": self.schema_name,
            "physical_table_name": self.physical_table_name,
            "logical_name": self.logical_name,
            "created_at": _iso(self.created_at),
        }


@dataclass
class SyncHistoryRecord:
    """One attempt to import one collection."""
    data_source_id: int
    collection_name: str
    table_name: str
    sync_type: SyncType = SyncType.FULL
    status: SyncStatus = SyncStatus.IN_PROGRESS
    records_synced: int = 0
    records_failed: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    error_message: Optional[str] = None
    id: Optional[int] = None

    @staticmethod
    def from_row(row: Dict[str, Any]) -> "SyncHistoryRecord":
        return SyncHistoryRecord(
            id=row.get("id"),
            data_source_id=row["data_source_id"],
            collection_name=row["collection_name"],
            table_name=row["table_name"],
            sync_type=SyncType(row.get("sync_type") or SyncType.FULL.value),
            status=SyncStatus(row.get("status") or SyncStatus.IN_PROGRESS.value),
            records_synced=row.get("records_synced") or 0,
            records_failed=row.get("records_failed") or 0,
            started_at=row.get("started_at"),
            completed_at=row.get("completed_at"),
            duration_ms=row.get("duration_ms"),
            error_message=row.get("error_message"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "data_source_id": self.data_source_id,
            "collection_name": self.collection_name,
            "table_name": self.table_name,
            "sync_type": self.sync_type.value,
            "status": self.status.value,
            "records_synced": self.records_synced,
            "records_failed": self.records_failed,
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
            "duration_ms": self.duration_ms,
            "error_message": self.error_message,
        }


def terminal_status(records_synced: int, records_failed: int, error_message: Optional[str] = None) -> SyncStatus:
    """Status a finished collection import ends in."""
    if error_message or records_failed > 0:
        return SyncStatus.PARTIAL if records_synced > 0 else SyncStatus.FAILED
    return SyncStatus.COMPLETED
