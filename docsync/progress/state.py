# ==============================================
# ImportProgressState
# ==============================================
#
# PURPOSE:
#   The live, in-memory picture of one import run: run status,
#   per-collection status and counters, percentage and ETA.
#
# WHY THIS CLASS EXISTS:
#   Progress is transient. It is created when a run starts, shared
#   by nothing but that run, and thrown away when the run ends. The
#   durable outcome lives in sync_history instead.
#
# STATE MACHINES:
# ---------------
#   Run:        INITIALIZING → IN_PROGRESS → COMPLETED | FAILED
#   Collection: PENDING → IN_PROGRESS → COMPLETED | FAILED
#
# DERIVED VALUES (refresh):
# -------------------------
#   percentage  = floor(processed_records / total_records * 100)
#                 (total > 0), else the same over collections.
#                 Totals are seeded for every collection up front, so
#                 only a finished run reaches 100. Never decreases
#                 within a run, 100 once the run is COMPLETED.
#   rate        = processed_records / elapsed seconds
#   eta_ms      = remaining / rate, None when rate is 0 or nothing
#                 remains (remaining = total - processed - failed)
#
# ==============================================

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional


class RunStatus(Enum):
    INITIALIZING = "initializing"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class CollectionStatus(Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class CollectionProgress:
    name: str
    status: CollectionStatus = CollectionStatus.PENDING
    record_count: Optional[int] = None
    processed_count: int = 0
    failed_count: int = 0
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "record_count": self.record_count,
            "processed_count": self.processed_count,
            "failed_count": self.failed_count,
            "error_message": self.error_message,
        }


@dataclass
class ImportProgressState:
    data_source_id: int
    started_at: datetime
    user_id: Optional[int] = None
    status: RunStatus = RunStatus.INITIALIZING
    total_collections: int = 0
    processed_collections: int = 0
    current_collection: Optional[str] = None
    total_records: int = 0
    processed_records: int = 0
    failed_records: int = 0
    percentage: int = 0
    records_per_second: float = 0.0
    estimated_time_remaining_ms: Optional[int] = None
    last_update_at: Optional[datetime] = None
    error_message: Optional[str] = None
    collections: List[CollectionProgress] = field(default_factory=list)

    # --- Transitions ---

    def seed_collections(self, names: Iterable[str], totals: Optional[Mapping[str, int]] = None) -> None:
        totals = totals or {}
        self.collections = [CollectionProgress(name=name, record_count=totals.get(name)) for name in names]
        self.total_collections = len(self.collections)
        self.total_records = sum(c.record_count or 0 for c in self.collections)
        self.status = RunStatus.IN_PROGRESS

    def collection(self, name: str) -> CollectionProgress:
        for entry in self.collections:
            if entry.name == name:
                return entry
        entry = CollectionProgress(name=name)
        self.collections.append(entry)
        self.total_collections = len(self.collections)
        return entry

    def start_collection(self, name: str) -> CollectionProgress:
        entry = self.collection(name)
        entry.status = CollectionStatus.IN_PROGRESS
        self.current_collection = name
        return entry

    def set_collection_total(self, name: str, total: int) -> None:
        """A recount replaces the seeded total for the collection."""
        entry = self.collection(name)
        self.total_records += total - (entry.record_count or 0)
        entry.record_count = total

    def record_batch(self, name: str, succeeded: int, failed: int) -> None:
        entry = self.collection(name)
        entry.processed_count += succeeded
        entry.failed_count += failed
        self.processed_records += succeeded
        self.failed_records += failed

    def finish_collection(self, name: str) -> None:
        self.collection(name).status = CollectionStatus.COMPLETED
        self.processed_collections += 1
        self.current_collection = None

    def fail_collection(self, name: str, message: str) -> None:
        entry = self.collection(name)
        entry.status = CollectionStatus.FAILED
        entry.error_message = message
        self.current_collection = None

    def complete(self) -> None:
        self.status = RunStatus.COMPLETED
        self.current_collection = None
        self.percentage = 100
        self.estimated_time_remaining_ms = 0

    def fail(self, message: str) -> None:
        self.status = RunStatus.FAILED
        self.error_message = message

    # --- Derived values ---

    @property
    def remaining_records(self) -> int:
        return max(0, self.total_records - self.processed_records - self.failed_records)

    def refresh(self, now: datetime) -> None:
        """Recompute percentage, rate and ETA as of `now`."""
        self.last_update_at = now

        if self.status == RunStatus.COMPLETED:
            self.percentage = 100
            self.estimated_time_remaining_ms = 0
            return

        computed = None
        if self.total_records > 0:
            computed = self.processed_records * 100 // self.total_records
        elif self.total_collections > 0:
            computed = self.processed_collections * 100 // self.total_collections
        if computed is not None:
            # A recount may raise the total mid-run; the percentage holds
            self.percentage = min(100, max(self.percentage, computed))

        elapsed = (now - self.started_at).total_seconds()
        if elapsed > 0 and self.processed_records > 0:
            self.records_per_second = self.processed_records / elapsed
        else:
            self.records_per_second = 0.0

        remaining = self.remaining_records
        if self.records_per_second > 0 and remaining > 0:
            self.estimated_time_remaining_ms = round(remaining / self.records_per_second * 1000)
        else:
            self.estimated_time_remaining_ms = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data_source_id": self.data_source_id,
            "user_id": self.user_id,
            "status": self.status.value,
            "total_collections": self.total_collections,
            "processed_collections": self.processed_collections,
            "current_collection": self.current_collection,
            "total_records": self.total_records,
            "processed_records": self.processed_records,
            "failed_records": self.failed_records,
            "percentage": self.percentage,
            "records_per_second": round(self.records_per_second, 2),
            "estimated_time_remaining_ms": self.estimated_time_remaining_ms,
            "started_at": self.started_at.isoformat(),
            "last_update_at": self.last_update_at.isoformat() if self.last_update_at else None,
            "error_message": self.error_message,
            "collections": [c.to_dict() for c in self.collections],
        }
