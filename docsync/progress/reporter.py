# ==============================================
# ProgressReporter
# ==============================================
#
# PURPOSE:
#   Drive an ImportProgressState through its transitions and
#   publish it to a progress channel, without ever letting a
#   publish failure reach the import.
#
# WHY THIS CLASS EXISTS:
#   A large import produces thousands of batches. Publishing after
#   each one would flood listeners, so inside the batch loop events
#   are throttled. Run and collection transitions always publish.
#
# CLASS: ProgressReporter
# -----------------------
#   Stateful: one per run, owns that run's ImportProgressState.
#
#   Constructor:
#   ------------
#   - __init__(state, channel, event_name="document-import-progress",
#              every_records=5000, every_batches=5, clock=utcnow)
#
#   Methods:
#   --------
#   - emit() -> None                     refresh + publish, never raises
#   - start_run(names, totals=None)      always emits
#   - start_collection(name)             always emits
#   - set_collection_total(name, total)  always emits
#   - record_batch(name, succeeded, failed) -> bool
#       Emits only when a records milestone is crossed or on every
#       Nth batch of the collection. Returns whether it emitted.
#   - finish_collection(name) / fail_collection(name, message)
#   - complete_run() / fail_run(message)
#
# ROUTING:
# --------
#   publish(user_id, event, payload) when the run has an owner,
#   publish(None, event, payload) (broadcast) otherwise.
#
# ==============================================

from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Protocol

import structlog

from docsync.persistence.models import utcnow
from .state import ImportProgressState

logger = structlog.get_logger()

DEFAULT_EVENT = "document-import-progress"


class ProgressChannel(Protocol):
    def publish(self, target: Optional[int], event: str, payload: Dict[str, Any]) -> None:
        ...


class LoggingProgressChannel:
    """Channel that writes progress events to the log."""

    def publish(self, target: Optional[int], event: str, payload: Dict[str, Any]) -> None:
        logger.info(
            "Import progress",
            progress_event=event,
            target=target if target is not None else "broadcast",
            status=payload.get("status"),
            percentage=payload.get("percentage"),
            processed_records=payload.get("processed_records"),
            total_records=payload.get("total_records"),
            collection=payload.get("current_collection"),
            eta_ms=payload.get("estimated_time_remaining_ms"),
        )


class ProgressReporter:
    def __init__(
        self,
        state: ImportProgressState,
        channel: ProgressChannel,
        event_name: str = DEFAULT_EVENT,
        every_records: int = 5000,
        every_batches: int = 5,
        clock: Callable[[], datetime] = utcnow
    ):
        self.state = state
        self.channel = channel
        self.event_name = event_name
        self.every_records = max(1, every_records)
        self.every_batches = max(1, every_batches)
        self.clock = clock
        self.emitted = 0
        self._batches_in_collection = 0

    @property
    def target(self) -> Optional[int]:
        return self.state.user_id if self.state.user_id else None

    def emit(self) -> None:
        self.state.refresh(self.clock())
        payload = self.state.to_dict()
        try:
            self.channel.publish(self.target, self.event_name, payload)
            self.emitted += 1
        except Exception as e:
            logger.warning("Failed to publish progress", data_source_id=self.state.data_source_id, error=str(e))

    # --- Run level ---

    def start_run(self, collection_names: Iterable[str], totals: Optional[Mapping[str, int]] = None) -> None:
        self.state.seed_collections(collection_names, totals)
        self.emit()

    def complete_run(self) -> None:
        self.state.complete()
        self.emit()

    def fail_run(self, message: str) -> None:
        self.state.fail(message)
        self.emit()

    # --- Collection level ---

    def start_collection(self, name: str) -> None:
        self.state.start_collection(name)
        self._batches_in_collection = 0
        self.emit()

    def set_collection_total(self, name: str, total: int) -> None:
        self.state.set_collection_total(name, total)
        self.emit()

    def record_batch(self, name: str, succeeded: int, failed: int) -> bool:
        before = self.state.processed_records + self.state.failed_records
        self.state.record_batch(name, succeeded, failed)
        after = self.state.processed_records + self.state.failed_records
        self._batches_in_collection += 1

        crossed_milestone = after // self.every_records > before // self.every_records
        nth_batch = self._batches_in_collection % self.every_batches == 0
        if crossed_milestone or nth_batch:
            self.emit()
            return True
        return False

    def finish_collection(self, name: str) -> None:
        self.state.finish_collection(name)
        self.emit()

    def fail_collection(self, name: str, message: str) -> None:
        self.state.fail_collection(name, message)
        self.emit()
