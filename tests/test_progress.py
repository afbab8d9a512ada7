# ==============================================
# Tests for Progress Reporting
# ==============================================

import pytest

from docsync.progress import (
    CollectionStatus,
    ImportProgressState,
    ProgressReporter,
    RunStatus,
)

from conftest import FailingChannel, RecordingChannel


@pytest.fixture
def reporter_for(clock):
    def build(channel=None, user_id=None, every_records=5000, every_batches=5):
        state = ImportProgressState(data_source_id=1, user_id=user_id, started_at=clock())
        return ProgressReporter(
            state,
            channel or RecordingChannel(),
            every_records=every_records,
            every_batches=every_batches,
            clock=clock,
        )
    return build


# ==============================================
# State
# ==============================================

class TestProgressState:

    def test_percentage_from_records(self, clock):
        state = ImportProgressState(data_source_id=1, started_at=clock())
        state.seed_collections(["a"])
        state.set_collection_total("a", 200)
        state.record_batch("a", 50, 0)
        state.refresh(clock())
        assert state.percentage == 25

    def test_percentage_from_collections_without_records(self, clock):
        state = ImportProgressState(data_source_id=1, started_at=clock())
        state.seed_collections(["a", "b", "c", "d"])
        state.finish_collection("a")
        state.refresh(clock())
        assert state.percentage == 25

    def test_seeded_totals_cover_the_whole_run(self, clock):
        state = ImportProgressState(data_source_id=1, started_at=clock())
        state.seed_collections(["a", "b"], {"a": 100, "b": 900})
        assert state.total_records == 1000
        assert state.collection("b").record_count == 900

        state.set_collection_total("a", 100)
        state.record_batch("a", 100, 0)
        state.finish_collection("a")
        state.refresh(clock())

        assert state.total_records == 1000
        assert state.percentage == 10

    def test_100_only_when_every_record_is_processed(self, clock):
        state = ImportProgressState(data_source_id=1, started_at=clock())
        state.seed_collections(["a"], {"a": 1000})
        state.record_batch("a", 999, 0)
        state.refresh(clock())
        assert state.percentage == 99

        state.record_batch("a", 1, 0)
        state.refresh(clock())
        assert state.percentage == 100

    def test_percentage_never_decreases(self, clock):
        state = ImportProgressState(data_source_id=1, started_at=clock())
        state.seed_collections(["a", "b"], {"a": 100, "b": 100})
        state.record_batch("a", 100, 0)
        state.refresh(clock())
        assert state.percentage == 50

        # b gained documents between the first count and its own
        state.set_collection_total("b", 300)
        state.refresh(clock())
        assert state.total_records == 400
        assert state.percentage == 50

    def test_completed_is_exactly_100(self, clock):
        state = ImportProgressState(data_source_id=1, started_at=clock())
        state.seed_collections(["a"])
        state.set_collection_total("a", 10)
        state.record_batch("a", 7, 3)
        state.complete()
        state.refresh(clock())
        assert state.percentage == 100
        assert state.status == RunStatus.COMPLETED

    def test_rate_and_eta(self, clock):
        state = ImportProgressState(data_source_id=1, started_at=clock())
        state.seed_collections(["a"])
        state.set_collection_total("a", 1000)
        state.record_batch("a", 250, 0)
        clock.advance(5)
        state.refresh(clock())
        assert state.records_per_second == 50
        assert state.estimated_time_remaining_ms == 15000

    def test_failed_records_count_as_done_for_eta(self, clock):
        state = ImportProgressState(data_source_id=1, started_at=clock())
        state.seed_collections(["a"])
        state.set_collection_total("a", 100)
        state.record_batch("a", 50, 50)
        clock.advance(1)
        state.refresh(clock())
        assert state.estimated_time_remaining_ms is None

    def test_no_eta_before_any_progress(self, clock):
        state = ImportProgressState(data_source_id=1, started_at=clock())
        state.seed_collections(["a"])
        state.set_collection_total("a", 100)
        clock.advance(1)
        state.refresh(clock())
        assert state.records_per_second == 0
        assert state.estimated_time_remaining_ms is None

    def test_collection_transitions(self, clock):
        state = ImportProgressState(data_source_id=1, started_at=clock())
        state.seed_collections(["a", "b"])
        assert [c.status for c in state.collections] == [CollectionStatus.PENDING] * 2

        state.start_collection("a")
        assert state.collection("a").status == CollectionStatus.IN_PROGRESS
        assert state.current_collection == "a"

        state.fail_collection("a", "boom")
        assert state.collection("a").status == CollectionStatus.FAILED
        assert state.collection("a").error_message == "boom"

    def test_to_dict(self, clock):
        state = ImportProgressState(data_source_id=1, user_id=9, started_at=clock())
        state.seed_collections(["a"])
        payload = state.to_dict()
        assert payload["status"] == "in_progress"
        assert payload["collections"][0] == {
            "name": "a",
            "status": "pending",
            "record_count": None,
            "processed_count": 0,
            "failed_count": 0,
            "error_message": None,
        }


# ==============================================
# Reporter
# ==============================================

class TestProgressReporter:

    def test_routes_to_user(self, reporter_for):
        channel = RecordingChannel()
        reporter_for(channel, user_id=42).emit()
        target, event, payload = channel.events[0]
        assert target == 42
        assert event == "document-import-progress"
        assert payload["user_id"] == 42

    def test_broadcast_without_user(self, reporter_for):
        channel = RecordingChannel()
        reporter_for(channel).emit()
        assert channel.events[0][0] is None

    def test_publish_failure_is_swallowed(self, reporter_for):
        channel = FailingChannel()
        reporter = reporter_for(channel)
        reporter.start_run(["a"])
        reporter.emit()
        assert channel.calls == 2
        assert reporter.emitted == 0

    def test_transitions_always_emit(self, reporter_for):
        channel = RecordingChannel()
        reporter = reporter_for(channel)
        reporter.start_run(["a"])
        reporter.start_collection("a")
        reporter.set_collection_total("a", 10)
        reporter.finish_collection("a")
        reporter.complete_run()
        assert len(channel.events) == 5
        assert channel.payloads[-1]["percentage"] == 100

    def test_batches_throttled_every_nth(self, reporter_for):
        channel = RecordingChannel()
        reporter = reporter_for(channel, every_batches=5)
        reporter.start_run(["a"])
        reporter.start_collection("a")
        reporter.set_collection_total("a", 1000)
        before = len(channel.events)

        emitted = [reporter.record_batch("a", 10, 0) for _ in range(10)]

        assert emitted == [False, False, False, False, True] * 2
        assert len(channel.events) - before == 2

    def test_batches_emit_on_record_milestone(self, reporter_for):
        channel = RecordingChannel()
        reporter = reporter_for(channel, every_records=5000, every_batches=1000)
        reporter.start_run(["a"])
        reporter.start_collection("a")

        assert reporter.record_batch("a", 3000, 0) is False
        assert reporter.record_batch("a", 3000, 0) is True
        assert reporter.record_batch("a", 3000, 0) is False
        assert reporter.record_batch("a", 1000, 0) is True

    def test_batch_counter_restarts_per_collection(self, reporter_for):
        reporter = reporter_for(every_batches=2)
        reporter.start_run(["a", "b"])
        reporter.start_collection("a")
        reporter.record_batch("a", 1, 0)
        reporter.finish_collection("a")
        reporter.start_collection("b")
        assert reporter.record_batch("b", 1, 0) is False
        assert reporter.record_batch("b", 1, 0) is True

    def test_percentage_monotonic_across_emits(self, reporter_for):
        channel = RecordingChannel()
        reporter = reporter_for(channel, every_batches=1)
        reporter.start_run(["a", "b"])
        reporter.start_collection("a")
        reporter.set_collection_total("a", 100)
        reporter.record_batch("a", 100, 0)
        reporter.finish_collection("a")
        reporter.start_collection("b")
        reporter.set_collection_total("b", 100)
        reporter.record_batch("b", 50, 0)
        reporter.record_batch("b", 50, 0)
        reporter.finish_collection("b")
        reporter.complete_run()

        percentages = [p["percentage"] for p in channel.payloads]
        assert percentages == sorted(percentages)
        assert percentages[-1] == 100

    def test_start_run_publishes_totals(self, reporter_for):
        channel = RecordingChannel()
        reporter = reporter_for(channel)
        reporter.start_run(["a", "b"], {"a": 10, "b": 3000})
        payload = channel.payloads[-1]
        assert payload["total_records"] == 3010
        assert [c["record_count"] for c in payload["collections"]] == [10, 3000]
        assert payload["percentage"] == 0
