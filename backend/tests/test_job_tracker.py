"""Tests for the in-memory job tracker."""

import threading
from concurrent.futures import ThreadPoolExecutor

from studio_api.services.job_tracker import JobStatus, JobTracker


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestJobTracker:
    """Admission, status updates and expiry."""

    def test_unknown_key_has_no_status(self):
        tracker = JobTracker()
        assert tracker.get_status(("p1", "a.mp3")) is None

    def test_begin_records_processing(self):
        tracker = JobTracker()
        assert tracker.begin(("p1", "a.mp3"), "op-1") is True

        operation = tracker.get_status(("p1", "a.mp3"))
        assert operation.status == JobStatus.PROCESSING
        assert operation.to_dict() == {"operationId": "op-1", "status": "processing"}

    def test_second_begin_is_rejected_while_processing(self):
        tracker = JobTracker()
        assert tracker.begin("key") is True
        assert tracker.begin("key") is False
        assert tracker.begin("key", replace_terminal=True) is False

    def test_replace_terminal_admits_after_completion(self):
        tracker = JobTracker()
        tracker.begin("key")
        tracker.set_status("key", JobStatus.COMPLETE, output_id="out.mp3")

        assert tracker.begin("key") is False
        assert tracker.begin("key", replace_terminal=True) is True
        assert tracker.get_status("key").status == JobStatus.PROCESSING

    def test_set_status_keeps_operation_id(self):
        tracker = JobTracker()
        tracker.begin("key", "op-42")
        operation = tracker.set_status("key", JobStatus.ERROR, error="boom")

        assert operation.to_dict() == {"operationId": "op-42", "status": "error", "error": "boom"}

    def test_entries_expire_after_ttl(self):
        clock = FakeClock()
        tracker = JobTracker(ttl_seconds=300, clock=clock)
        tracker.begin("key")
        tracker.set_status("key", JobStatus.COMPLETE, output_id="x")

        clock.now += 300
        assert tracker.get_status("key") is not None

        clock.now += 1
        assert tracker.get_status("key") is None
        assert len(tracker) == 0

    def test_status_write_restarts_ttl(self):
        clock = FakeClock()
        tracker = JobTracker(ttl_seconds=300, clock=clock)
        tracker.begin("key")
        clock.now += 200
        tracker.set_status("key", JobStatus.COMPLETE)
        clock.now += 200

        assert tracker.get_status("key").status == JobStatus.COMPLETE

    def test_concurrent_begin_admits_exactly_one(self):
        tracker = JobTracker()
        barrier = threading.Barrier(16)

        def attempt(_):
            barrier.wait()
            return tracker.begin(("p1", "upload-1"))

        with ThreadPoolExecutor(max_workers=16) as pool:
            results = list(pool.map(attempt, range(16)))

        assert results.count(True) == 1
