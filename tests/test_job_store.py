"""
Unit tests for the JobStore merge rules.

The store has no network access, so no mocks are needed here.
"""

import random

import pytest

from models.job_snapshot import JobStatus, JobType
from services.job_store import JobStore


@pytest.fixture
def store():
    return JobStore()


class TestMerge:
    """Snapshot replacement rules."""

    def test_unknown_job_is_inserted(self, store, make_job):
        applied = store.merge([make_job("a", "queued")])

        assert len(applied) == 1
        assert store.get("a").status is JobStatus.QUEUED
        assert len(store) == 1

    def test_newer_snapshot_replaces_running_job(self, store, make_job):
        store.merge([make_job("a", "processing", minute=1, processedRows=10)])
        store.merge([make_job("a", "processing", minute=2, processedRows=40)])

        assert store.get("a").processed_rows == 40

    def test_older_snapshot_is_discarded(self, store, make_job):
        store.merge([make_job("a", "processing", minute=5, processedRows=80)])
        applied = store.merge([make_job("a", "processing", minute=3, processedRows=20)])

        assert applied == []
        assert store.get("a").processed_rows == 80

    def test_snapshot_without_timestamp_replaces_running_job(self, store, make_job):
        store.merge([make_job("a", "queued", minute=5)])
        store.merge([make_job("a", "processing", createdAt=None, updatedAt=None)])

        assert store.get("a").status is JobStatus.PROCESSING

    def test_terminal_job_never_returns_to_running(self, store, make_job):
        store.merge([make_job("a", "completed", minute=5)])
        applied = store.merge([make_job("a", "processing", minute=9)])

        assert applied == []
        assert store.get("a").status is JobStatus.COMPLETED

    def test_terminal_job_keeps_its_status(self, store, make_job):
        store.merge([make_job("a", "cancelled", minute=5)])
        store.merge([make_job("a", "completed", minute=6)])

        assert store.get("a").status is JobStatus.CANCELLED

    def test_same_terminal_status_may_refresh_counters(self, store, make_job):
        store.merge([make_job("a", "completed", minute=5, imported=90)])
        store.merge([make_job("a", "completed", minute=6, imported=95, failed=5)])

        job = store.get("a")
        assert job.status is JobStatus.COMPLETED
        assert job.imported == 95
        assert job.failed == 5

    def test_merge_returns_only_applied_snapshots(self, store, make_job):
        store.merge([make_job("a", "failed", minute=5)])
        applied = store.merge([
            make_job("a", "processing", minute=6),
            make_job("b", "queued", minute=1),
        ])

        assert [job.job_id for job in applied] == ["b"]


class TestPartitions:
    """Running vs. history views."""

    def test_active_jobs_oldest_first(self, store, make_job):
        store.merge([
            make_job("late", "processing", createdAt="2026-10-19T10:30:00Z"),
            make_job("early", "queued", createdAt="2026-10-19T09:00:00Z"),
            make_job("done", "completed", createdAt="2026-10-19T08:00:00Z"),
        ])

        assert [job.job_id for job in store.active_jobs()] == ["early", "late"]

    def test_history_newest_first(self, store, make_job):
        store.merge([
            make_job("old", "completed", createdAt="2026-10-18T10:00:00Z"),
            make_job("new", "failed", createdAt="2026-10-19T10:00:00Z"),
            make_job("mid", "cancelled", createdAt="2026-10-18T18:00:00Z"),
            make_job("running", "processing"),
        ])

        assert [job.job_id for job in store.history_jobs()] == ["new", "mid", "old"]

    def test_type_filter_includes_untyped_jobs(self, store, make_job):
        store.merge([
            make_job("p", "processing", job_type="import-products"),
            make_job("r", "processing", job_type="import-receipts-inbound"),
            make_job("legacy", "processing", job_type=None),
        ])

        ids = {job.job_id for job in store.active_jobs(JobType.PRODUCTS)}
        assert ids == {"p", "legacy"}

    def test_has_active_jobs(self, store, make_job):
        assert not store.has_active_jobs()
        store.merge([make_job("a", "completed")])
        assert not store.has_active_jobs()
        store.merge([make_job("b", "queued")])
        assert store.has_active_jobs()

    def test_clear(self, store, make_job):
        store.merge([make_job("a", "queued"), make_job("b", "completed")])

        assert store.clear() == 2
        assert len(store) == 0


class TestMonotonicStatus:
    """A job's stored status never leaves a terminal status, whatever the arrival order."""

    @pytest.mark.parametrize("terminal", ["completed", "failed", "cancelled"])
    def test_shuffled_arrival_order(self, make_job, terminal):
        rng = random.Random(20261019)

        for _ in range(50):
            snapshots = [make_job("a", "queued", minute=0)]
            snapshots += [make_job("a", "processing", minute=m) for m in range(1, 8)]
            snapshots.append(make_job("a", terminal, minute=8))
            rng.shuffle(snapshots)

            store = JobStore()
            seen_terminal = None
            for snapshot in snapshots:
                store.merge([snapshot])
                status = store.get("a").status
                if seen_terminal is not None:
                    assert status is seen_terminal
                elif status.is_terminal:
                    seen_terminal = status

            assert store.get("a").status is JobStatus(terminal)
