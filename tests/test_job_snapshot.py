"""
Unit tests for the job snapshot models.
"""

from datetime import datetime, timezone

import pytest

from models.job_snapshot import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    ImportRowError,
    JobPage,
    JobSnapshot,
    JobStatus,
    JobType,
    matches_type,
    parse_timestamp,
)


class TestJobStatus:
    """Lifecycle classification."""

    def test_terminal_and_active_partition(self):
        for status in JobStatus:
            assert status.is_terminal != status.is_active
        assert ACTIVE_STATUSES | TERMINAL_STATUSES == set(JobStatus)
        assert not ACTIVE_STATUSES & TERMINAL_STATUSES

    def test_terminal_statuses(self):
        assert JobStatus.COMPLETED.is_terminal
        assert JobStatus.FAILED.is_terminal
        assert JobStatus.CANCELLED.is_terminal
        assert JobStatus.QUEUED.is_active
        assert JobStatus.PROCESSING.is_active


class TestJobType:

    def test_parse_known_values(self):
        assert JobType.parse("import-products") is JobType.PRODUCTS
        assert JobType.parse("IMPORT-RECEIPTS-OUTBOUND") is JobType.RECEIPTS_OUTBOUND

    def test_parse_unknown_or_empty_is_untyped(self):
        assert JobType.parse("import-customers") is None
        assert JobType.parse("") is None
        assert JobType.parse(None) is None

    def test_untyped_jobs_match_every_filter(self):
        assert matches_type(None, JobType.PRODUCTS)
        assert matches_type(JobType.PRODUCTS, None)
        assert matches_type(JobType.PRODUCTS, JobType.PRODUCTS)
        assert not matches_type(JobType.RECEIPTS_INBOUND, JobType.PRODUCTS)


class TestParseTimestamp:

    def test_iso_with_z_suffix(self):
        parsed = parse_timestamp("2026-10-19T10:15:00Z")
        assert parsed == datetime(2026, 10, 19, 10, 15, tzinfo=timezone.utc)

    def test_epoch_milliseconds(self):
        parsed = parse_timestamp(0)
        assert parsed == datetime(1970, 1, 1, tzinfo=timezone.utc)

    def test_naive_values_are_utc(self):
        parsed = parse_timestamp(datetime(2026, 10, 19, 10, 0))
        assert parsed.tzinfo is timezone.utc

    def test_garbage_is_none(self):
        assert parse_timestamp("yesterday") is None
        assert parse_timestamp("") is None


class TestJobSnapshotFromDict:
    """Parsing backend payloads."""

    def test_camel_case_payload(self):
        snapshot = JobSnapshot.from_dict({
            "jobId": "a1b2c3d4-0000",
            "type": "import-products",
            "status": "processing",
            "totalRows": 200,
            "processedRows": 50,
            "imported": 48,
            "failed": 2,
            "createdAt": "2026-10-19T10:00:00Z",
            "updatedAt": "2026-10-19T10:01:00Z",
        })

        assert snapshot.job_id == "a1b2c3d4-0000"
        assert snapshot.status is JobStatus.PROCESSING
        assert snapshot.type is JobType.PRODUCTS
        assert snapshot.percent == 25.0
        assert snapshot.imported == 48
        assert snapshot.failed == 2
        assert snapshot.is_active

    def test_snake_case_payload(self):
        snapshot = JobSnapshot.from_dict({
            "job_id": "j-1",
            "status": "completed",
            "total_rows": 10,
            "processed_rows": 10,
            "finished_at": "2026-10-19T10:05:00Z",
        })

        assert snapshot.job_id == "j-1"
        assert snapshot.is_terminal
        assert snapshot.percent == 100.0
        assert snapshot.finished_at == datetime(2026, 10, 19, 10, 5, tzinfo=timezone.utc)

    def test_american_spelling_of_cancelled(self):
        snapshot = JobSnapshot.from_dict({"jobId": "j-1", "status": "canceled"})
        assert snapshot.status is JobStatus.CANCELLED

    def test_percent_is_clamped(self):
        assert JobSnapshot.from_dict({"jobId": "j", "status": "processing", "percent": 140}).percent == 100.0
        assert JobSnapshot.from_dict({"jobId": "j", "status": "processing", "percent": -3}).percent == 0.0

    def test_negative_counters_are_floored(self):
        snapshot = JobSnapshot.from_dict({"jobId": "j", "status": "queued", "totalRows": -5})
        assert snapshot.total_rows == 0
        assert snapshot.percent == 0.0

    def test_row_errors_preserve_order(self):
        snapshot = JobSnapshot.from_dict({
            "jobId": "j",
            "status": "completed",
            "errors": [
                {"row": 7, "message": "Unknown SKU", "code": "SKU_NOT_FOUND"},
                {"row": "3", "reason": "Quantity must be positive"},
                "Sheet 2 ignored",
            ],
        })

        assert snapshot.errors == (
            ImportRowError(row=7, reason="Unknown SKU", code="SKU_NOT_FOUND"),
            ImportRowError(row=3, reason="Quantity must be positive"),
            ImportRowError(row=None, reason="Sheet 2 ignored"),
        )
        # Row errors never change the status on their own
        assert snapshot.status is JobStatus.COMPLETED

    def test_missing_id_raises(self):
        with pytest.raises(ValueError):
            JobSnapshot.from_dict({"status": "queued"})

    def test_unknown_status_raises(self):
        with pytest.raises(ValueError):
            JobSnapshot.from_dict({"jobId": "j", "status": "paused"})

    def test_observed_at_prefers_updated_at(self):
        snapshot = JobSnapshot.from_dict({
            "jobId": "j",
            "status": "processing",
            "createdAt": "2026-10-19T10:00:00Z",
            "startedAt": "2026-10-19T10:01:00Z",
            "updatedAt": "2026-10-19T10:03:00Z",
        })
        assert snapshot.observed_at == datetime(2026, 10, 19, 10, 3, tzinfo=timezone.utc)

    def test_to_dict_is_camel_case(self):
        snapshot = JobSnapshot.from_dict({
            "jobId": "j",
            "status": "failed",
            "type": "import-receipts-inbound",
            "message": "Workbook is empty",
        })
        data = snapshot.to_dict()

        assert data["jobId"] == "j"
        assert data["status"] == "failed"
        assert data["type"] == "import-receipts-inbound"
        assert data["message"] == "Workbook is empty"
        assert data["createdAt"] is None


class TestJobPage:

    def test_data_envelope(self):
        page = JobPage.from_response({
            "data": {
                "jobs": [
                    {"jobId": "a", "status": "queued"},
                    {"jobId": "b", "status": "completed"},
                ],
                "total": 12,
                "page": 2,
                "limit": 2,
            }
        })

        assert [job.job_id for job in page.jobs] == ["a", "b"]
        assert page.total == 12
        assert page.page == 2
        assert page.total_pages == 6

    def test_bare_list(self):
        page = JobPage.from_response([{"jobId": "a", "status": "processing"}])
        assert len(page.jobs) == 1
        assert page.page == 1

    def test_malformed_jobs_are_skipped(self):
        page = JobPage.from_response({
            "jobs": [
                {"jobId": "a", "status": "queued"},
                {"status": "queued"},
                "not-a-job",
                {"jobId": "c", "status": "exploded"},
            ]
        })
        assert [job.job_id for job in page.jobs] == ["a"]
