"""
Shared fixtures for the import tracker tests.
"""

import pytest
from unittest.mock import MagicMock

from core.api_client import ImportApiClient
from models.job_snapshot import JobPage, JobSnapshot


def job_payload(job_id="job-0001", status="processing", minute=0, job_type="import-products", **extra):
    """Backend-shaped job dict with timestamps on 2026-10-19 10:<minute>."""
    data = {
        "jobId": job_id,
        "type": job_type,
        "status": status,
        "totalRows": 100,
        "processedRows": 0,
        "createdAt": "2026-10-19T10:00:00Z",
        "updatedAt": f"2026-10-19T10:{minute:02d}:00Z",
    }
    data.update(extra)
    return data


@pytest.fixture
def make_job():
    """Factory for JobSnapshot objects."""
    def _make(job_id="job-0001", status="processing", minute=0, **extra):
        return JobSnapshot.from_dict(job_payload(job_id, status, minute, **extra))
    return _make


@pytest.fixture
def page_of():
    """Wrap snapshots in a JobPage."""
    def _page(*jobs):
        return JobPage(jobs=tuple(jobs), total=len(jobs), page=1, limit=100, total_pages=1)
    return _page


@pytest.fixture
def mock_api():
    """MagicMock standing in for ImportApiClient."""
    return MagicMock(spec=ImportApiClient)


@pytest.fixture
def null_body_api():
    """Real ImportApiClient whose session answers every request with 200 and a JSON null."""
    response = MagicMock()
    response.status_code = 200
    response.content = b"null"
    response.json.return_value = None

    session = MagicMock()
    session.headers = {}
    session.request.return_value = response
    return ImportApiClient("http://backend.test/api/v0", session=session)
