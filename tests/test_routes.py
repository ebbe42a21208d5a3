"""
Route tests using the Flask test client.

The app runs with TestingConfig (no poller at startup) and a real
ImportTracker on top of a mocked backend client.
"""

import io

import pytest

from app import create_app
from core.exceptions import ApiRequestError, ImportValidationError, ServiceUnavailableError
from models.allocation import OrderLineItem, ReceiptPage
from models.job_snapshot import JobType
from services.tracker import ImportTracker


# Fixtures

@pytest.fixture
def tracker(mock_api, page_of):
    mock_api.list_jobs.return_value = page_of()
    tracker = ImportTracker(mock_api, poll_interval_seconds=0.01)
    yield tracker
    tracker.shutdown()


@pytest.fixture
def app(tracker):
    return create_app("config.TestingConfig", tracker=tracker)


@pytest.fixture
def client(app):
    return app.test_client()


def upload(client, filename="My Products.xlsx", job_type="import-products"):
    data = {"file": (io.BytesIO(b"spreadsheet"), filename)}
    if job_type is not None:
        data["type"] = job_type
    return client.post("/api/imports", data=data, content_type="multipart/form-data")


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.get_json()
        assert body["status"] == "ok"
        assert body["checks"]["poller"] == "idle"
        assert body["checks"]["active_jobs"] == 0

    def test_unknown_route_is_json(self, client):
        response = client.get("/nope")

        assert response.status_code == 404
        assert response.get_json()["error"] is True


class TestUpload:

    def test_upload_starts_import(self, client, mock_api, tracker, make_job):
        mock_api.submit_import.return_value = make_job("job-1", "queued")

        response = upload(client)

        assert response.status_code == 202
        assert response.get_json()["job"]["jobId"] == "job-1"
        args = mock_api.submit_import.call_args.args
        assert args[1] == "My_Products.xlsx"
        assert args[2] is JobType.PRODUCTS
        assert tracker.poller.wait_until_idle(timeout=2.0)

    def test_file_required(self, client):
        response = client.post("/api/imports", data={"type": "import-products"})
        assert response.status_code == 400

    def test_type_required(self, client):
        assert upload(client, job_type=None).status_code == 400

    def test_unknown_type(self, client):
        response = upload(client, job_type="import-customers")

        assert response.status_code == 400
        assert "import-products" in response.get_json()["message"]

    def test_unsupported_extension(self, client, mock_api):
        response = upload(client, filename="products.pdf")

        assert response.status_code == 400
        mock_api.submit_import.assert_not_called()

    def test_row_errors(self, client, mock_api):
        mock_api.submit_import.side_effect = ImportValidationError(
            row_errors=[{"row": 4, "message": "Unknown SKU"}],
            imported=0,
            failed=1,
            total_rows=1,
            filename="My_Products.xlsx",
        )

        response = upload(client)

        assert response.status_code == 422
        body = response.get_json()
        assert body["rowErrors"] == [{"row": 4, "message": "Unknown SKU"}]
        assert body["failed"] == 1

    def test_backend_down(self, client, mock_api):
        mock_api.submit_import.side_effect = ServiceUnavailableError("timeout")

        assert upload(client).status_code == 503


class TestJobLists:

    def test_active_jobs_with_type_filter(self, client, tracker, make_job):
        tracker.poller.apply([
            make_job("p", "processing", job_type="import-products"),
            make_job("r", "queued", job_type="import-receipts-inbound"),
        ])

        response = client.get("/api/imports/active?type=import-products")

        body = response.get_json()
        assert response.status_code == 200
        assert [job["jobId"] for job in body["jobs"]] == ["p"]
        assert body["count"] == 1

    def test_invalid_type_filter(self, client):
        assert client.get("/api/imports/active?type=bogus").status_code == 400

    def test_history_from_store(self, client, tracker, mock_api, make_job):
        tracker.poller.apply([make_job("done", "completed")], notify=False)

        response = client.get("/api/imports/history")

        assert [job["jobId"] for job in response.get_json()["jobs"]] == ["done"]
        mock_api.list_jobs.assert_not_called()

    def test_history_page_fetches_from_backend(self, client, mock_api, make_job, page_of):
        mock_api.list_jobs.return_value = page_of(make_job("done", "failed"))

        response = client.get("/api/imports/history?page=2&limit=10&sortOrder=asc")

        assert response.status_code == 200
        assert [job["jobId"] for job in response.get_json()["jobs"]] == ["done"]
        kwargs = mock_api.list_jobs.call_args.kwargs
        assert kwargs["page"] == 2
        assert kwargs["limit"] == 10
        assert kwargs["sort_order"] == "ASC"

    def test_history_bad_sort_order(self, client):
        assert client.get("/api/imports/history?page=1&sortOrder=sideways").status_code == 400

    def test_history_backend_down(self, client, mock_api):
        mock_api.list_jobs.side_effect = ServiceUnavailableError("down")

        assert client.get("/api/imports/history?page=1").status_code == 503

    def test_events_after(self, client, tracker, make_job):
        tracker.poller.apply([make_job("a", "queued")])
        tracker.poller.apply([make_job("a", "completed", minute=5)])

        response = client.get("/api/imports/events?after=1")

        body = response.get_json()
        assert body["lastSeq"] == 2
        assert [event["kind"] for event in body["events"]] == ["completed"]

    def test_job_detail(self, client, tracker, make_job):
        tracker.poller.apply([make_job("a", "queued")])

        assert client.get("/api/imports/a").get_json()["job"]["status"] == "queued"
        assert client.get("/api/imports/zzz").status_code == 404


class TestCancel:

    def test_cancel(self, client, tracker, mock_api, make_job, page_of):
        tracker.poller.apply([make_job("a", "processing")])
        mock_api.list_jobs.return_value = page_of(make_job("a", "cancelled", minute=3))

        response = client.post("/api/imports/a/cancel")

        assert response.status_code == 200
        assert response.get_json()["job"]["status"] == "cancelled"

    def test_cancel_conflict(self, client, mock_api):
        mock_api.cancel_job.side_effect = ApiRequestError("Job already finished", status_code=409)

        response = client.post("/api/imports/a/cancel")

        assert response.status_code == 409
        assert response.get_json()["jobId"] == "a"

    def test_cancel_backend_down(self, client, mock_api):
        mock_api.cancel_job.side_effect = ServiceUnavailableError("down")

        assert client.post("/api/imports/a/cancel").status_code == 503


class TestRemaining:

    def test_remaining(self, client, mock_api):
        mock_api.get_order_items.return_value = [OrderLineItem("P", 10)]
        mock_api.list_receipts.return_value = ReceiptPage(receipts=[
            {"id": "r1", "status": "approved", "details": [{"productId": "P", "quantity": 4}]},
            {"id": "r2", "status": "cancelled", "details": [{"productId": "P", "quantity": 3}]},
        ])

        response = client.get("/api/orders/ord-1/remaining")

        body = response.get_json()
        assert response.status_code == 200
        assert body["ok"] is True
        assert body["lines"][0]["remaining"] == 6

    def test_remaining_failure_is_not_zero(self, client, mock_api):
        mock_api.get_order_items.return_value = [OrderLineItem("P", 10)]
        mock_api.list_receipts.side_effect = ServiceUnavailableError("down")

        response = client.get("/api/orders/ord-1/remaining")

        body = response.get_json()
        assert response.status_code == 502
        assert body["ok"] is False
        assert body["error"] is True
        assert "down" in body["message"]
        assert body["lines"] == []
