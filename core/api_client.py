"""
HTTP client for the import / allocation backend.

This module is the request layer every other component talks through.
It owns timeouts and error translation; it does NOT retry. Background
polling retries naturally on its next tick.

THREAD SAFETY:
    - The poller thread and request handlers share one ImportApiClient
    - requests.Session is safe for this use (no per-call session mutation)
    - Each call returns independent data

Usage:
    client = ImportApiClient(
        base_url="http://localhost:3274/api/v0",
        timeout_seconds=10.0,
    )

    # Start an import
    snapshot = client.submit_import(stream, "products.xlsx", JobType.PRODUCTS)

    # Poll active jobs
    page = client.list_jobs(only_active=True)

    # Cancel
    client.cancel_job(snapshot.job_id)
"""

from __future__ import annotations

import logging
from typing import Dict, Any, BinaryIO, List, Optional

import requests

from models.allocation import OrderLineItem, ReceiptPage
from models.job_snapshot import JobPage, JobSnapshot, JobType
from .exceptions import (
    ApiRequestError,
    ImportSubmissionError,
    ImportValidationError,
    ServiceUnavailableError,
)


class ImportApiClient:
    """
    Wrapper around the backend's import, receipt and order endpoints.

    This class provides methods for:
    - Submitting spreadsheet imports
    - Listing import jobs (active only, or full history)
    - Cancelling an import job
    - Listing outbound receipts for an order (paginated)
    - Fetching an order's line items

    Error translation:
    - Timeouts, connection errors, 5xx, non-JSON bodies -> ServiceUnavailableError
    - Other non-2xx responses -> ApiRequestError
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout_seconds: float = 10.0,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the API client.

        Args:
            base_url: Backend base URL (e.g. http://host/api/v0)
            token: Optional bearer token sent with every request
            timeout_seconds: Per-request timeout
            session: Shared requests.Session (created if not provided)
            logger: Logger instance (creates default if not provided)

        Raises:
            ValueError: If base_url is empty
        """
        if not base_url:
            raise ValueError("base_url is required")

        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._session = session or requests.Session()
        self._logger = logger or logging.getLogger("import_tracker.core.api_client")

        if token:
            self._session.headers["Authorization"] = f"Bearer {token}"

    @property
    def base_url(self) -> str:
        return self._base_url

    # =========================================================================
    # IMPORT JOBS
    # =========================================================================

    def submit_import(
        self,
        stream: BinaryIO,
        filename: str,
        job_type: JobType
    ) -> JobSnapshot:
        """
        Upload a spreadsheet and start a background import.

        Args:
            stream: File-like object with the spreadsheet bytes
            filename: Original (sanitized) filename
            job_type: What the spreadsheet contains

        Returns:
            Initial JobSnapshot (normally status=queued)

        Raises:
            ImportValidationError: If the backend rejected rows up front
            ImportSubmissionError: If the backend refused the upload
            ServiceUnavailableError: On transport failure
        """
        self._logger.info(f"Submitting {job_type.value} import: {filename}")

        try:
            body = self._request(
                "POST",
                "/imports",
                files={"file": (filename, stream)},
                data={"type": job_type.value},
            )
        except ApiRequestError as e:
            payload = e.payload
            details = payload.get("details") if isinstance(payload.get("details"), dict) else {}
            row_errors = payload.get("errors") or details.get("errors") or []
            if row_errors:
                imported = payload.get("imported", details.get("imported", 0))
                failed = payload.get("failed", details.get("failed", len(row_errors)))
                raise ImportValidationError(
                    row_errors=row_errors,
                    imported=imported,
                    failed=failed,
                    total_rows=payload.get("totalRows", details.get("totalRows", imported + failed)),
                    filename=filename,
                )
            raise ImportSubmissionError(e.message, filename=filename)

        try:
            snapshot = JobSnapshot.from_dict(self._unwrap(body))
        except (ValueError, AttributeError) as e:
            raise ImportSubmissionError(f"Backend returned no usable job snapshot: {e}", filename=filename)

        self._logger.info(f"Import queued: job={snapshot.job_id} status={snapshot.status.value}")
        return snapshot

    def list_jobs(
        self,
        only_active: bool = False,
        job_type: Optional[JobType] = None,
        sort_by: str = "createdAt",
        sort_order: str = "DESC",
        page: int = 1,
        limit: int = 20
    ) -> JobPage:
        """
        List import jobs.

        Args:
            only_active: Only queued / processing jobs
            job_type: Restrict to one import kind
            sort_by: Backend sort field
            sort_order: "ASC" or "DESC"
            page: 1-based page number
            limit: Page size

        Returns:
            JobPage with parsed snapshots
        """
        params: Dict[str, Any] = {
            "onlyActive": "true" if only_active else "false",
            "sortBy": sort_by,
            "sortOrder": sort_order,
            "page": page,
            "limit": limit,
        }
        if job_type is not None:
            params["type"] = job_type.value

        body = self._request("GET", "/imports", params=params)
        try:
            job_page = JobPage.from_response(self._expect_listing(body, "/imports"))
        except (AttributeError, TypeError) as e:
            raise ServiceUnavailableError(f"GET /imports returned a malformed listing: {e}")

        self._logger.debug(
            f"Listed {len(job_page.jobs)} jobs (only_active={only_active}, page={page})"
        )
        return job_page

    def cancel_job(self, job_id: str) -> Optional[JobSnapshot]:
        """
        Request cancellation of an import job.

        Returns:
            Updated snapshot when the backend returns one, None for a bare
            acknowledgement
        """
        self._logger.info(f"Requesting cancellation of job {job_id}")
        body = self._unwrap(self._request("POST", f"/imports/{job_id}/cancel"))

        if isinstance(body, dict) and body.get("status"):
            try:
                return JobSnapshot.from_dict({"jobId": job_id, **body})
            except ValueError:
                self._logger.debug(f"Cancel response for {job_id} is an acknowledgement only")
        return None

    # =========================================================================
    # RECEIPTS / ORDERS
    # =========================================================================

    def list_receipts(
        self,
        order_id: str,
        page: int = 1,
        limit: int = 100,
        receipt_type: str = "export"
    ) -> ReceiptPage:
        """Fetch one page of outbound receipts for an order."""
        params = {"orderId": order_id, "type": receipt_type, "page": page, "limit": limit}
        body = self._request("GET", "/receipts", params=params)
        try:
            return ReceiptPage.from_response(self._expect_listing(body, "/receipts"), page=page, limit=limit)
        except (AttributeError, TypeError) as e:
            raise ServiceUnavailableError(f"GET /receipts returned a malformed listing: {e}")

    def get_order_items(self, order_id: str) -> List[OrderLineItem]:
        """Fetch an order's line items."""
        path = f"/orders/{order_id}"
        body = self._unwrap(self._request("GET", path))
        raw_items = body.get("items") if isinstance(body, dict) else None
        if raw_items is None and isinstance(body, dict):
            raw_items = body.get("orderItems", body.get("order_items", []))
        if not isinstance(raw_items, list):
            raise ServiceUnavailableError(
                f"GET {path} returned no line item list", url=f"{self._base_url}{path}"
            )
        return [OrderLineItem.from_dict(item) for item in raw_items if isinstance(item, dict)]

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self._session.close()

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _request(self, method: str, path: str, **kwargs) -> Any:
        """
        Execute one HTTP request and return the decoded JSON body.

        Raises:
            ServiceUnavailableError: Timeout, connection error, 5xx, bad JSON
            ApiRequestError: Any other non-2xx status
        """
        url = f"{self._base_url}{path}"

        try:
            response = self._session.request(method, url, timeout=self._timeout, **kwargs)
        except requests.Timeout:
            raise ServiceUnavailableError(f"{method} {path} timed out after {self._timeout:.1f}s", url=url)
        except requests.RequestException as e:
            raise ServiceUnavailableError(f"{method} {path} failed: {e}", url=url)

        if response.status_code >= 500:
            raise ServiceUnavailableError(
                f"{method} {path} returned HTTP {response.status_code}", url=url
            )

        if not response.content:
            body: Any = {}
        else:
            try:
                body = response.json()
            except ValueError:
                raise ServiceUnavailableError(f"{method} {path} returned a non-JSON body", url=url)

        if response.status_code >= 400:
            message = body.get("message") if isinstance(body, dict) else None
            self._logger.debug(f"{method} {path} -> HTTP {response.status_code}: {message}")
            raise ApiRequestError(
                message or f"{method} {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
                url=url,
                payload=body if isinstance(body, dict) else None,
            )

        return body

    def _expect_listing(self, body: Any, path: str) -> Any:
        """Reject a 2xx listing body that is neither an object nor an array."""
        if not isinstance(body, (dict, list)):
            raise ServiceUnavailableError(
                f"GET {path} returned a {type(body).__name__} body instead of a listing",
                url=f"{self._base_url}{path}",
            )
        return body

    @staticmethod
    def _unwrap(body: Any) -> Any:
        """Strip the backend's optional ``data`` envelope."""
        if isinstance(body, dict) and isinstance(body.get("data"), dict):
            return body["data"]
        return body
