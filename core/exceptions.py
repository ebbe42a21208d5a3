"""
Custom exceptions for the import tracker.

Exception Hierarchy:
    ImportTrackerError (base)
    ├── ServiceUnavailableError  - Backend unreachable, 5xx or unreadable body
    ├── ApiRequestError          - Backend answered with a non-2xx status
    ├── ImportSubmissionError    - Import could not be started
    │   └── ImportValidationError    - Backend rejected rows before queueing
    ├── CancellationError        - Cancel request for a job failed
    └── AllocationComputationError - Allocation aggregation aborted

Usage:
    Transport errors raised during background polling are logged and the tick
    is skipped. Everything else is surfaced to the caller.
"""

from typing import Optional, Dict, Any, List


class ImportTrackerError(Exception):
    """
    Base exception for all import tracker errors.

    All custom exceptions inherit from this class, allowing callers to catch
    all application-specific errors with a single except clause if needed.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional context for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# TRANSPORT ERRORS - Retried only by the next poll tick
# =============================================================================

class ServiceUnavailableError(ImportTrackerError):
    """
    Import backend is not reachable or returned a server error.

    Typical causes:
    - Network connectivity issues or request timeout
    - Backend returned 5xx
    - Response body was not valid JSON
    """

    def __init__(self, message: str = "Import backend is not available", url: Optional[str] = None):
        details = {
            "resolution": "Check IMPORT_API_BASE_URL and backend availability"
        }
        if url:
            details["url"] = url
        super().__init__(message, details)
        self.url = url


class ApiRequestError(ImportTrackerError):
    """
    Backend answered with a client error status (4xx).

    The response body's ``message`` (when present) is used as the error text.
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        url: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None
    ):
        details = {"status_code": status_code}
        if url:
            details["url"] = url
        super().__init__(message, details)
        self.status_code = status_code
        self.url = url
        self.payload = payload or {}


# =============================================================================
# OPERATION ERRORS - Surfaced to the caller
# =============================================================================

class ImportSubmissionError(ImportTrackerError):
    """Import upload failed before a job was created."""

    def __init__(
        self,
        message: str,
        filename: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        error_details = details or {}
        if filename:
            error_details["filename"] = filename
        super().__init__(message, error_details)
        self.filename = filename


class ImportValidationError(ImportSubmissionError):
    """
    Backend rejected the spreadsheet rows before queueing a job.

    Row errors are data, not exceptions, once a job exists. This error only
    covers the synchronous validation the backend performs on upload.
    """

    def __init__(
        self,
        row_errors: List[Any],
        imported: int = 0,
        failed: int = 0,
        total_rows: int = 0,
        filename: Optional[str] = None
    ):
        message = f"Import rejected: {len(row_errors)} row error(s)"
        details = {
            "imported": imported,
            "failed": failed,
            "total_rows": total_rows,
        }
        super().__init__(message, filename, details)
        self.row_errors = list(row_errors)
        self.imported = imported
        self.failed = failed
        self.total_rows = total_rows


class CancellationError(ImportTrackerError):
    """
    Cancel request for an import job failed.

    The job's status is left exactly as last observed.
    """

    def __init__(self, job_id: str, reason: str):
        message = f"Could not cancel import job {job_id}: {reason}"
        details = {
            "job_id": job_id,
            "resolution": "The job keeps running. Retry the cancellation later."
        }
        super().__init__(message, details)
        self.job_id = job_id
        self.reason = reason


class AllocationComputationError(ImportTrackerError):
    """
    Allocation aggregation for an order was aborted.

    Callers receive this through a failed AllocationReport, never as a
    silently empty result.
    """

    def __init__(self, order_id: str, reason: str, page: Optional[int] = None):
        message = f"Allocation for order {order_id} could not be computed: {reason}"
        details = {"order_id": order_id}
        if page is not None:
            details["page"] = page
        super().__init__(message, details)
        self.order_id = order_id
        self.reason = reason
        self.page = page
