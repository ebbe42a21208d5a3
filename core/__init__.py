"""
Core module for the import tracker.

Contains fundamental infrastructure components:
- exceptions: Custom exception hierarchy
- api_client: HTTP client for the import / allocation backend
"""

from .exceptions import (
    ImportTrackerError,
    ServiceUnavailableError,
    ApiRequestError,
    ImportSubmissionError,
    ImportValidationError,
    CancellationError,
    AllocationComputationError,
)
from .api_client import ImportApiClient

__all__ = [
    "ImportTrackerError",
    "ServiceUnavailableError",
    "ApiRequestError",
    "ImportSubmissionError",
    "ImportValidationError",
    "CancellationError",
    "AllocationComputationError",
    "ImportApiClient",
]
