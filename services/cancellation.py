"""Cancellation of running import jobs."""

from __future__ import annotations

from core.api_client import ImportApiClient
from core.exceptions import CancellationError, ImportTrackerError
from models.job_snapshot import JobStatus
from services.job_store import JobStore
from services.poller import ImportJobPoller
from logging_config import get_logger, get_job_logger


logger = get_logger(__name__)


class CancellationController:
    """
    Issues cancel requests without racing the poller.

    The server is authoritative: the controller never marks a job cancelled
    locally. A successful request is followed by an immediate refresh (not
    the next timer tick) so the terminal state shows up without latency.
    """

    def __init__(self, api_client: ImportApiClient, store: JobStore, poller: ImportJobPoller):
        self._api = api_client
        self._store = store
        self._poller = poller

    def cancel(self, job_id: str) -> None:
        """
        Request cancellation of ``job_id``.

        A job already known to be cancelled is left alone (no request, no
        second notification).

        Raises:
            CancellationError: If the cancel request failed; the job's stored
                status is untouched and polling continues
        """
        job_logger = get_job_logger(job_id)

        current = self._store.get(job_id)
        if current is not None and current.status is JobStatus.CANCELLED:
            job_logger.info("Cancel requested for already cancelled job, nothing to do")
            return

        try:
            self._api.cancel_job(job_id)
        except ImportTrackerError as e:
            job_logger.error(f"Cancel request failed: {e.message}")
            raise CancellationError(job_id, e.message) from e

        job_logger.info("Cancel accepted, refreshing job status")

        # All jobs, not only active ones: the cancelled job has already left
        # the active listing once the backend has stopped it
        try:
            self._poller.refresh(only_active=False)
        except ImportTrackerError as e:
            # The cancel itself succeeded; the poller picks the state up later
            logger.warning(f"Refresh after cancelling {job_id} failed: {e}")
            self._poller.ensure_running()
            return

        if self._store.has_active_jobs():
            self._poller.ensure_running()
