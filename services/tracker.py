"""
Import tracker facade.

Wires the request layer, store, notification bridge, poller, cancellation
controller and allocation calculator together and exposes the operations
the web layer (and any other caller) uses.

ARCHITECTURE:
    Request handlers (Flask threads)
    ├── submit_import / request_cancellation / load_history
    └── get_active_jobs / get_history / events_after (store reads only)

    ImportPoller thread (background)
    └── refresh active jobs -> JobStore.merge -> NotificationBridge.observe
                                                  └── JobEventFeed, listeners

    Allocation is stateless: compute_remaining_quantities() always hits the
    backend and shares nothing with the job store.

Usage:
    tracker = ImportTracker(api_client, poll_interval_seconds=3.0)
    tracker.start()

    unsubscribe = tracker.subscribe_to_job_updates(on_change)
    tracker.submit_import(stream, "products.xlsx", JobType.PRODUCTS)

    report = tracker.compute_remaining_quantities(order_id)

    tracker.shutdown()
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Any, BinaryIO, Callable, Deque, Dict, List, Optional, Tuple

from core.api_client import ImportApiClient
from core.exceptions import ImportTrackerError
from models.allocation import AllocationReport
from models.job_snapshot import JobSnapshot, JobType
from services.allocation_calculator import AllocationCalculator
from services.cancellation import CancellationController
from services.job_store import JobStore
from services.notification_bridge import JobEvent, NotificationBridge
from services.poller import ImportJobPoller
from logging_config import get_logger, get_job_logger


logger = get_logger(__name__)


class JobEventFeed:
    """
    Bounded, sequence-numbered buffer of recent job events.

    Browsers cannot subscribe to in-process listeners, so they poll this
    feed with the last sequence number they have seen.

    Thread Safety:
        - Written from the poller thread (and request threads on refresh)
        - Read from request threads
        - All access under self._lock
    """

    def __init__(self, max_events: int = 200):
        self._events: Deque[Tuple[int, JobEvent]] = deque(maxlen=max_events)
        self._sequence = 0
        self._lock = threading.Lock()

    def append(self, event: JobEvent) -> None:
        with self._lock:
            self._sequence += 1
            self._events.append((self._sequence, event))

    @property
    def last_sequence(self) -> int:
        with self._lock:
            return self._sequence

    def events_after(self, sequence: int = 0) -> List[Dict[str, Any]]:
        """
        Events newer than ``sequence``, oldest first.

        Events that fell out of the buffer are simply missing; callers
        re-read the job lists when they need the full picture.
        """
        with self._lock:
            return [
                {"seq": seq, **event.to_dict()}
                for seq, event in self._events
                if seq > sequence
            ]


class ImportTracker:
    """
    Facade over the import-job tracking and allocation components.

    Attributes:
        store: Client-side JobStore
        bridge: NotificationBridge emitting exactly-once events
        poller: Background ImportJobPoller
        feed: JobEventFeed of recent events
    """

    def __init__(
        self,
        api_client: ImportApiClient,
        poll_interval_seconds: float = 3.0,
        history_page_size: int = 20,
        allocation_page_size: int = 100,
        allocation_max_pages: int = 50,
        event_feed_size: int = 200
    ):
        self._api = api_client
        self._history_page_size = history_page_size

        self.store = JobStore()
        self.bridge = NotificationBridge()
        self.poller = ImportJobPoller(
            api_client,
            self.store,
            self.bridge,
            interval_seconds=poll_interval_seconds,
        )
        self.feed = JobEventFeed(max_events=event_feed_size)
        self.bridge.subscribe(self.feed.append)

        self._cancellation = CancellationController(api_client, self.store, self.poller)
        self._calculator = AllocationCalculator(
            api_client,
            page_size=allocation_page_size,
            max_pages=allocation_max_pages,
        )

        self._started = False
        self._lifecycle_lock = threading.Lock()

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self) -> None:
        """
        Seed the store with the first history page and poll if needed.

        The seed is silent: jobs that finished before this process started
        do not produce notifications. A failed seed is logged and polling
        starts anyway, so the first successful tick fills the store.
        """
        with self._lifecycle_lock:
            if self._started:
                return
            self._started = True

        logger.info("Starting import tracker")
        try:
            self.load_history()
        except ImportTrackerError as e:
            logger.warning(f"Initial history load failed, polling will retry: {e}")
            self.poller.ensure_running()

    def shutdown(self) -> None:
        """Stop polling and release the HTTP session. Safe to call twice."""
        with self._lifecycle_lock:
            was_started = self._started
            self._started = False

        # The poller also runs without start() after a submit or history load
        self.poller.stop()
        self._api.close()
        if was_started:
            logger.info("Import tracker shut down")

    @property
    def is_started(self) -> bool:
        with self._lifecycle_lock:
            return self._started

    # =========================================================================
    # JOB TRACKING
    # =========================================================================

    def subscribe_to_job_updates(self, on_change: Callable[[JobEvent], None]) -> Callable[[], None]:
        """
        Register a listener for job status changes.

        Returns:
            Function that removes the listener
        """
        return self.bridge.subscribe(on_change)

    def add_refresh_hook(self, hook: Callable[[JobEvent], None]) -> None:
        """Register a dependent-view refresher run once per terminal event."""
        self.bridge.add_refresh_hook(hook)

    def get_active_jobs(self, type: Optional[JobType] = None) -> List[JobSnapshot]:
        """Queued and processing jobs, oldest first."""
        return self.store.active_jobs(type)

    def get_history(self, type: Optional[JobType] = None) -> List[JobSnapshot]:
        """Completed, failed and cancelled jobs, newest first."""
        return self.store.history_jobs(type)

    def get_job(self, job_id: str) -> Optional[JobSnapshot]:
        return self.store.get(job_id)

    def events_after(self, sequence: int = 0) -> List[Dict[str, Any]]:
        return self.feed.events_after(sequence)

    def submit_import(self, stream: BinaryIO, filename: str, job_type: JobType) -> JobSnapshot:
        """
        Upload a spreadsheet and start tracking the resulting job.

        Args:
            stream: File-like object with the spreadsheet bytes
            filename: Sanitized original filename
            job_type: What the spreadsheet contains

        Returns:
            The job's initial snapshot

        Raises:
            ImportValidationError: Rows rejected up front, carries row errors
            ImportSubmissionError: Upload refused
            ServiceUnavailableError: Backend unreachable
        """
        snapshot = self._api.submit_import(stream, filename, job_type)

        self.poller.apply([snapshot])

        get_job_logger(snapshot.job_id).info(
            f"Tracking {job_type.value} import of {filename} ({snapshot.status.value})"
        )

        if snapshot.is_active:
            self.poller.ensure_running()
        return snapshot

    def load_history(
        self,
        type: Optional[JobType] = None,
        page: int = 1,
        limit: Optional[int] = None,
        sort_order: str = "DESC"
    ) -> List[JobSnapshot]:
        """
        Fetch one page of jobs and merge it without notifying.

        Starts polling when the page contains running jobs.

        Returns:
            The store's history for ``type`` after the merge

        Raises:
            ImportTrackerError: On transport / API failure
        """
        self.poller.refresh(
            only_active=False,
            job_type=type,
            notify=False,
            sort_order=sort_order,
            page=page,
            limit=limit or self._history_page_size,
        )

        if self.store.has_active_jobs():
            self.poller.ensure_running()
        return self.store.history_jobs(type)

    def request_cancellation(self, job_id: str) -> None:
        """
        Cancel a running import.

        Raises:
            CancellationError: If the backend refused or could not be reached
        """
        self._cancellation.cancel(job_id)

    # =========================================================================
    # ALLOCATION
    # =========================================================================

    def compute_remaining_quantities(self, order_id: str) -> AllocationReport:
        """Ordered / exported / remaining quantities per product of an order."""
        return self._calculator.compute_remaining(order_id)
