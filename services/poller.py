"""
Background poller for active import jobs.

State machine:

    IDLE --ensure_running()--> POLLING --active set drained--> IDLE

While POLLING, a single named daemon thread ("ImportPoller") refreshes the
active jobs immediately and then every interval. When a refresh reports no
active jobs, the poller runs exactly one reconciliation pass over ALL jobs
(so a job that finished between two polls still produces its completion
event) and then goes idle.

Serialization:
    - Every request that feeds the store (timer ticks, forced refreshes from
      cancellation, manual refreshes) runs under self._tick_lock
    - There is never more than one poll request in flight
    - A failed tick is logged and skipped; the loop keeps going

Usage:
    poller = ImportJobPoller(api_client, store, bridge, interval_seconds=3.0)
    poller.ensure_running()   # after a new import or a refresh with active jobs
    ...
    poller.stop()             # idempotent
"""

from __future__ import annotations

import threading
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from core.api_client import ImportApiClient
from core.exceptions import ImportTrackerError
from models.job_snapshot import JobPage, JobSnapshot, JobType
from services.job_store import JobStore
from services.notification_bridge import JobEvent, NotificationBridge
from logging_config import get_logger, set_thread_name


logger = get_logger(__name__)


class PollerState(Enum):
    IDLE = "idle"
    POLLING = "polling"


class ImportJobPoller:
    """
    Interval-driven refresh of active import jobs.

    Attributes:
        interval_seconds: Time between ticks while polling
        state: Current PollerState
    """

    def __init__(
        self,
        api_client: ImportApiClient,
        store: JobStore,
        bridge: NotificationBridge,
        interval_seconds: float = 3.0,
        page_limit: int = 100
    ):
        """
        Initialize the poller (does not start it).

        Args:
            api_client: Request layer
            store: Store the responses are merged into
            bridge: Notification bridge fed with every applied merge
            interval_seconds: Seconds between ticks
            page_limit: Page size for job listings
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        self._api = api_client
        self._store = store
        self._bridge = bridge
        self._interval = interval_seconds
        self._page_limit = page_limit

        # Serializes every store-feeding request; re-entrant so an event
        # listener running on the poll thread may trigger a refresh
        self._tick_lock = threading.RLock()

        # Thread control
        self._state_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._wake_requested = False

        self._consecutive_failures = 0

        logger.info(f"ImportJobPoller initialized (interval: {interval_seconds}s)")

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def state(self) -> PollerState:
        with self._state_lock:
            return PollerState.POLLING if self._thread is not None else PollerState.IDLE

    @property
    def is_running(self) -> bool:
        return self.state is PollerState.POLLING

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def ensure_running(self) -> None:
        """
        Move IDLE -> POLLING.

        When already polling, the request is remembered so a drain that is
        finishing right now polls again instead of going idle.
        """
        with self._state_lock:
            if self._thread is not None:
                self._wake_requested = True
                return

            # Each thread owns its stop event, so a thread abandoned by a
            # timed-out stop() still exits once its request returns
            self._stop_event = threading.Event()
            self._wake_requested = False
            self._thread = threading.Thread(
                target=self._poll_loop,
                args=(self._stop_event,),
                name="ImportPoller",
                daemon=True
            )
            thread = self._thread

        logger.info("Import polling started")
        thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        """
        Stop polling. Safe to call multiple times.

        Args:
            timeout: Seconds to wait for the poll thread to exit
        """
        with self._state_lock:
            thread = self._thread
            if thread is None:
                return
            self._stop_event.set()

        logger.info("Stopping import poller...")

        if thread is not threading.current_thread():
            thread.join(timeout=timeout)
            if thread.is_alive():
                logger.warning("Import poller thread did not stop within timeout")

        with self._state_lock:
            if self._thread is thread:
                self._thread = None

        logger.info("Import poller stopped")

    def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the poll thread exits.

        Returns:
            True if the poller is idle
        """
        with self._state_lock:
            thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        return not self.is_running

    # =========================================================================
    # REFRESH OPERATIONS
    # =========================================================================

    def poll_once(self) -> int:
        """
        Refresh active jobs once.

        Returns:
            Number of active jobs the backend reported

        Raises:
            ImportTrackerError: On transport / API failure
        """
        job_page, _ = self._fetch_and_merge(only_active=True)
        return sum(1 for job in job_page.jobs if job.is_active)

    def refresh(
        self,
        only_active: bool = False,
        job_type: Optional[JobType] = None,
        notify: bool = True,
        sort_order: str = "DESC",
        page: int = 1,
        limit: Optional[int] = None
    ) -> List[JobEvent]:
        """
        Out-of-band refresh, serialized with the timer ticks.

        Args:
            only_active: Fetch only queued / processing jobs
            job_type: Restrict to one import kind
            notify: Emit events (False seeds notification state silently)
            sort_order: "ASC" or "DESC" by creation time
            page: 1-based page number
            limit: Page size (defaults to the poller's page limit)

        Returns:
            Events emitted by this refresh

        Raises:
            ImportTrackerError: On transport / API failure
        """
        _, events = self._fetch_and_merge(
            only_active=only_active,
            job_type=job_type,
            notify=notify,
            sort_order=sort_order,
            page=page,
            limit=limit,
        )
        return events

    def _fetch_and_merge(
        self,
        only_active: bool,
        job_type: Optional[JobType] = None,
        notify: bool = True,
        sort_order: str = "DESC",
        page: int = 1,
        limit: Optional[int] = None
    ) -> Tuple[JobPage, List[JobEvent]]:
        with self._tick_lock:
            job_page = self._api.list_jobs(
                only_active=only_active,
                job_type=job_type,
                sort_order=sort_order,
                page=page,
                limit=limit or self._page_limit,
            )
            events = self.apply(job_page.jobs, notify=notify)
        return job_page, events

    def apply(self, snapshots: Iterable[JobSnapshot], notify: bool = True) -> List[JobEvent]:
        """
        Merge snapshots obtained outside a poll (e.g. a submit response).

        Runs under the tick lock so it cannot interleave with a poll.
        """
        with self._tick_lock:
            return self._bridge.observe(self._store.merge(snapshots), notify=notify)

    # =========================================================================
    # POLL THREAD
    # =========================================================================

    def _poll_loop(self, stop_event: threading.Event) -> None:
        """
        Poll thread main loop.

        Ticks immediately, then every interval, until the active set drains
        (followed by one reconciliation pass) or stop() is called.
        """
        set_thread_name("ImportPoller")
        logger.debug("Import poll loop starting")

        try:
            while not stop_event.is_set():
                with self._state_lock:
                    if self._thread is threading.current_thread():
                        self._wake_requested = False

                active_count = self._tick()
                if stop_event.is_set():
                    break

                if active_count == 0 and self._drain():
                    with self._state_lock:
                        if self._thread is not threading.current_thread():
                            return
                        if not self._wake_requested:
                            self._thread = None
                            logger.info("No active imports, polling idle")
                            return

                if stop_event.wait(timeout=self._interval):
                    break
        finally:
            with self._state_lock:
                if self._thread is threading.current_thread():
                    self._thread = None
            logger.debug("Import poll loop exiting")

    def _tick(self) -> Optional[int]:
        """One timer tick. Returns None when the tick failed."""
        try:
            active_count = self.poll_once()
        except ImportTrackerError as e:
            self._record_failure(e)
            return None

        if self._consecutive_failures > 0:
            logger.info(f"Import polling recovered after {self._consecutive_failures} failures")
        self._consecutive_failures = 0
        return active_count

    def _drain(self) -> bool:
        """
        Reconciliation pass after the active set emptied.

        Returns:
            True if the poller may go idle
        """
        logger.debug("Running drain reconciliation pass")
        try:
            job_page, _ = self._fetch_and_merge(only_active=False)
        except ImportTrackerError as e:
            self._record_failure(e)
            return False

        # Decided from the backend's answer, not the store: a job the backend
        # no longer lists must not keep the poller alive
        if any(job.is_active for job in job_page.jobs):
            logger.debug("Reconciliation found active jobs, continuing to poll")
            return False
        return True

    def _record_failure(self, error: Exception) -> None:
        self._consecutive_failures += 1

        if self._consecutive_failures == 1:
            logger.warning(f"Import poll failed, skipping tick: {error}")
        elif self._consecutive_failures <= 3:
            logger.error(f"Import poll failed ({self._consecutive_failures} consecutive): {error}")
        elif self._consecutive_failures % 5 == 0:
            logger.error(
                f"Import poll still failing ({self._consecutive_failures} consecutive): {error}"
            )
