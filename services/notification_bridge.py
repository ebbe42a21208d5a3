"""
Exactly-once job status notifications.

The bridge remembers the last status it saw for every job, independently
of the JobStore. Polling re-observes the same terminal snapshot many times;
only a status that differs from the remembered one produces an event.

Lifecycle:
    - Created empty when the tracker starts
    - Entries are never dropped mid-session
    - reset() clears everything (explicit only)
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from models.job_snapshot import JobSnapshot, JobStatus
from logging_config import get_logger, get_job_logger


logger = get_logger(__name__)


class JobEventKind(Enum):
    """User-facing notification kinds."""

    STATUS_CHANGED = "status_changed"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


_TERMINAL_EVENT_KINDS = {
    JobStatus.COMPLETED: JobEventKind.COMPLETED,
    JobStatus.FAILED: JobEventKind.FAILED,
    JobStatus.CANCELLED: JobEventKind.CANCELLED,
}


@dataclass(frozen=True)
class JobEvent:
    """One status transition of one job."""

    kind: JobEventKind
    snapshot: JobSnapshot
    previous_status: Optional[JobStatus] = None

    @property
    def job_id(self) -> str:
        return self.snapshot.job_id

    @property
    def is_terminal(self) -> bool:
        return self.kind is not JobEventKind.STATUS_CHANGED

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "jobId": self.job_id,
            "previousStatus": self.previous_status.value if self.previous_status else None,
            "job": self.snapshot.to_dict(),
        }


JobEventListener = Callable[[JobEvent], None]
RefreshHook = Callable[[JobEvent], None]


class NotificationBridge:
    """
    Turns merged snapshots into exactly-once events.

    Subscribers receive every event. Refresh hooks are the declared side
    effect of a terminal event: they reload views that depend on the import
    (product list, created receipts, ...).

    Usage:
        bridge = NotificationBridge()
        unsubscribe = bridge.subscribe(lambda event: print(event.kind))
        bridge.add_refresh_hook(lambda event: reload_receipts())

        events = bridge.observe(store.merge(page.jobs))
    """

    def __init__(self):
        self._last_status: Dict[str, JobStatus] = {}
        self._listeners: List[JobEventListener] = []
        self._refresh_hooks: List[RefreshHook] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: JobEventListener) -> Callable[[], None]:
        """
        Register a listener.

        Returns:
            Function that removes the listener (safe to call twice)
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def add_refresh_hook(self, hook: RefreshHook) -> None:
        """Register a dependent-view refresher run once per terminal event."""
        with self._lock:
            self._refresh_hooks.append(hook)

    def last_status(self, job_id: str) -> Optional[JobStatus]:
        with self._lock:
            return self._last_status.get(job_id)

    def observe(self, snapshots: Iterable[JobSnapshot], notify: bool = True) -> List[JobEvent]:
        """
        Compare snapshots with the last observed statuses.

        Args:
            snapshots: Snapshots from the latest merge cycle
            notify: When False, jobs not seen before are seeded silently
                (initial history load); jobs already tracked still emit

        Returns:
            Events emitted in this cycle
        """
        events = []
        with self._lock:
            for snapshot in snapshots:
                previous = self._last_status.get(snapshot.job_id)
                if previous is snapshot.status:
                    continue
                # A terminal status is final for notification purposes too
                if previous is not None and previous.is_terminal:
                    continue

                self._last_status[snapshot.job_id] = snapshot.status
                if notify or previous is not None:
                    kind = _TERMINAL_EVENT_KINDS.get(snapshot.status, JobEventKind.STATUS_CHANGED)
                    events.append(JobEvent(kind=kind, snapshot=snapshot, previous_status=previous))

            listeners = list(self._listeners)
            hooks = list(self._refresh_hooks)

        for event in events:
            self._dispatch(event, listeners, hooks)

        return events

    def reset(self) -> None:
        """Forget every observed status."""
        with self._lock:
            count = len(self._last_status)
            self._last_status.clear()
        logger.info(f"Notification state reset ({count} jobs forgotten)")

    def _dispatch(
        self,
        event: JobEvent,
        listeners: List[JobEventListener],
        hooks: List[RefreshHook]
    ) -> None:
        job_logger = get_job_logger(event.job_id)
        if event.is_terminal:
            snapshot = event.snapshot
            job_logger.info(
                f"Import {event.kind.value}: imported={snapshot.imported} "
                f"failed={snapshot.failed} errors={len(snapshot.errors)}"
            )
        else:
            job_logger.debug(f"Status changed to {event.snapshot.status.value}")

        # One broken listener must not starve the others
        for listener in listeners:
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Job event listener failed for {event.job_id}: {e}", exc_info=True)

        if not event.is_terminal:
            return

        for hook in hooks:
            try:
                hook(event)
            except Exception as e:
                logger.error(f"Refresh hook failed after job {event.job_id}: {e}", exc_info=True)
