"""
Services layer for the import tracker.

This module contains the business logic services:
- JobStore: Client-side snapshot store with monotonic merge rules
- ImportJobPoller: Background refresh thread for active jobs
- NotificationBridge: Exactly-once status events
- CancellationController: Cancel requests serialized with polling
- AllocationCalculator: Remaining quantities per order
- ImportTracker: Facade wiring all of the above

Thread Model:
    Main Thread (Flask)
    └── ImportPoller thread (only while jobs are active)

All services share ONE ImportApiClient; the JobStore is the only shared
mutable map.
"""

from .job_store import JobStore
from .notification_bridge import JobEvent, JobEventKind, NotificationBridge
from .poller import ImportJobPoller, PollerState
from .cancellation import CancellationController
from .allocation_calculator import AllocationCalculator
from .tracker import ImportTracker, JobEventFeed

__all__ = [
    "JobStore",
    "JobEvent",
    "JobEventKind",
    "NotificationBridge",
    "ImportJobPoller",
    "PollerState",
    "CancellationController",
    "AllocationCalculator",
    "ImportTracker",
    "JobEventFeed",
]
