"""
Data models for the import tracker.

This module contains immutable dataclasses for:
- JobSnapshot: One observation of a background import job
- JobPage: One page of a job listing
- AllocationRecord: Outbound release of a product quantity for an order
- AllocationReport: Ordered / exported / remaining quantities per product

Snapshots are frozen so the poller thread can hand them to request
threads without copying.
"""

from .job_snapshot import (
    JobSnapshot,
    JobPage,
    JobStatus,
    JobType,
    ImportRowError,
    TERMINAL_STATUSES,
    ACTIVE_STATUSES,
)
from .allocation import (
    AllocationRecord,
    AllocationReport,
    ExportedTotals,
    LineAllocation,
    OrderLineItem,
    ReceiptPage,
    ReceiptStatus,
)

__all__ = [
    # Job models
    "JobSnapshot",
    "JobPage",
    "JobStatus",
    "JobType",
    "ImportRowError",
    "TERMINAL_STATUSES",
    "ACTIVE_STATUSES",
    # Allocation models
    "AllocationRecord",
    "AllocationReport",
    "ExportedTotals",
    "LineAllocation",
    "OrderLineItem",
    "ReceiptPage",
    "ReceiptStatus",
]
