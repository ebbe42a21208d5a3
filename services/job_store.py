"""
Client-side store of import job snapshots.

The store is the single source of truth for every job this client has
observed: a mapping from job id to the most recent valid snapshot, plus
derived partitions (running vs. history).

Merge rules:
    - Unknown job id: insert
    - Known non-terminal job: replace, unless the incoming snapshot is older
      (by observed_at) than the stored one
    - Known terminal job: keep, unless the incoming snapshot is terminal with
      the SAME status and an equal or newer timestamp (counters / errors may
      still be refreshed, the status never changes again)

Thread Safety:
    - All access goes through self._lock
    - merge() is only called from poll handlers, which are serialized by the
      poller's tick lock; the store lock makes that guarantee explicit
"""

from __future__ import annotations

import threading
from typing import Dict, Iterable, List, Optional

from models.job_snapshot import JobSnapshot, JobType, matches_type
from logging_config import get_logger


logger = get_logger(__name__)


class JobStore:
    """
    Thread-safe, in-memory job snapshot store.

    No network access and no side effects beyond the map itself, so it is
    testable without mocks.

    Usage:
        store = JobStore()
        applied = store.merge(page.jobs)

        running = store.active_jobs(JobType.PRODUCTS)
        finished = store.history_jobs()
    """

    def __init__(self):
        self._jobs: Dict[str, JobSnapshot] = {}
        self._lock = threading.Lock()

    def merge(self, incoming: Iterable[JobSnapshot]) -> List[JobSnapshot]:
        """
        Merge a batch of observed snapshots.

        Args:
            incoming: Snapshots in arrival order

        Returns:
            The snapshots that were actually applied to the store
        """
        applied = []
        with self._lock:
            for snapshot in incoming:
                existing = self._jobs.get(snapshot.job_id)
                if self._accepts(existing, snapshot):
                    self._jobs[snapshot.job_id] = snapshot
                    applied.append(snapshot)
        return applied

    def get(self, job_id: str) -> Optional[JobSnapshot]:
        with self._lock:
            return self._jobs.get(job_id)

    def all_jobs(self) -> List[JobSnapshot]:
        with self._lock:
            return list(self._jobs.values())

    def active_jobs(self, type_filter: Optional[JobType] = None) -> List[JobSnapshot]:
        """
        Queued and processing jobs, oldest first.

        Jobs without a type are always included.
        """
        with self._lock:
            jobs = [
                job for job in self._jobs.values()
                if job.is_active and matches_type(job.type, type_filter)
            ]
        return sorted(jobs, key=lambda j: j.sort_key)

    def history_jobs(self, type_filter: Optional[JobType] = None) -> List[JobSnapshot]:
        """Terminal jobs, newest first."""
        with self._lock:
            jobs = [
                job for job in self._jobs.values()
                if job.is_terminal and matches_type(job.type, type_filter)
            ]
        return sorted(jobs, key=lambda j: j.sort_key, reverse=True)

    def has_active_jobs(self) -> bool:
        with self._lock:
            return any(job.is_active for job in self._jobs.values())

    def clear(self) -> int:
        """
        Remove all snapshots.

        Returns:
            Number of snapshots removed
        """
        with self._lock:
            count = len(self._jobs)
            self._jobs.clear()
        logger.info(f"Cleared {count} job snapshots from store")
        return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    @staticmethod
    def _accepts(existing: Optional[JobSnapshot], incoming: JobSnapshot) -> bool:
        """Decide whether ``incoming`` may replace ``existing``."""
        if existing is None:
            return True

        older = (
            existing.observed_at is not None
            and incoming.observed_at is not None
            and incoming.observed_at < existing.observed_at
        )

        if not existing.is_terminal:
            if older:
                logger.debug(f"Discarding stale snapshot for job {incoming.job_id}")
                return False
            return True

        if not incoming.is_terminal:
            logger.debug(
                f"Ignoring {incoming.status.value} snapshot for job {incoming.job_id}: "
                f"already {existing.status.value}"
            )
            return False

        if incoming.status is not existing.status:
            logger.warning(
                f"Job {incoming.job_id} reported {incoming.status.value} after "
                f"{existing.status.value}; keeping {existing.status.value}"
            )
            return False

        return not older
