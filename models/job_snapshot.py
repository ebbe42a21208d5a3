"""
Import job snapshot models.

A JobSnapshot is one observation of a background import's progress as
reported by the backend. Snapshots are frozen: the store replaces them
wholesale on merge and never mutates one in place.

Thread Safety:
    - JobSnapshot and ImportRowError are frozen dataclasses (immutable)
    - Safe to hand from the poller thread to request handlers without copying
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, List, Optional, Tuple

logger = logging.getLogger(__name__)


class JobStatus(Enum):
    """
    Server-declared status of an import job.

    Lifecycle:
        QUEUED -> PROCESSING -> (COMPLETED | FAILED | CANCELLED)
    """

    QUEUED = "queued"
    """Job is waiting for a worker."""

    PROCESSING = "processing"
    """Worker is ingesting rows."""

    COMPLETED = "completed"
    """All rows processed (some may still have failed individually)."""

    FAILED = "failed"
    """The job itself failed."""

    CANCELLED = "cancelled"
    """Job was cancelled on request."""

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        return self in ACTIVE_STATUSES


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED})
ACTIVE_STATUSES = frozenset({JobStatus.QUEUED, JobStatus.PROCESSING})


class JobType(Enum):
    """Kind of tabular data an import ingests."""

    PRODUCTS = "import-products"
    RECEIPTS_INBOUND = "import-receipts-inbound"
    RECEIPTS_OUTBOUND = "import-receipts-outbound"

    @classmethod
    def parse(cls, value: Any) -> Optional["JobType"]:
        """Return the matching type, or None for legacy / unknown values."""
        if value is None or value == "":
            return None
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            logger.debug(f"Unknown import job type {value!r}, treating as untyped")
            return None


def matches_type(job_type: Optional[JobType], type_filter: Optional[JobType]) -> bool:
    """Untyped (legacy) jobs match every filter."""
    return type_filter is None or job_type is None or job_type == type_filter


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a wire timestamp into an aware datetime.

    Accepts ISO-8601 strings (a trailing 'Z' is allowed), epoch milliseconds
    and datetime objects. Naive values are assumed to be UTC.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            logger.debug(f"Unparseable timestamp {value!r}")
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _non_negative_int(value: Any) -> int:
    try:
        number = int(float(value))
    except (TypeError, ValueError):
        return 0
    return max(number, 0)


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """First non-None value among camelCase / snake_case spellings."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return default


@dataclass(frozen=True)
class ImportRowError:
    """
    A single row-level import error.

    Row errors are data: they are shown to the user and never change the
    job's status on their own.
    """

    row: Optional[int]
    """Spreadsheet row number (None when the backend could not tell)."""

    reason: str
    """Human-readable reason."""

    code: Optional[str] = None
    """Machine-readable error code, when provided."""

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"row": self.row, "reason": self.reason}
        if self.code:
            data["code"] = self.code
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "ImportRowError":
        if not isinstance(data, dict):
            return cls(row=None, reason=str(data))

        row = data.get("row")
        try:
            row = int(row) if row is not None else None
        except (TypeError, ValueError):
            row = None

        code = data.get("code")
        return cls(
            row=row,
            reason=str(_pick(data, "reason", "message", default="")),
            code=str(code) if code else None,
        )


@dataclass(frozen=True)
class JobSnapshot:
    """
    One observation of an import job.

    Only ``status`` is authoritative for the job's lifecycle; ``percent`` and
    ``processed_rows`` are informational.
    """

    job_id: str
    """Opaque job identifier, stable for the job's lifetime."""

    status: JobStatus
    """Server-declared status."""

    type: Optional[JobType] = None
    """Import kind (None on legacy records)."""

    total_rows: int = 0
    processed_rows: int = 0
    imported: int = 0
    failed: int = 0

    percent: float = 0.0
    """Progress in [0, 100]."""

    errors: Tuple[ImportRowError, ...] = field(default_factory=tuple)
    """Row errors in the order the backend reported them."""

    message: str = ""
    """Optional free-text message from the backend."""

    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def is_active(self) -> bool:
        return self.status.is_active

    @property
    def observed_at(self) -> Optional[datetime]:
        """Most recent timestamp carried by this snapshot."""
        return self.updated_at or self.finished_at or self.started_at or self.created_at

    @property
    def sort_key(self) -> datetime:
        """History ordering key (creation time, then start time)."""
        return self.created_at or self.started_at or datetime.min.replace(tzinfo=timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase wire shape used by the UI."""
        def iso(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value else None

        return {
            "jobId": self.job_id,
            "type": self.type.value if self.type else None,
            "status": self.status.value,
            "totalRows": self.total_rows,
            "processedRows": self.processed_rows,
            "imported": self.imported,
            "failed": self.failed,
            "percent": self.percent,
            "errors": [e.to_dict() for e in self.errors],
            "message": self.message,
            "createdAt": iso(self.created_at),
            "startedAt": iso(self.started_at),
            "updatedAt": iso(self.updated_at),
            "finishedAt": iso(self.finished_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobSnapshot":
        """
        Create from a backend payload.

        Accepts camelCase and snake_case keys.

        Raises:
            ValueError: If the job id or status is missing or unknown
        """
        job_id = _pick(data, "jobId", "job_id", "id")
        if not job_id:
            raise ValueError("Job snapshot has no jobId")

        status_str = str(_pick(data, "status", default="")).strip().lower()
        if status_str == "canceled":
            status_str = JobStatus.CANCELLED.value
        try:
            status = JobStatus(status_str)
        except ValueError:
            raise ValueError(f"Job {job_id} has unknown status {status_str!r}")

        total_rows = _non_negative_int(_pick(data, "totalRows", "total_rows", default=0))
        processed_rows = _non_negative_int(_pick(data, "processedRows", "processed_rows", default=0))

        percent_raw = data.get("percent")
        try:
            percent = float(percent_raw) if percent_raw is not None else None
        except (TypeError, ValueError):
            percent = None
        if percent is None:
            percent = (processed_rows / total_rows * 100.0) if total_rows else 0.0
        percent = min(max(percent, 0.0), 100.0)

        raw_errors = data.get("errors") or []
        errors: List[ImportRowError] = [ImportRowError.from_dict(e) for e in raw_errors]

        return cls(
            job_id=str(job_id),
            status=status,
            type=JobType.parse(_pick(data, "type", "jobType", "job_type")),
            total_rows=total_rows,
            processed_rows=processed_rows,
            imported=_non_negative_int(data.get("imported", 0)),
            failed=_non_negative_int(data.get("failed", 0)),
            percent=percent,
            errors=tuple(errors),
            message=str(data.get("message") or ""),
            created_at=parse_timestamp(_pick(data, "createdAt", "created_at")),
            started_at=parse_timestamp(_pick(data, "startedAt", "started_at")),
            updated_at=parse_timestamp(_pick(data, "updatedAt", "updated_at")),
            finished_at=parse_timestamp(_pick(data, "finishedAt", "finished_at", "completedAt", "completed_at")),
        )


@dataclass(frozen=True)
class JobPage:
    """One page of a job listing."""

    jobs: Tuple[JobSnapshot, ...]
    total: int = 0
    page: int = 1
    limit: int = 0
    total_pages: int = 0

    @classmethod
    def from_response(cls, response: Any) -> "JobPage":
        """
        Parse a listing response.

        Tolerates a ``data`` envelope and a bare list. Malformed entries are
        logged and skipped so one bad record cannot block the whole page.
        """
        body = response
        if isinstance(body, dict) and isinstance(body.get("data"), (dict, list)):
            body = body["data"]

        if isinstance(body, list):
            raw_jobs, meta = body, {}
        else:
            raw_jobs = _pick(body, "jobs", "rows", "items", default=[])
            meta = body

        jobs = []
        for raw in raw_jobs:
            try:
                jobs.append(JobSnapshot.from_dict(raw))
            except (ValueError, AttributeError) as e:
                logger.warning(f"Skipping malformed job snapshot: {e}")

        limit = _non_negative_int(meta.get("limit", len(jobs)))
        total = _non_negative_int(_pick(meta, "total", "count", default=len(jobs)))
        total_pages = _non_negative_int(
            _pick(meta, "totalPages", "total_pages", default=(-(-total // limit) if limit else 1))
        )

        return cls(
            jobs=tuple(jobs),
            total=total,
            page=_non_negative_int(meta.get("page", 1)) or 1,
            limit=limit,
            total_pages=total_pages,
        )
