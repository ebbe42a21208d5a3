"""
Import job routes (JSON).

Handles:
- POST /api/imports                  - Upload a spreadsheet, start an import
- GET  /api/imports/active           - Running jobs, oldest first
- GET  /api/imports/history          - Finished jobs, newest first
- GET  /api/imports/events           - Recent job events after a sequence number
- GET  /api/imports/<job_id>         - One tracked job
- POST /api/imports/<job_id>/cancel  - Request cancellation
"""

from typing import Optional, Tuple

from flask import (
    Blueprint,
    current_app,
    jsonify,
    request,
)
from werkzeug.utils import secure_filename

from core.exceptions import (
    ApiRequestError,
    CancellationError,
    ImportSubmissionError,
    ImportValidationError,
    ServiceUnavailableError,
)
from models.job_snapshot import JobType
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

imports_bp = Blueprint("imports", __name__, url_prefix="/api/imports")

# Constants
MAX_FILENAME_LENGTH = 255
MAX_HISTORY_LIMIT = 100


def _tracker():
    return current_app.config["IMPORT_TRACKER"]


def _error(message: str, status_code: int, **extra):
    return jsonify({"error": True, "message": message, **extra}), status_code


def _allowed_file(filename: str) -> bool:
    """Check if file extension is allowed."""
    allowed = current_app.config.get("UPLOAD_EXTENSIONS", {"xlsx", "xls", "csv"})
    return "." in filename and filename.rsplit(".", 1)[1].lower() in allowed


def _parse_type_arg(value: Optional[str]) -> Tuple[Optional[JobType], Optional[str]]:
    """
    Parse an optional ``type`` argument.

    Returns:
        Tuple of (job_type, error_message)
    """
    if not value:
        return None, None
    job_type = JobType.parse(value)
    if job_type is None:
        valid = ", ".join(t.value for t in JobType)
        return None, f"Unknown import type {value!r}. Expected one of: {valid}"
    return job_type, None


@imports_bp.route("", methods=["POST"])
def submit_import():
    """
    Upload a spreadsheet and start a background import.

    Form fields:
        file: The spreadsheet
        type: import-products | import-receipts-inbound | import-receipts-outbound
    """
    upload = request.files.get("file")

    # Validation: File required
    if not upload or upload.filename == "":
        return _error("Please choose a spreadsheet to upload.", 400)

    # Validation: Import type
    job_type, type_error = _parse_type_arg(request.form.get("type"))
    if type_error:
        return _error(type_error, 400)
    if job_type is None:
        return _error("Import type is required.", 400)

    # Validation: File type
    if not _allowed_file(upload.filename):
        allowed = ", ".join(sorted(current_app.config.get("UPLOAD_EXTENSIONS", [])))
        return _error(f"Unsupported file type. Allowed: {allowed}", 400)

    # Validation: Filename length
    if len(upload.filename) > MAX_FILENAME_LENGTH:
        return _error(f"Filename too long. Maximum {MAX_FILENAME_LENGTH} characters.", 400)

    safe_name = secure_filename(upload.filename)
    if not safe_name:
        return _error("Invalid filename.", 400)

    try:
        snapshot = _tracker().submit_import(upload.stream, safe_name, job_type)
    except ImportValidationError as e:
        logger.info(f"Import of {safe_name} rejected with {len(e.row_errors)} row errors")
        return _error(
            e.message,
            422,
            rowErrors=e.row_errors,
            imported=e.imported,
            failed=e.failed,
            totalRows=e.total_rows,
        )
    except ServiceUnavailableError as e:
        logger.error(f"Import upload failed: {e}")
        return _error(e.message, 503)
    except ImportSubmissionError as e:
        logger.warning(f"Import upload refused: {e}")
        return _error(e.message, 400)

    return jsonify({"error": False, "job": snapshot.to_dict()}), 202


@imports_bp.route("/active", methods=["GET"])
def active_jobs():
    """Running jobs from the client-side store."""
    job_type, type_error = _parse_type_arg(request.args.get("type"))
    if type_error:
        return _error(type_error, 400)

    tracker = _tracker()
    jobs = tracker.get_active_jobs(job_type)
    return jsonify({
        "error": False,
        "jobs": [job.to_dict() for job in jobs],
        "count": len(jobs),
        "polling": tracker.poller.is_running,
    })


@imports_bp.route("/history", methods=["GET"])
def job_history():
    """
    Finished jobs.

    Without ``page`` the store is read as-is. With ``page`` (and optional
    ``limit`` / ``sortOrder``) that page is fetched from the backend first.
    """
    job_type, type_error = _parse_type_arg(request.args.get("type"))
    if type_error:
        return _error(type_error, 400)

    tracker = _tracker()

    if "page" in request.args:
        page = request.args.get("page", 1, type=int)
        limit = request.args.get("limit", type=int)
        sort_order = request.args.get("sortOrder", "DESC").upper()

        if not page or page < 1:
            return _error("page must be a positive integer", 400)
        if limit is not None and not 1 <= limit <= MAX_HISTORY_LIMIT:
            return _error(f"limit must be between 1 and {MAX_HISTORY_LIMIT}", 400)
        if sort_order not in ("ASC", "DESC"):
            return _error("sortOrder must be ASC or DESC", 400)

        try:
            jobs = tracker.load_history(job_type, page=page, limit=limit, sort_order=sort_order)
        except ServiceUnavailableError as e:
            logger.error(f"History load failed: {e}")
            return _error(e.message, 503)
        except ApiRequestError as e:
            return _error(e.message, 502)
    else:
        jobs = tracker.get_history(job_type)

    return jsonify({
        "error": False,
        "jobs": [job.to_dict() for job in jobs],
        "count": len(jobs),
    })


@imports_bp.route("/events", methods=["GET"])
def job_events():
    """Events newer than ``after`` (a sequence number from a previous call)."""
    after = request.args.get("after", 0, type=int)
    if after is None or after < 0:
        return _error("after must be a non-negative integer", 400)

    tracker = _tracker()
    return jsonify({
        "error": False,
        "events": tracker.events_after(after),
        "lastSeq": tracker.feed.last_sequence,
    })


@imports_bp.route("/<job_id>", methods=["GET"])
def job_detail(job_id: str):
    snapshot = _tracker().get_job(job_id)
    if snapshot is None:
        return _error(f"Unknown import job {job_id}", 404)
    return jsonify({"error": False, "job": snapshot.to_dict()})


@imports_bp.route("/<job_id>/cancel", methods=["POST"])
def cancel_job(job_id: str):
    """
    Request cancellation of an import job.

    The response carries whatever the store holds after the post-cancel
    refresh; the cancelled status may arrive with a later poll.
    """
    tracker = _tracker()
    try:
        tracker.request_cancellation(job_id)
    except CancellationError as e:
        cause = e.__cause__
        if isinstance(cause, ApiRequestError) and cause.status_code in (404, 409):
            return _error(e.message, cause.status_code, jobId=job_id)
        status_code = 503 if isinstance(cause, ServiceUnavailableError) else 502
        return _error(e.message, status_code, jobId=job_id)

    snapshot = tracker.get_job(job_id)
    return jsonify({
        "error": False,
        "jobId": job_id,
        "job": snapshot.to_dict() if snapshot else None,
    })
