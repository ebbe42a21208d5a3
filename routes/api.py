"""
Service routes.

Handles:
- /health - Health check endpoint
"""

from flask import Blueprint, current_app

from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

api_bp = Blueprint("api", __name__)


@api_bp.route("/health", methods=["GET"])
def health():
    """Health check endpoint with service status."""
    health_status = {
        "status": "ok",
        "environment": current_app.config.get("ENVIRONMENT", "unknown"),
        "checks": {}
    }

    tracker = current_app.config.get("IMPORT_TRACKER")
    if tracker is None:
        health_status["checks"]["tracker"] = "not_available"
        health_status["status"] = "degraded"
        return health_status, 503

    health_status["checks"]["tracker"] = "started" if tracker.is_started else "not_started"
    health_status["checks"]["poller"] = tracker.poller.state.value
    health_status["checks"]["active_jobs"] = len(tracker.get_active_jobs())

    if current_app.config.get("START_POLLER") and not tracker.is_started:
        health_status["status"] = "degraded"

    status_code = 200 if health_status["status"] == "ok" else 503
    return health_status, status_code
