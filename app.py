"""
Warehouse Import Tracker - Flask Application Entry Point.

This is a slim app factory that:
1. Configures logging
2. Builds the import backend client and the ImportTracker facade
3. Seeds job history and starts the poller (when START_POLLER is set)
4. Registers route blueprints
5. Sets up JSON error handlers

ARCHITECTURE:
    Main Thread
    ├── Flask request handling
    └── Cleanup on shutdown (poller stop, HTTP session close)

    ImportPoller Thread (background, only while jobs are active)
    └── Refreshes active jobs every POLL_INTERVAL_SECONDS

Request handlers and the poller share ONE ImportTracker; its store and
event feed are the only shared mutable state.
"""

from __future__ import annotations

import atexit
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from logging_config import setup_logging, get_logger
from core.api_client import ImportApiClient
from services.tracker import ImportTracker
from routes import register_blueprints


# Module logger (configured after setup_logging)
logger = get_logger(__name__)


BASE_PATH = Path(__file__).parent


def build_tracker(config) -> ImportTracker:
    """
    Create the ImportTracker described by a Flask config mapping.

    Args:
        config: Mapping with the keys defined in config.Config

    Returns:
        ImportTracker (not started)
    """
    api_client = ImportApiClient(
        base_url=config["IMPORT_API_BASE_URL"],
        token=config.get("IMPORT_API_TOKEN"),
        timeout_seconds=config.get("API_TIMEOUT_SECONDS", 10.0),
    )
    return ImportTracker(
        api_client,
        poll_interval_seconds=config.get("POLL_INTERVAL_SECONDS", 3.0),
        history_page_size=config.get("HISTORY_PAGE_SIZE", 20),
        allocation_page_size=config.get("ALLOCATION_PAGE_SIZE", 100),
        allocation_max_pages=config.get("ALLOCATION_MAX_PAGES", 50),
        event_feed_size=config.get("EVENT_FEED_SIZE", 200),
    )


def create_app(config_object: str = "config.Config", tracker: Optional[ImportTracker] = None) -> Flask:
    """
    Application factory - creates and configures Flask app.

    Args:
        config_object: Import path of the config class to load
        tracker: Pre-built tracker (tests); built from config when omitted

    Returns:
        Configured Flask application
    """
    # Load .env from the project directory
    # Use override=True so .env file always takes precedence over shell environment
    env_file = BASE_PATH / '.env'
    if env_file.exists():
        load_dotenv(env_file, override=True)

    app = Flask(__name__)
    app.config.from_object(config_object)

    # Configure logging
    log_level = logging.DEBUG if app.config.get("DEBUG") else logging.INFO
    enable_file_logging = app.config.get("ENVIRONMENT") == "production"

    root_logger = setup_logging(
        log_level=log_level,
        log_dir=Path(app.config["LOG_DIR"]) if app.config.get("LOG_DIR") else None,
        enable_file_logging=enable_file_logging
    )

    # Set Flask's logger to use our configured logger
    app.logger.handlers = root_logger.handlers
    app.logger.setLevel(log_level)

    logger.info(f"Starting import tracker in {app.config.get('ENVIRONMENT')} mode")

    # =========================================================================
    # SERVICES INITIALIZATION
    # =========================================================================

    if tracker is None:
        tracker = build_tracker(app.config)
        logger.info(f"Import backend: {app.config['IMPORT_API_BASE_URL']}")

    app.config["IMPORT_TRACKER"] = tracker

    if app.config.get("START_POLLER"):
        tracker.start()
        logger.info("Import tracker started")

    # =========================================================================
    # CLEANUP REGISTRATION
    # =========================================================================

    def cleanup():
        """Cleanup on application shutdown."""
        logger.info("Shutting down...")
        tracker.shutdown()
        logger.info("Shutdown complete")

    atexit.register(cleanup)

    # =========================================================================
    # REGISTER BLUEPRINTS
    # =========================================================================

    register_blueprints(app)

    # =========================================================================
    # ERROR HANDLERS
    # =========================================================================

    @app.errorhandler(RequestEntityTooLarge)
    def handle_file_too_large(e):
        max_mb = app.config.get("MAX_CONTENT_LENGTH", 16 * 1024 * 1024) / (1024 * 1024)
        return jsonify({
            "error": True,
            "message": f"File too large. Maximum upload size is {max_mb:.0f} MB."
        }), 413

    @app.errorhandler(404)
    def handle_not_found(e):
        return jsonify({"error": True, "message": "Not found"}), 404

    @app.errorhandler(405)
    def handle_method_not_allowed(e):
        return jsonify({"error": True, "message": "Method not allowed"}), 405

    @app.errorhandler(500)
    def handle_server_error(e):
        logger.error(f"500 error: {e}", exc_info=True)
        return jsonify({"error": True, "message": "An unexpected error occurred"}), 500

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({"error": True, "message": e.description}), e.code

    logger.info("Application initialized successfully")
    return app


if __name__ == "__main__":
    app = create_app()
    debug_mode = os.environ.get("FLASK_DEBUG", "1") == "1"
    # The reloader would start a second poller in the child process
    app.run(debug=debug_mode, use_reloader=False)
