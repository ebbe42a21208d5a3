"""
Configuration for the warehouse import tracker.

The import backend is required: IMPORT_API_BASE_URL must point at it.
Values come from the environment, with a .env file loaded first.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file early so environment variables are available for Config class
load_dotenv(override=True)

# Base directory (where this file lives)
BASE_DIR = Path(__file__).resolve().parent


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Default configuration for the Flask application."""

    # Flask settings
    SECRET_KEY = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
    MAX_CONTENT_LENGTH = int(os.environ.get("MAX_UPLOAD_MB", "16")) * 1024 * 1024
    ENVIRONMENT = os.environ.get("FLASK_ENV", "development")
    LOG_DIR = os.environ.get("LOG_DIR", str(BASE_DIR / "logs"))

    # Debug mode
    DEBUG = os.environ.get("FLASK_DEBUG", "1") == "1"

    # ==========================================================================
    # Import backend
    # ==========================================================================
    IMPORT_API_BASE_URL = os.environ.get("IMPORT_API_BASE_URL", "http://localhost:3274/api/v0")
    IMPORT_API_TOKEN = os.environ.get("IMPORT_API_TOKEN") or None
    API_TIMEOUT_SECONDS = float(os.environ.get("API_TIMEOUT_SECONDS", "10"))

    # Spreadsheet uploads accepted by POST /api/imports
    UPLOAD_EXTENSIONS = frozenset(
        ext.strip().lower()
        for ext in os.environ.get("UPLOAD_EXTENSIONS", "xlsx,xls,csv").split(",")
        if ext.strip()
    )

    # ==========================================================================
    # Job tracking
    # ==========================================================================
    # POLL_INTERVAL_SECONDS: Time between refreshes while jobs are active
    # HISTORY_PAGE_SIZE: Jobs fetched by the initial / paginated history load
    # EVENT_FEED_SIZE: Recent events kept for GET /api/imports/events
    # START_POLLER: Seed the store and start polling when the app starts
    # ==========================================================================
    POLL_INTERVAL_SECONDS = float(os.environ.get("POLL_INTERVAL_SECONDS", "3"))
    HISTORY_PAGE_SIZE = int(os.environ.get("HISTORY_PAGE_SIZE", "20"))
    EVENT_FEED_SIZE = int(os.environ.get("EVENT_FEED_SIZE", "200"))
    START_POLLER = _env_bool("START_POLLER", "1")

    # ==========================================================================
    # Fulfillment allocation
    # ==========================================================================
    # ALLOCATION_PAGE_SIZE: Receipts per page when summing released quantities
    # ALLOCATION_MAX_PAGES: Hard bound on pages per computation; reaching it
    #   marks the report truncated
    # ==========================================================================
    ALLOCATION_PAGE_SIZE = int(os.environ.get("ALLOCATION_PAGE_SIZE", "100"))
    ALLOCATION_MAX_PAGES = int(os.environ.get("ALLOCATION_MAX_PAGES", "50"))


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    TESTING = False
    ENVIRONMENT = "production"


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    TESTING = False


class TestingConfig(Config):
    """Testing configuration."""
    DEBUG = False
    TESTING = True
    IMPORT_API_BASE_URL = "http://import-backend.test/api/v0"
    IMPORT_API_TOKEN = None
    START_POLLER = False
    POLL_INTERVAL_SECONDS = 0.01
