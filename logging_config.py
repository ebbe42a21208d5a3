"""
Logging setup for the import tracker.

Every line carries the name of the thread that wrote it. Request handlers
log from Flask worker threads, status polling logs from the "ImportPoller"
thread, and the two interleave constantly while an import runs.

Loggers live under the "import_tracker" namespace:
    import_tracker.<module>        get_logger(__name__)
    import_tracker.job.<8 chars>   get_job_logger(job_id), one per import job

Sample output:
    2026-10-19 10:15:30 [INFO    ] [MainThread] import_tracker.app - Starting import tracker
    2026-10-19 10:15:33 [DEBUG   ] [ImportPoller] import_tracker.services.poller - Running drain reconciliation pass
    2026-10-19 10:15:33 [INFO    ] [ImportPoller] import_tracker.job.a1b2c3d4 - Import completed: imported=98 failed=2 errors=2

Usage:
    setup_logging(log_level=logging.DEBUG, enable_file_logging=False)
    logger = get_logger(__name__)
"""

import logging
import sys
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


APP_LOGGER_NAME = "import_tracker"

LOG_FORMAT = "%(asctime)s [%(levelname)-8s] [%(thread_name)s] %(name)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

DEFAULT_MAX_BYTES = 10 * 1024 * 1024
DEFAULT_BACKUP_COUNT = 5

# Third-party loggers that log every poll request at DEBUG/INFO
NOISY_LIBRARIES = ("urllib3", "werkzeug")


class ThreadContextFilter(logging.Filter):
    """Stamps ``thread_name`` onto each record for the formatter."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.thread_name = threading.current_thread().name
        return True


def _rotating_handler(
    path: Path,
    level: int,
    formatter: logging.Formatter,
    thread_filter: logging.Filter,
    max_bytes: int,
    backup_count: int
) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        filename=path,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(thread_filter)
    return handler


def setup_logging(
    log_level: int = logging.INFO,
    log_dir: Optional[Path] = None,
    enable_file_logging: bool = True,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
) -> logging.Logger:
    """
    Configure the "import_tracker" logger tree.

    Handlers:
        - stdout, always
        - <log_dir>/import_tracker.log, rotating (file logging only)
        - <log_dir>/import_tracker_error.log, ERROR and above (file logging only)

    Calling this again replaces the previous handlers.

    Args:
        log_level: Minimum level for the application loggers
        log_dir: Directory for log files (default: ./logs next to this file)
        enable_file_logging: Whether to add the rotating file handlers
        max_bytes: Size at which a log file rotates
        backup_count: Rotated files kept per log

    Returns:
        The "import_tracker" logger
    """
    logger = logging.getLogger(APP_LOGGER_NAME)
    logger.setLevel(log_level)
    logger.propagate = False
    logger.handlers.clear()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    thread_filter = ThreadContextFilter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(thread_filter)
    logger.addHandler(console_handler)

    if enable_file_logging:
        log_dir = Path(log_dir) if log_dir else Path(__file__).parent / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)

        app_log_file = log_dir / f"{APP_LOGGER_NAME}.log"
        logger.addHandler(_rotating_handler(
            app_log_file, log_level, formatter, thread_filter, max_bytes, backup_count
        ))
        logger.addHandler(_rotating_handler(
            log_dir / f"{APP_LOGGER_NAME}_error.log",
            logging.ERROR, formatter, thread_filter, max_bytes, backup_count
        ))
        logger.info(f"File logging enabled: {app_log_file}")

    # A 3-second poll loop would otherwise flood the console
    library_level = logging.DEBUG if log_level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(library_level)

    logger.info(f"Logging configured at level {logging.getLevelName(log_level)}")
    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Module logger under the application namespace.

    "services.poller" becomes "import_tracker.services.poller"; names that
    already carry the prefix are used as-is.
    """
    if not name.startswith(APP_LOGGER_NAME):
        name = f"{APP_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def get_job_logger(job_id: str) -> logging.Logger:
    """Per-job logger, "import_tracker.job.<first 8 chars of job_id>"."""
    return logging.getLogger(f"{APP_LOGGER_NAME}.job.{job_id[:8]}")


def set_thread_name(name: str) -> None:
    """Rename the current thread (shown as [thread_name] in every line)."""
    threading.current_thread().name = name
