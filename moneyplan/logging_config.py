"""
Logging configuration for MoneyPlan.

Imported by every module through ``get_logger(__name__)``. Besides the
console and the rotating application/error logs, rollover runs get their
own audit file: every record the copy skips is logged there at WARNING so
a half-copied period can be explained after the fact.
"""

import logging
import logging.handlers
import os
from typing import Dict, Optional

from moneyplan.config import LOG_LEVEL, LOGS_DIR

ROLLOVER_LOGGER = "moneyplan.services.rollover"

DETAILED_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s'
SIMPLE_FORMAT = '%(asctime)s | %(levelname)-8s | %(message)s'


def log_files(logs_dir: str) -> Dict[str, str]:
    """Paths of the log files written under ``logs_dir``."""
    return {
        "app": os.path.join(logs_dir, 'moneyplan.log'),
        "errors": os.path.join(logs_dir, 'errors.log'),
        "rollover": os.path.join(logs_dir, 'rollover.log'),
    }


def _rotating(path: str, max_mb: int, backups: int, level: int, formatter: logging.Formatter):
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=max_mb * 1024 * 1024,
        backupCount=backups,
        encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(level: str = "INFO", logs_dir: Optional[str] = None) -> Dict[str, str]:
    """
    Configure application-wide logging.

    Sets up:
    - Console handler for development feedback
    - Rotating file handler for general logs
    - Separate error log file
    - Rollover audit log (skipped records and failed steps)

    Calling it again replaces the handlers instead of stacking them.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        logs_dir: Directory for the log files; defaults to MONEYPLAN_LOGS_DIR

    Returns:
        The log file paths, keyed by "app", "errors" and "rollover"
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    paths = log_files(logs_dir or LOGS_DIR)

    # Create logs directory if it doesn't exist
    os.makedirs(os.path.dirname(paths["app"]), exist_ok=True)

    # Create formatters
    detailed_formatter = logging.Formatter(fmt=DETAILED_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')
    simple_formatter = logging.Formatter(fmt=SIMPLE_FORMAT, datefmt='%H:%M:%S')

    # Get root logger and clear any existing handlers
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    # Console handler (for development)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(simple_formatter)
    root_logger.addHandler(console_handler)

    # Rotating file handler (10MB max, keep 5 backups)
    root_logger.addHandler(_rotating(paths["app"], 10, 5, log_level, detailed_formatter))

    # Error file handler (errors and above only)
    root_logger.addHandler(_rotating(paths["errors"], 5, 3, logging.ERROR, detailed_formatter))

    # Rollover audit: warnings from the copy engine, still propagated to root
    rollover_logger = logging.getLogger(ROLLOVER_LOGGER)
    for handler in list(rollover_logger.handlers):
        rollover_logger.removeHandler(handler)
        handler.close()
    rollover_logger.addHandler(_rotating(paths["rollover"], 5, 3, logging.WARNING, detailed_formatter))

    # Configure uvicorn loggers
    logging.getLogger("uvicorn.access").setLevel(logging.INFO)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)

    # Reduce noise from some libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)

    # Log startup
    root_logger.info(f"Logging configured at level: {level}")
    root_logger.info(f"Log files: {', '.join(paths.values())}")
    return paths


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a specific module.

    Args:
        name: Usually __name__ of the calling module

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)


# Initialize logging when this module is imported
setup_logging(LOG_LEVEL)
