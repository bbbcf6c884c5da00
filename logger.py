"""Structured logging infrastructure with verbosity levels and progress tracking."""

import copy
import logging
import logging.handlers
import os
import time
from typing import Any, Dict, Optional

import colorlog

LOGGER_NAME = 'wemeditate_migrator'

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logging(
    verbosity: int = 0,
    log_file: Optional[str] = None,
    level: Optional[str] = None,
    log_format: Optional[str] = None,
    date_format: Optional[str] = None
) -> logging.Logger:
    """
    Set up structured logging with configurable verbosity levels.

    Args:
        verbosity: Verbosity level (0=WARNING, 1=INFO, 2+=DEBUG)
        log_file: Optional path to the append-only import log
        level: Optional explicit log level string (overrides verbosity)
        log_format: Optional custom log format string
        date_format: Optional custom date format string

    Returns:
        Configured ``wemeditate_migrator`` logger

    Raises:
        ValueError: If ``level`` is not a known level name
    """
    if level:
        allowed_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        level_upper = level.upper()
        if level_upper not in allowed_levels:
            raise ValueError(
                f"Invalid log level '{level}'. Must be one of: {sorted(allowed_levels)}"
            )
        log_level = getattr(logging, level_upper)
    elif verbosity >= 2:
        log_level = logging.DEBUG
    elif verbosity >= 1:
        log_level = logging.INFO
    else:
        log_level = logging.WARNING

    log_format = log_format or DEFAULT_FORMAT
    date_format = date_format or DEFAULT_DATE_FORMAT

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(colorlog.ColoredFormatter(
        fmt='%(log_color)s' + log_format,
        datefmt=date_format,
        log_colors={
            'DEBUG': 'cyan',
            'INFO': 'green',
            'WARNING': 'yellow',
            'ERROR': 'red',
            'CRITICAL': 'red,bg_white',
        }
    ))
    logger.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        # The import log keeps everything down to INFO regardless of console verbosity
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setLevel(min(log_level, logging.INFO))
        file_handler.setFormatter(logging.Formatter(fmt=log_format, datefmt=date_format))
        logger.addHandler(file_handler)
        logger.setLevel(min(log_level, logging.INFO))

        logger.info(f"Logging to file: {log_file}")

    logger.info(f"Log level: {logging.getLevelName(log_level)}")
    return logger


class ProgressTracker:
    """Context manager for tracking progress across one migration phase."""

    def __init__(self, total_items: int, item_type: str = "items", logger: Optional[logging.Logger] = None):
        """
        Initialize progress tracker.

        Args:
            total_items: Total number of items to process
            item_type: Description of item type (e.g., "authors", "media")
            logger: Optional logger instance
        """
        self.total_items = total_items
        self.item_type = item_type
        self.processed_items = 0
        self.successful_items = 0
        self.failed_items = 0
        self.skipped_items = 0
        self.start_time: Optional[float] = None
        self.logger = logger or logging.getLogger(LOGGER_NAME)

    def __enter__(self) -> 'ProgressTracker':
        self.start_time = time.time()
        self.logger.info(f"Starting processing of {self.total_items} {self.item_type}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is None:
            return

        elapsed = time.time() - self.start_time

        if exc_type is not None or (self.failed_items > 0 and self.failed_items == self.total_items):
            log_method = self.logger.error
        elif self.failed_items > 0:
            log_method = self.logger.warning
        else:
            log_method = self.logger.info

        log_method(
            f"{self.item_type}: {self.processed_items}/{self.total_items} processed, "
            f"{self.successful_items} ok, {self.skipped_items} skipped, "
            f"{self.failed_items} failed in {self._format_elapsed(elapsed)}"
        )

    def increment(self, success: bool = True, skipped: bool = False) -> None:
        """
        Increment progress counter.

        Args:
            success: Whether the item was processed successfully
            skipped: Whether the item was already done and skipped
        """
        self.processed_items += 1

        if skipped:
            self.skipped_items += 1
        elif success:
            self.successful_items += 1
        else:
            self.failed_items += 1

        if self.processed_items % 25 == 0 or not success:
            remaining = self.total_items - self.processed_items
            status = "Success" if success else "Failed"
            self.logger.info(
                f"Processed {self.processed_items}/{self.total_items} {self.item_type} "
                f"({remaining} remaining) - Last: {status}"
            )

    def get_stats(self) -> Dict[str, Any]:
        """Get current progress statistics."""
        elapsed = 0.0 if self.start_time is None else time.time() - self.start_time

        return {
            'total': self.total_items,
            'processed': self.processed_items,
            'successful': self.successful_items,
            'skipped': self.skipped_items,
            'failed': self.failed_items,
            'elapsed_time': elapsed,
            'elapsed_time_formatted': self._format_elapsed(elapsed)
        }

    @staticmethod
    def _format_elapsed(seconds: float) -> str:
        """Format elapsed time in human-readable format."""
        if seconds < 60:
            return f"{seconds:.1f}s"

        minutes = int(seconds // 60)
        seconds = int(seconds % 60)

        if minutes < 60:
            return f"{minutes}m {seconds}s"

        hours = minutes // 60
        minutes = minutes % 60

        return f"{hours}h {minutes}m {seconds}s"


def log_section(title: str) -> None:
    """
    Log a decorative section header.

    Args:
        title: Section title to display
    """
    logger = logging.getLogger(LOGGER_NAME)

    separator = "=" * 60
    logger.info("")
    logger.info(separator)
    logger.info(f"  {title.upper()}")
    logger.info(separator)


def log_config(config: Dict[str, Any]) -> None:
    """
    Log sanitized configuration for debugging.

    Args:
        config: Configuration dictionary to log
    """
    logger = logging.getLogger(LOGGER_NAME)
    sanitized = _sanitize_config(config)

    log_section("Configuration")

    payload = sanitized.get('payload', {})
    logger.info(f"Payload URL: {payload.get('base_url', 'Not Set')}")
    logger.info(f"Auth Collection: {payload.get('auth_collection', 'users')}")
    logger.info(f"API Key: {payload.get('api_key') or 'Not Set'}")

    source = sanitized.get('source', {})
    logger.info(f"Database URI: {source.get('database_uri') or 'Not Set'}")
    logger.info(f"Dump Path: {source.get('dump_path') or 'Not Set'}")
    if source.get('dump_path'):
        logger.info(f"Temporary Database: {source.get('temp_database')}")

    migration = sanitized.get('migration', {})
    logger.info(f"Cache Directory: {migration.get('cache_dir')}")
    logger.info(f"Import Tag: {migration.get('import_tag')}")
    logger.info(f"Locales: {', '.join(migration.get('locales') or [])}")
    logger.info(f"Storage Base URL: {migration.get('storage_base_url')}")
    logger.info(f"Image Quality: {migration.get('image_quality')}")


def _sanitize_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Create a sanitized copy of configuration with sensitive fields masked.

    Args:
        config: Configuration dictionary

    Returns:
        Sanitized configuration copy
    """
    sensitive_fields = {'password', 'secret', 'api_key', 'token', 'database_uri'}

    def mask_sensitive(data: Any) -> Any:
        if isinstance(data, dict):
            masked = {}
            for key, value in data.items():
                is_sensitive = any(sensitive in key.lower() for sensitive in sensitive_fields)
                if is_sensitive and isinstance(value, str) and value:
                    masked[key] = "***REDACTED***"
                else:
                    masked[key] = mask_sensitive(value)
            return masked
        elif isinstance(data, list):
            return [mask_sensitive(item) for item in data]
        return data

    return mask_sensitive(copy.deepcopy(config))


__all__ = [
    'setup_logging',
    'ProgressTracker',
    'log_section',
    'log_config',
    'LOGGER_NAME',
]
