# =============================================================================
# hisaab_core/logging/config.py
# Logging Configuration for the HisaabDost offline layer
# =============================================================================

import logging
import os
import sys
import time
from pathlib import Path
from datetime import datetime
from typing import Any, Optional, Union


LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_DIR = Path("logs")
LOG_LEVEL_ENV = "HISAAB_LOG_LEVEL"

# Chatty dependencies pinned to WARNING
NOISY_LOGGERS = ("urllib3", "requests", "streamlit", "watchdog")


def _resolve_level(level: Union[int, str, None]) -> int:
    if level is None:
        level = os.getenv(LOG_LEVEL_ENV, "INFO")
    if isinstance(level, int):
        return level

    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


def setup_logging(
    level: Union[int, str, None] = None,
    log_to_file: bool = True,
    log_filename: Optional[str] = None,
    log_dir: Optional[Path] = None,
) -> None:
    """
    Configure logging for the worker, sync manager and console.

    Args:
        level: Level name or number (default: $HISAAB_LOG_LEVEL, else INFO)
        log_to_file: Whether to also write a daily log file
        log_filename: Custom log filename (default: offline_YYYY-MM-DD.log)
        log_dir: Directory for the log file (default: ./logs)
    """
    handlers = [logging.StreamHandler(sys.stdout)]

    if log_to_file:
        directory = log_dir or LOG_DIR
        directory.mkdir(parents=True, exist_ok=True)
        if log_filename is None:
            log_filename = f"offline_{datetime.now().strftime('%Y-%m-%d')}.log"
        handlers.append(logging.FileHandler(directory / log_filename))

    logging.basicConfig(
        level=_resolve_level(level),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=handlers,
        force=True,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("hisaab_core").info(
        f"Logging initialized at {logging.getLevelName(logging.getLogger().level)}"
    )


def get_logger(name: str) -> logging.Logger:
    """
    Usage:
        from hisaab_core.logging import get_logger
        logger = get_logger(__name__)
        logger.info("Worker installed")
    """
    return logging.getLogger(name)


class LogContext:
    """
    Logs the start, end and duration of a worker operation.

    Extra keyword fields are appended to every line, and a failing
    HisaabError contributes its error code.

    Usage:
        with LogContext(logger, "Caching app shell", version="v4", files=3):
            cache.add_all(requests, network)
        # Caching app shell [version=v4 files=3]... started
        # Caching app shell [version=v4 files=3]... completed (0.12s)
    """

    def __init__(self, logger: logging.Logger, operation: str, **fields: Any):
        self.logger = logger
        self.operation = operation
        self.fields = fields
        self.start_time: Optional[float] = None
        self.elapsed: Optional[float] = None

    @property
    def label(self) -> str:
        if not self.fields:
            return self.operation
        extra = " ".join(f"{key}={value}" for key, value in self.fields.items())
        return f"{self.operation} [{extra}]"

    def __enter__(self) -> "LogContext":
        self.start_time = time.perf_counter()
        self.logger.info(f"{self.label}... started")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.elapsed = time.perf_counter() - self.start_time

        if exc_type is None:
            self.logger.info(f"{self.label}... completed ({self.elapsed:.2f}s)")
        else:
            code = getattr(exc_val, "code", None)
            prefix = f"[{code}] " if code else ""
            message = getattr(exc_val, "message", exc_val)
            self.logger.error(
                f"{self.label}... failed ({self.elapsed:.2f}s): {prefix}{message}",
                exc_info=code is None,
            )

        return False
