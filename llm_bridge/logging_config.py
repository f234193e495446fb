"""Centralized logging configuration module"""

import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Optional, Union

from .config import settings

# Whether already initialized
_initialized = False

LOG_FORMAT = '[%(asctime)s] [%(levelname)s] %(name)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Log rotation: max 10MB per file, keep 3 backups
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 3


def setup_logging(
    log_dir: Optional[Union[str, Path]] = None,
    level: Optional[str] = None,
) -> None:
    """Configure the ``llm_bridge`` logger hierarchy.

    Library code only ever calls ``logging.getLogger(__name__)``; applications
    call this once to get console output (and an optional rotating log file).
    Repeated calls are no-ops.

    Args:
        log_dir: Directory for ``llm_bridge.log``; no file handler when omitted
        level: Log level name, defaults to ``settings.log_level``
    """
    global _initialized

    if _initialized:
        return

    resolved_level = getattr(logging, (level or settings.log_level).upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    package_logger = logging.getLogger('llm_bridge')
    package_logger.setLevel(resolved_level)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(resolved_level)
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)

    if log_dir is not None:
        logs_dir = Path(log_dir)
        logs_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            logs_dir / "llm_bridge.log",
            maxBytes=MAX_LOG_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding='utf-8',
        )
        file_handler.setLevel(resolved_level)
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

    # Reduce log level for third-party libraries
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('httpcore').setLevel(logging.WARNING)

    _initialized = True
    package_logger.debug(f"Logging initialized at level {logging.getLevelName(resolved_level)}")


def reset_logging() -> None:
    """Remove handlers installed by setup_logging (used by tests)."""
    global _initialized

    package_logger = logging.getLogger('llm_bridge')
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    _initialized = False
