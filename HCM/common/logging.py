"""
Centralized logging configuration for the HCM sync pipeline.
Console output always, optional run log file, level taken from settings.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from HCM.config import get_settings


DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that flood INFO output during batch runs
NOISY_LOGGERS = ("sqlalchemy.engine", "urllib3", "httpx")


def _resolve_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(
    level: Optional[Union[int, str]] = None,
    log_file: Optional[str] = None,
    log_format: str = DEFAULT_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> None:
    """
    Configure root logging for a sync or refresh run.

    Args:
        level: Logging level name or number (default: LOG_LEVEL setting)
        log_file: Optional path to a log file (default: LOG_FILE setting)
        log_format: Log message format
        date_format: Date format in log messages
    """
    settings = get_settings()
    resolved_level = _resolve_level(level if level is not None else settings.log_level)
    log_file = log_file or settings.log_file

    formatter = logging.Formatter(log_format, date_format)
    handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    logging.basicConfig(level=resolved_level, handlers=handlers, force=True)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved_level, logging.WARNING))


def create_run_log_file(base_dir: str = "logs", prefix: str = "hcm_sync") -> str:
    """Return a timestamped log file path for a run, creating base_dir."""
    log_dir = Path(base_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return str(log_dir / f"{prefix}_{timestamp}.log")
