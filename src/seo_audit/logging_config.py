"""Logging setup for the worker, the CLI and tests."""

import logging
import sys
from pathlib import Path
from typing import Iterable, Optional, Union

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are chatty at INFO/DEBUG
QUIET_LOGGERS = ("httpx", "httpcore", "playwright", "asyncio")


def _resolve_level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    return getattr(logging, str(level).upper(), logging.INFO)


def setup_logging(
    level: Union[str, int] = "INFO",
    log_file: Optional[str] = None,
    format_string: Optional[str] = None,
    quiet_loggers: Iterable[str] = QUIET_LOGGERS,
) -> logging.Logger:
    """Configure the root logger for the audit pipeline.

    Replaces any handlers installed earlier, so calling it again (e.g. once
    per CLI invocation) does not duplicate output.

    Args:
        level: Level name (DEBUG, INFO, WARNING, ERROR) or number. Unknown
            names fall back to INFO.
        log_file: Optional file receiving the same records as stdout. Parent
            directories are created.
        format_string: Optional record format; defaults to DEFAULT_FORMAT
        quiet_loggers: Logger names capped at WARNING

    Returns:
        The configured root logger.
    """
    formatter = logging.Formatter(format_string or DEFAULT_FORMAT, DEFAULT_DATE_FORMAT)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    handlers: list[logging.Handler] = [console]

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    logging.basicConfig(level=_resolve_level(level), handlers=handlers, force=True)

    for name in quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logging.getLogger()


def get_logger(name: str) -> logging.Logger:
    """Return the logger for a module (pass ``__name__``)."""
    return logging.getLogger(name)
