"""Logging configuration for the command line."""

import logging
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> Optional[Path]:
    """Send log records to stderr, or append them to ``log_file``.

    Returns:
        Path of the log file, or None when logging to stderr
    """
    handlers = None
    path = None
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers = [logging.FileHandler(path, encoding="utf-8")]

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
    # SQLAlchemy logs every statement at INFO
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    return path
