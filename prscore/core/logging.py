"""
Logging setup for the PR Score service.

Every module logs through ``get_logger(__name__)``; ``setup_logging`` is
called once by ``prscore.main`` with ``settings.LOG_LEVEL``. Batch, sync and
judgment code log their progress at INFO and per-item detail at DEBUG.
"""

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Client libraries that log every request at INFO
QUIET_LOGGERS = (
    "httpx",
    "httpcore",
    "openai",
    "langchain",
    "langgraph",
    "sqlalchemy.engine",
    "aiosqlite",
    "uvicorn.access",
)


def setup_logging(level: str = "INFO") -> None:
    """
    Configure the root logger to write to stdout.

    Args:
        level: Level name such as DEBUG or INFO. Unknown names fall back to INFO.
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name)
