"""Logging setup shared by the API server and the CLI.

Modules take a logger with ``get_logger(__name__)`` at import time and never
set a level on it; the level lives on the root logger only, so
``setup_logging`` can change it later (e.g. ``familytree --verbose``).
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

from familytree.config import Settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def setup_logging(config: Optional[Settings] = None, level: Optional[str] = None) -> None:
    """Send log records to stdout at the configured level.

    Safe to call more than once: the handler is installed on the first call,
    later calls only change the level.

    Args:
        config: Settings to read ``log_level`` from, defaults to the singleton.
        level: Overrides ``config.log_level`` for this process.
    """
    if config is None:
        from familytree.config import settings as config

    root = logging.getLogger()
    logging.basicConfig(format=LOG_FORMAT, handlers=[logging.StreamHandler(sys.stdout)])
    root.setLevel(_level(level or config.log_level))


def get_logger(name: str) -> logging.Logger:
    """Module logger; its effective level follows the root logger."""
    return logging.getLogger(name)
