"""Logger factory shared by every CodeLens module.

One stream handler is attached to the root logger on first use. When
CODELENS_LOG_FILE is set, records are also appended to that file.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Final

_CONFIGURED: bool = False
_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_DATEFMT: Final[str] = "%Y-%m-%d %H:%M:%S"


def _resolve_level() -> int:
    level_name = os.getenv("CODELENS_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def _configure_root(level: int) -> None:
    formatter = logging.Formatter(_FORMAT, datefmt=_DATEFMT)
    root = logging.getLogger()

    stream = logging.StreamHandler()
    stream.setFormatter(formatter)
    root.addHandler(stream)

    if log_file := os.getenv("CODELENS_LOG_FILE"):
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    root.setLevel(level)


def get_logger(name: str) -> logging.Logger:
    """Return a named logger, configuring the root handlers once per process."""
    global _CONFIGURED

    level = _resolve_level()
    if not _CONFIGURED:
        _configure_root(level)
        _CONFIGURED = True
    else:
        logging.getLogger().setLevel(level)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    return logger
