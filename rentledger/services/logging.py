"""Root logger setup for the rentledger server.

Records go to stdout and to the file named by EngineConfig.log_file. The
threshold comes from the LOG_LEVEL setting; DEBUG shows allocation and
filter traces, WARNING keeps only skipped payments and unassigned properties.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = "[%(asctime)s] %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def get_log_level(level_name: Optional[str] = None) -> int:
    """Translate a level name, or LOG_LEVEL when none is given.

    Unknown names fall back to INFO.
    """
    name = (level_name or os.getenv("LOG_LEVEL", "INFO")).strip().upper()
    if name not in LEVELS:
        return logging.INFO
    return getattr(logging, name)


def _handler(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_server_logging(log_file: str = "logs/server.log", level_name: Optional[str] = None) -> None:
    """Replace the root handlers with a console handler and a file handler.

    Args:
        log_file: Log file path; missing parent directories are created
        level_name: Level for both handlers (LOG_LEVEL when omitted)

    Warnings raised with warnings.warn are left to the warnings module.
    Services that warn about data problems log the same message themselves,
    so each problem appears once in the file.
    """
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    level = get_log_level(level_name)

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.setLevel(level)
    root.addHandler(_handler(logging.StreamHandler(sys.stdout), level))
    root.addHandler(_handler(logging.FileHandler(path, encoding="utf-8"), level))
