"""Logging configuration for the billing API server.

One format for application and uvicorn records, written to stdout and to a
log file. Use DEBUG to see cache hits and misses.
"""

import logging
import sys
from pathlib import Path

LOG_FORMAT = "[%(asctime)s] %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def resolve_log_level(name: str) -> int:
    """Map a level name such as "warning" to its constant, INFO when unknown."""
    return logging.getLevelNamesMapping().get(name.upper(), logging.INFO)


def setup_server_logging(log_file: str = "logs/server.log", level: str = "INFO") -> None:
    """Route every record through the root logger to stdout and log_file.

    Safe to call twice: existing root handlers are replaced, not stacked.
    """
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    root_logger = logging.getLogger()
    root_logger.setLevel(resolve_log_level(level))

    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    for handler in (logging.StreamHandler(sys.stdout), logging.FileHandler(log_path)):
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.propagate = True
