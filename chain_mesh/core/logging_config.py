"""Root logging setup for the chain-mesh master process."""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional, Union

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_MAX_BYTES = 1024 * 1024
LOG_FILE_BACKUPS = 3

# Connection-refused noise while nodes boot.
QUIET_LOGGERS = ("aiohttp", "asyncio")

_installed: List[logging.Handler] = []


def _level_from_name(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level '{level}'")
    return value


def configure_logging(
    level: Union[int, str] = logging.INFO,
    *,
    console: bool = True,
    log_file: Optional[Union[str, Path]] = None,
) -> List[logging.Handler]:
    """Send master logs to stdout and/or a rotating file.

    Calling again replaces the handlers installed by the previous call.
    Returns the handlers now attached to the root logger.
    """
    numeric_level = _level_from_name(level)
    root = logging.getLogger()

    for handler in list(root.handlers):
        root.removeHandler(handler)
    while _installed:
        _installed.pop().close()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)
    if console:
        _installed.append(logging.StreamHandler(sys.stdout))
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        _installed.append(RotatingFileHandler(
            log_path,
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS,
            encoding="utf-8",
        ))

    for handler in _installed:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(numeric_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.ERROR))

    return list(_installed)


__all__ = ["configure_logging", "LOG_FORMAT", "LOG_DATEFMT", "QUIET_LOGGERS"]
