# fsbatch/common/logging.py
"""
Logging setup for the CLI.

Three tiers, all on stderr so the command's own stdout stays clean:
  -q        errors only
  default   informational
  -v        debug
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional, TextIO

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def level_for(verbosity: int = 0, quiet: bool = False) -> int:
    if quiet:
        return logging.ERROR
    if verbosity >= 1:
        return logging.DEBUG
    return logging.INFO


def configure_logging(
    *,
    verbosity: int = 0,
    quiet: bool = False,
    log_file: Optional[Path] = None,
    stream: Optional[TextIO] = None,
) -> int:
    """
    Point the root logger at stderr (idempotent) and optionally a file.
    Returns the effective level.
    """
    level = level_for(verbosity, quiet)
    root = logging.getLogger()
    root.setLevel(level)

    target_stream = stream or sys.stderr
    console = None
    for h in root.handlers:
        if type(h) is logging.StreamHandler and getattr(h, "stream", None) is target_stream:
            console = h
            break
    if console is None:
        console = logging.StreamHandler(target_stream)
        console.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(console)
    console.setLevel(level)

    if log_file is not None:
        configure_file_logging(Path(log_file), level=level)

    return level


def configure_file_logging(log_path: Path, *, level: int = logging.INFO) -> None:
    """
    Add a file handler to the root logger (idempotent).
    """
    root = logging.getLogger()
    log_path.parent.mkdir(parents=True, exist_ok=True)
    target = str(log_path.resolve())

    for h in root.handlers:
        if isinstance(h, logging.FileHandler) and getattr(h, "baseFilename", None) == target:
            h.setLevel(level)
            return

    fh = logging.FileHandler(log_path, encoding="utf-8", delay=True)
    fh.setLevel(level)
    fh.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(fh)

    if root.level > level:
        root.setLevel(level)
