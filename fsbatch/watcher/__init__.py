# watcher/__init__.py

from .drivers import (
    WatcherDriver,
    FswatchDriver,
    InotifywaitDriver,
    ExecDriver,
    effective_events,
)
from .registry import WatcherDriverRegistry
from .process import WatcherProcess

__all__ = [
    "WatcherDriver",
    "FswatchDriver", "InotifywaitDriver", "ExecDriver",
    "effective_events",
    "WatcherDriverRegistry",
    "WatcherProcess",
]
