# runtime/__init__.py

from .lifecycle import LifecycleHandler, ProcessGroup
from .dispatcher import CommandDispatcher
from .retry import RetryController, RetryPhase
from .engine import BatchEngine, RunSummary

__all__ = [
    "LifecycleHandler", "ProcessGroup",
    "CommandDispatcher",
    "RetryController", "RetryPhase",
    "BatchEngine", "RunSummary",
]
