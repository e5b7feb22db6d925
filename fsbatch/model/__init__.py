from .batch import Batch, CommandSpec, EventRecord, RetryState

__all__ = ["Batch",
           "CommandSpec",
           "EventRecord",
           "RetryState"]
