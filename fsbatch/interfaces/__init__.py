from .dispatch_sink import DispatchEvent, DispatchSink

__all__ = ["DispatchEvent", "DispatchSink"]
