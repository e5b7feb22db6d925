# fsbatch/transport/errors.py
from __future__ import annotations

class TransportError(Exception):
    """Base class for failures of the byte source under the record reader."""

class TransportOpenError(TransportError):
    """The source descriptor is unusable (closed file object, bad fd)."""

class TransportIOError(TransportError):
    """read() or poll() on the pipe failed, or was used while not open."""
