from __future__ import annotations

import enum
import logging
import os
from typing import Optional, Union

from fsbatch.model.batch import EventRecord
from fsbatch.transport.base import Transport


class StreamState(enum.Enum):
    OPEN = "open"
    DRAINING = "draining"
    CLOSED = "closed"


class _EndOfStream:
    """Singleton marker returned once the watcher stream is gone."""

    _instance: Optional["_EndOfStream"] = None

    def __new__(cls) -> "_EndOfStream":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "END_OF_STREAM"

    def __bool__(self) -> bool:
        return False


END_OF_STREAM = _EndOfStream()

ReadResult = Union[EventRecord, _EndOfStream]


class RecordReader:
    """
    Splits a delimiter-separated byte stream into EventRecords.

    next_record() blocks until a full record (or end-of-stream) is seen.
    has_record_available() is a non-blocking probe and may say True on a closed
    stream; callers settle that by calling next_record().
    """

    def __init__(
        self,
        transport: Transport,
        *,
        delimiter: bytes = b"\0",
        chunk_size: int = 4096,
        logger: Optional[logging.Logger] = None,
    ):
        if len(delimiter) != 1:
            raise ValueError(f"delimiter must be exactly one byte, got {delimiter!r}")
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")

        self.transport = transport
        self.delimiter = bytes(delimiter)
        self.chunk_size = int(chunk_size)
        self.buffer = bytearray()
        self.state = StreamState.OPEN
        self.records_read = 0
        self._log = logger or logging.getLogger(__name__)

    # ---------------- Public API ----------------
    @property
    def closed(self) -> bool:
        return self.state is StreamState.CLOSED

    def next_record(self) -> ReadResult:
        """Return the next record, blocking as needed, or END_OF_STREAM."""
        while True:
            record = self._take_buffered()
            if record is not None:
                return record

            if self.state is StreamState.CLOSED:
                return END_OF_STREAM

            data = self.transport.read(self.chunk_size)
            if not data:
                return self._on_eof()

            self.buffer.extend(data)
            self.state = StreamState.OPEN
            self._log.debug(
                "Reader fed %d bytes, buffer_len=%d",
                len(data),
                len(self.buffer),
            )

    def has_record_available(self) -> bool:
        """Non-blocking probe; True when next_record() should not have to wait."""
        if self.delimiter in self.buffer:
            return True

        if self.state is StreamState.CLOSED:
            return False

        if self.transport.poll(0.0):
            return True

        self.state = StreamState.DRAINING
        return False

    # ---------------- Helpers ----------------
    def _take_buffered(self) -> Optional[EventRecord]:
        idx = self.buffer.find(self.delimiter)
        if idx < 0:
            return None

        raw = bytes(self.buffer[:idx])
        del self.buffer[: idx + 1]
        return self._emit(raw)

    def _on_eof(self) -> ReadResult:
        self.state = StreamState.CLOSED

        if not self.buffer:
            self._log.debug("STREAM_CLOSED records_read=%d", self.records_read)
            return END_OF_STREAM

        # Writer went away mid-record: hand out what it flushed, report the
        # closure on the following call.
        raw = bytes(self.buffer)
        self.buffer.clear()
        self._log.debug("STREAM_CLOSED_WITH_PARTIAL len=%d", len(raw))
        return self._emit(raw)

    def _emit(self, raw: bytes) -> EventRecord:
        self.records_read += 1
        return os.fsdecode(raw)
