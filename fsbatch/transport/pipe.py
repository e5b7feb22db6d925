# fsbatch/transport/pipe.py
from __future__ import annotations

import os
import select
from typing import BinaryIO, Optional, Union

from .base import Transport
from .errors import TransportIOError, TransportOpenError


class PipeTransport(Transport):
    """
    Transport over a readable file descriptor (subprocess stdout, os.pipe, stdin).

    read(n) is a single os.read(): it blocks until the writer produces data and
    returns whatever is there (up to n bytes), so nothing beyond one chunk is
    ever pulled out of the pipe ahead of the consumer.
    """

    def __init__(self, source: Union[int, BinaryIO], *, close_source: bool = True):
        self.source = source
        self.close_source = close_source
        self.fd: Optional[int] = None

    def open(self) -> None:
        try:
            self.fd = self.source if isinstance(self.source, int) else self.source.fileno()
        except (OSError, ValueError) as e:
            self.fd = None
            raise TransportOpenError(f"pipe source has no usable descriptor: {e}") from None

    def close(self) -> None:
        if self.fd is None:
            return
        fd, self.fd = self.fd, None
        if not self.close_source:
            return
        try:
            if isinstance(self.source, int):
                os.close(fd)
            else:
                self.source.close()
        except OSError:
            pass

    def is_open(self) -> bool:
        return self.fd is not None

    def read(self, n: int) -> bytes:
        if self.fd is None:
            raise TransportIOError("read while transport not open")

        try:
            return os.read(self.fd, n)
        except OSError as e:
            raise TransportIOError(f"pipe read failed: {e}") from None

    def poll(self, timeout: float = 0.0) -> bool:
        if self.fd is None:
            raise TransportIOError("poll while transport not open")

        try:
            readable, _, _ = select.select([self.fd], [], [], max(0.0, float(timeout)))
        except (OSError, ValueError) as e:
            raise TransportIOError(f"pipe poll failed: {e}") from None
        return bool(readable)
