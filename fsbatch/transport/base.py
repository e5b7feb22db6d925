from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class Transport(ABC):
    """
    Abstract read-side byte transport (watcher pipe, stdin, etc.).

    Contract:
      - open()/close() manage the underlying handle.
      - read(n) blocks until at least one byte is available and returns 1..n
        bytes, or returns b"" once the stream is permanently closed.
      - poll(timeout) reports whether read() would return without blocking.
        A closed stream also counts as "readable", so poll() alone is not an
        end-of-stream signal.
    """

    @abstractmethod
    def open(self) -> None: ...

    @abstractmethod
    def close(self) -> None: ...

    @abstractmethod
    def read(self, n: int) -> bytes: ...

    @abstractmethod
    def poll(self, timeout: float = 0.0) -> bool: ...

    def __enter__(self) -> "Transport":
        self.open()
        return self

    def __exit__(self, exc_type: type | None, exc_val: BaseException | None, exc_tb: Any) -> None:
        self.close()
