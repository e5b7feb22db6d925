# fsbatch/model/batch.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Tuple

#: One opaque watcher record; never interpreted.
EventRecord = str


@dataclass(frozen=True)
class Batch:
    """
    Ordered, non-empty set of records coalesced into one command invocation.

    Records keep arrival order. Byte-identical records are kept as-is.
    """
    seq: int
    records: Tuple[EventRecord, ...]

    def __post_init__(self) -> None:
        if not self.records:
            raise ValueError("Batch must contain at least one record")

    @classmethod
    def of(cls, seq: int, records: Iterable[EventRecord]) -> "Batch":
        return cls(seq=int(seq), records=tuple(records))

    def __len__(self) -> int:
        return len(self.records)

    def joined(self, sep: str = "\n") -> str:
        return sep.join(self.records)


@dataclass(frozen=True)
class CommandSpec:
    """Executable plus argument vector, fixed for the process lifetime."""
    executable: str
    args: Tuple[str, ...] = ()

    @classmethod
    def from_argv(cls, argv: Iterable[str]) -> "CommandSpec":
        argv = [str(a) for a in argv]
        if not argv:
            raise ValueError("CommandSpec needs at least an executable")
        return cls(executable=argv[0], args=tuple(argv[1:]))

    @property
    def argv(self) -> list[str]:
        return [self.executable, *self.args]


@dataclass
class RetryState:
    """
    Retry bookkeeping for the single active batch.

    Discarded on success; on failure the same instance (same batch) is reused.
    """
    batch: Batch
    delay_s: float
    attempts: int = 0
    last_exit_code: int | None = field(default=None)

    def record_attempt(self, exit_code: int) -> None:
        self.attempts += 1
        self.last_exit_code = int(exit_code)
