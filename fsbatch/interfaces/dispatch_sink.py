from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol


@dataclass(frozen=True, slots=True)
class DispatchEvent:
    """
    Command attempt telemetry event (for logging/tracing/tests).
    Keep this small + stable; put details into payload.
    """
    batch_seq: int
    attempt: int
    kind: str                   # "start" | "ok" | "fail" | "retry"
    exit_code: Optional[int] = None
    payload: Optional[Mapping[str, Any]] = None


class DispatchSink(Protocol):
    def on_dispatch(self, event: DispatchEvent) -> None: ...
    def close(self) -> None: ...
