from __future__ import annotations

import enum
import logging
import time
from typing import Callable, Optional, Protocol

from fsbatch.core.errors import ShutdownRequested
from fsbatch.interfaces.dispatch_sink import DispatchEvent, DispatchSink
from fsbatch.model.batch import Batch, RetryState


class Dispatcher(Protocol):
    """Minimal interface RetryController needs."""
    def dispatch(self, batch: Batch) -> int: ...


class RetryPhase(enum.Enum):
    IDLE = "idle"
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    RETRYING = "retrying"


class RetryController:
    """
    Dispatches one batch until the command exits 0.

    A failed attempt sleeps a fixed delay and re-runs the identical batch.
    There is no attempt cap and no backoff growth; the stream is not read
    while this is going on.
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        *,
        delay_s: float = 10.0,
        sleep: Callable[[float], None] = time.sleep,
        sink: Optional[DispatchSink] = None,
        logger: Optional[logging.Logger] = None,
    ):
        if delay_s < 0:
            raise ValueError("delay_s must be >= 0")
        self.dispatcher = dispatcher
        self.delay_s = float(delay_s)
        self._sleep = sleep
        self._sink = sink
        self._log = logger or logging.getLogger(__name__)
        self.phase = RetryPhase.IDLE

    def run(self, batch: Batch) -> RetryState:
        state = RetryState(batch=batch, delay_s=self.delay_s)

        while True:
            self.phase = RetryPhase.ATTEMPTING
            self._emit(state, "start")

            rc = self.dispatcher.dispatch(batch)
            state.record_attempt(rc)

            if rc == 0:
                self.phase = RetryPhase.SUCCEEDED
                self._emit(state, "ok", rc)
                if state.attempts > 1:
                    self._log.info("COMMAND_SUCCEEDED seq=%d attempts=%d", batch.seq, state.attempts)
                return state

            self.phase = RetryPhase.RETRYING
            self._emit(state, "fail", rc)
            self._log.warning(
                "COMMAND_FAILED seq=%d attempt=%d rc=%d retry_in_s=%.1f",
                batch.seq,
                state.attempts,
                rc,
                self.delay_s,
            )
            self._sleep(self.delay_s)
            self._emit(state, "retry", rc)

    def _emit(self, state: RetryState, kind: str, exit_code: Optional[int] = None) -> None:
        if self._sink is None:
            return
        attempt = state.attempts if kind != "start" else state.attempts + 1
        try:
            self._sink.on_dispatch(
                DispatchEvent(
                    batch_seq=state.batch.seq,
                    attempt=attempt,
                    kind=kind,
                    exit_code=exit_code,
                    payload={"records": len(state.batch), "delay_s": state.delay_s},
                )
            )
        except ShutdownRequested:
            raise
        except Exception:
            self._log.exception("DISPATCH_SINK_ERROR kind=%s", kind)
