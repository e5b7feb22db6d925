# fsbatch/runtime/engine.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Union

from fsbatch.model.batch import Batch, RetryState
from fsbatch.stream.reader import END_OF_STREAM, _EndOfStream
from .retry import RetryController


class Accumulator(Protocol):
    """Minimal interface BatchEngine needs from BatchAccumulator."""
    def accumulate_batch(self) -> Union[Batch, _EndOfStream]: ...


@dataclass
class RunSummary:
    batches: int = 0
    records: int = 0
    attempts: int = 0
    reason: str = "running"


class BatchEngine:
    """
    Strictly sequential accumulate -> dispatch/retry loop.

    One batch is active at a time; the next batch is only accumulated after
    the previous one has been dispatched successfully.
    """

    def __init__(
        self,
        accumulator: Accumulator,
        retry: RetryController,
        *,
        logger: Optional[logging.Logger] = None,
    ):
        self.accumulator = accumulator
        self.retry = retry
        self._log = logger or logging.getLogger(__name__)
        self.summary = RunSummary()

    def run_once(self) -> Optional[RetryState]:
        """Process one batch; None once the stream has ended."""
        batch = self.accumulator.accumulate_batch()
        if batch is END_OF_STREAM:
            self.summary.reason = "end_of_stream"
            return None

        assert isinstance(batch, Batch)
        self._log.info("BATCH_READY seq=%d records=%d", batch.seq, len(batch))

        state = self.retry.run(batch)

        self.summary.batches += 1
        self.summary.records += len(batch)
        self.summary.attempts += state.attempts
        return state

    def run(self) -> RunSummary:
        self._log.info("ENGINE_STARTED")
        while self.run_once() is not None:
            pass
        self._log.info(
            "ENGINE_STOPPED reason=%s batches=%d records=%d attempts=%d",
            self.summary.reason,
            self.summary.batches,
            self.summary.records,
            self.summary.attempts,
        )
        return self.summary
