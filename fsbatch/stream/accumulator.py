from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional, Union

from fsbatch.model.batch import Batch, EventRecord
from .reader import END_OF_STREAM, RecordReader, _EndOfStream


class BatchAccumulator:
    """
    Builds one Batch per call from a RecordReader.

    Algorithm:
      1. block for the first record (END_OF_STREAM propagates)
      2. drain whatever the reader can hand out without blocking
      3. once dry, sleep the grace window a single time and re-probe;
         resume draining if something arrived, otherwise finalize
    """

    def __init__(
        self,
        reader: RecordReader,
        *,
        grace_s: float = 3.0,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[logging.Logger] = None,
    ):
        if grace_s < 0:
            raise ValueError("grace_s must be >= 0")
        self.reader = reader
        self.grace_s = float(grace_s)
        self._sleep = sleep
        self._log = logger or logging.getLogger(__name__)
        self._next_seq = 1

    def accumulate_batch(self) -> Union[Batch, _EndOfStream]:
        first = self.reader.next_record()
        if first is END_OF_STREAM:
            self._log.debug("ACCUMULATE_EOS no pending records")
            return END_OF_STREAM

        records: List[EventRecord] = [first]  # type: ignore[list-item]
        grace_used = False

        while True:
            if self._drain_into(records):
                break  # stream closed while draining

            if grace_used:
                break

            grace_used = True
            if self.grace_s > 0:
                self._log.debug("GRACE_WAIT s=%.2f records=%d", self.grace_s, len(records))
                self._sleep(self.grace_s)

            if not self.reader.has_record_available():
                break

        batch = Batch.of(self._next_seq, records)
        self._next_seq += 1
        self._log.debug(
            "BATCH_ACCUMULATED seq=%d records=%d stream=%s",
            batch.seq,
            len(batch),
            self.reader.state.value,
        )
        return batch

    def _drain_into(self, records: List[EventRecord]) -> bool:
        """Append every immediately available record; True if the stream ended."""
        while self.reader.has_record_available():
            rec = self.reader.next_record()
            if rec is END_OF_STREAM:
                return True
            records.append(rec)  # type: ignore[arg-type]
        return self.reader.closed
