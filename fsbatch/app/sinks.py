from __future__ import annotations

import logging
from typing import Optional

from fsbatch.interfaces.dispatch_sink import DispatchEvent


class LoggingDispatchSink:
    """
    DispatchSink that writes one log line per attempt event.

    Start/retry events go to DEBUG; completions go to INFO.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._log = logger or logging.getLogger("fsbatch.dispatch")
        self.events_seen = 0

    def on_dispatch(self, event: DispatchEvent) -> None:
        self.events_seen += 1
        records = (event.payload or {}).get("records")

        if event.kind == "ok":
            self._log.info(
                "DISPATCH_OK seq=%d attempt=%d records=%s",
                event.batch_seq,
                event.attempt,
                records,
            )
        elif event.kind == "fail":
            self._log.debug(
                "DISPATCH_FAIL seq=%d attempt=%d rc=%s",
                event.batch_seq,
                event.attempt,
                event.exit_code,
            )
        else:
            self._log.debug(
                "DISPATCH_%s seq=%d attempt=%d records=%s",
                event.kind.upper(),
                event.batch_seq,
                event.attempt,
                records,
            )

    def close(self) -> None:
        return None
