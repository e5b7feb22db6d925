# fsbatch/watcher/process.py
from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass, field
from typing import List, Optional

from fsbatch.core.errors import WatcherStartError
from fsbatch.runtime.lifecycle import ProcessGroup
from fsbatch.transport.errors import TransportError
from fsbatch.transport.pipe import PipeTransport


@dataclass
class WatcherProcess:
    """
    External watcher child whose stdout is the record stream.

    Responsibilities:
      - spawn the watcher in its own session, stdin from /dev/null
      - register it with the run's ProcessGroup
      - expose stdout as an open PipeTransport
      - translate spawn failures into operator-safe errors
    """

    argv: List[str]
    processes: ProcessGroup = field(default_factory=ProcessGroup)
    logger: Optional[logging.Logger] = None

    def __post_init__(self) -> None:
        self._log = self.logger or logging.getLogger(__name__)
        self._proc: Optional[subprocess.Popen] = None
        self._transport: Optional[PipeTransport] = None

    @property
    def is_started(self) -> bool:
        return self._proc is not None

    @property
    def pid(self) -> Optional[int]:
        return self._proc.pid if self._proc is not None else None

    @property
    def returncode(self) -> Optional[int]:
        return self._proc.poll() if self._proc is not None else None

    @property
    def transport(self) -> PipeTransport:
        if self._transport is None:
            raise RuntimeError("WatcherProcess not started (transport is None)")
        return self._transport

    def start(self) -> PipeTransport:
        if self._transport is not None:
            return self._transport

        try:
            self._proc = subprocess.Popen(
                self.argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                bufsize=0,
                start_new_session=True,
            )
        except FileNotFoundError:
            raise WatcherStartError(
                f"Watcher executable not found: {self.argv[0]}",
                hint="Install it or pick another driver with --watcher.",
                details={"argv": list(self.argv)},
            ) from None
        except OSError as e:
            raise WatcherStartError(
                f"Could not start watcher: {self.argv[0]}",
                hint=str(e),
                details={"argv": list(self.argv)},
            ) from None

        try:
            self.processes.add(self._proc, "watcher")
            self._log.info("WATCHER_STARTED pid=%d argv=%s", self._proc.pid, self.argv)
            transport = PipeTransport(self._proc.stdout)
            transport.open()
        except TransportError as e:
            self._log.exception("WATCHER_PIPE_OPEN_FAILED")
            self.stop()
            raise WatcherStartError(
                "Could not attach to the watcher output.",
                hint=str(e),
                details={"argv": list(self.argv)},
            ) from None
        except BaseException:
            # Interrupted before the caller owns the watcher: do not orphan it.
            self.stop()
            raise

        self._transport = transport
        return transport

    def stop(self) -> None:
        if self._transport is not None:
            try:
                self._transport.close()
            except Exception:
                self._log.exception("Failed to close watcher pipe")
            self._transport = None

        if self._proc is not None:
            try:
                self.processes.terminate(self._proc, "watcher")
            except Exception:
                self._log.exception("Failed to terminate watcher")
            self.processes.discard(self._proc)
            self._log.debug("WATCHER_STOPPED rc=%s", self._proc.poll())

    def __enter__(self) -> "WatcherProcess":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
