# fsbatch/runtime/lifecycle.py
from __future__ import annotations

import logging
import os
import signal
import subprocess
import threading
from typing import Any, Dict, List, Optional, Tuple

from fsbatch.core.errors import ShutdownRequested


class ProcessGroup:
    """
    Descendant processes spawned by this run (watcher + in-flight command).

    Every member is expected to lead its own session (start_new_session=True),
    so termination goes to the whole process group and reaches grandchildren
    the command may have forked.
    """

    def __init__(self, *, terminate_timeout_s: float = 2.0, logger: Optional[logging.Logger] = None):
        self.terminate_timeout_s = float(terminate_timeout_s)
        self._members: List[Tuple[str, subprocess.Popen]] = []
        self._log = logger or logging.getLogger(__name__)

    def add(self, proc: subprocess.Popen, label: str) -> None:
        self._members.append((label, proc))

    def discard(self, proc: subprocess.Popen) -> None:
        self._members = [(lbl, p) for lbl, p in self._members if p is not proc]

    def labels(self) -> list[str]:
        return [lbl for lbl, _ in self._members]

    def __len__(self) -> int:
        return len(self._members)

    def terminate(self, proc: subprocess.Popen, label: str = "process") -> None:
        """SIGTERM the process group, escalate to SIGKILL after the timeout."""
        if proc.poll() is not None:
            return

        self._log.info("TERMINATE %s pid=%d", label, proc.pid)
        self._send(proc, signal.SIGTERM)
        try:
            proc.wait(timeout=self.terminate_timeout_s)
            return
        except subprocess.TimeoutExpired:
            pass

        self._log.warning("KILL %s pid=%d (no exit after %.1fs)", label, proc.pid, self.terminate_timeout_s)
        self._send(proc, getattr(signal, "SIGKILL", signal.SIGTERM))
        try:
            proc.wait(timeout=self.terminate_timeout_s)
        except subprocess.TimeoutExpired:
            self._log.error("PROCESS_SURVIVED_KILL %s pid=%d", label, proc.pid)

    def signal_all(self, sig: int = signal.SIGTERM) -> None:
        """Send `sig` to every live member without waiting for it to exit."""
        for label, proc in reversed(list(self._members)):
            if proc.poll() is not None:
                continue
            self._log.info("SIGNAL %s pid=%d sig=%d", label, proc.pid, sig)
            try:
                self._send(proc, sig)
            except OSError:
                self._log.exception("Failed to signal %s pid=%d", label, proc.pid)

    def terminate_all(self) -> None:
        # Newest first: the command before the watcher feeding us.
        for label, proc in reversed(list(self._members)):
            try:
                self.terminate(proc, label)
            except Exception:
                self._log.exception("Failed to terminate %s pid=%s", label, getattr(proc, "pid", "?"))

    @staticmethod
    def _send(proc: subprocess.Popen, sig: int) -> None:
        killpg = getattr(os, "killpg", None)
        if killpg is None:
            proc.send_signal(sig)
            return
        try:
            killpg(proc.pid, sig)
        except ProcessLookupError:
            pass
        except PermissionError:
            proc.send_signal(sig)


class LifecycleHandler:
    """
    Owns the cancellation token and the descendant process set.

    Used as a context manager around a run:
      - __enter__ installs SIGINT/SIGTERM handlers (main thread only)
      - a signal sets the token, sends SIGTERM to all descendants and raises
        ShutdownRequested out of whatever the engine was blocked in
      - unwinding reaps the children (escalating to SIGKILL); __exit__
        terminates anything still alive and restores handlers
    """

    SIGNALS: Tuple[int, ...] = (signal.SIGINT, signal.SIGTERM)

    def __init__(self, processes: Optional[ProcessGroup] = None, *, logger: Optional[logging.Logger] = None):
        self._log = logger or logging.getLogger(__name__)
        self.processes = processes if processes is not None else ProcessGroup(logger=self._log)
        self.cancel_token = threading.Event()
        self.received_signal: Optional[int] = None
        self._previous: Dict[int, Any] = {}

    # ---------------- signals ----------------
    def install(self) -> None:
        if threading.current_thread() is not threading.main_thread():
            self._log.debug("SIGNAL_HANDLERS_SKIPPED not on main thread")
            return
        for sig in self.SIGNALS:
            self._previous[sig] = signal.signal(sig, self._handle_signal)

    def uninstall(self) -> None:
        for sig, prev in self._previous.items():
            signal.signal(sig, prev)
        self._previous.clear()

    def _handle_signal(self, signum: int, _frame: object) -> None:
        if self.cancel_token.is_set():
            return  # already shutting down
        self._log.warning("SIGNAL_RECEIVED signum=%d descendants=%s", signum, self.processes.labels())
        self.cancel(signum)
        raise ShutdownRequested(signum)

    # ---------------- cancellation ----------------
    @property
    def cancelled(self) -> bool:
        return self.cancel_token.is_set()

    def cancel(self, signum: int = signal.SIGTERM) -> None:
        """Set the token and SIGTERM every descendant (idempotent)."""
        if self.received_signal is None:
            self.received_signal = int(signum)
        self.cancel_token.set()
        # No waiting here: the interrupted frame may hold the Popen wait lock.
        self.processes.signal_all(signal.SIGTERM)

    def check(self) -> None:
        if self.cancel_token.is_set():
            raise ShutdownRequested(self.received_signal or signal.SIGTERM)

    def sleep(self, seconds: float) -> None:
        """Cancellable sleep; raises ShutdownRequested if cancelled meanwhile."""
        if self.cancel_token.wait(max(0.0, float(seconds))):
            self.check()

    # ---------------- context manager ----------------
    def __enter__(self) -> "LifecycleHandler":
        self.install()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            self.processes.terminate_all()
        finally:
            self.uninstall()
