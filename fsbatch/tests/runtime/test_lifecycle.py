from __future__ import annotations

import os
import signal
import subprocess
import sys
import threading
import time

import pytest

from fsbatch.core.errors import ShutdownRequested
from fsbatch.runtime.lifecycle import LifecycleHandler, ProcessGroup

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")


def _spawn(code: str) -> subprocess.Popen:
    return subprocess.Popen(
        [sys.executable, "-c", code],
        stdout=subprocess.PIPE,
        start_new_session=True,
    )


SLEEPER = "import sys, time; print('ready', flush=True); time.sleep(60)"
STUBBORN = (
    "import signal, sys, time; signal.signal(signal.SIGTERM, signal.SIG_IGN); "
    "print('ready', flush=True); time.sleep(60)"
)


def _ready(proc: subprocess.Popen) -> subprocess.Popen:
    assert proc.stdout.readline().strip() == b"ready"
    return proc


@pytest.fixture
def reaper():
    procs: list[subprocess.Popen] = []
    yield procs
    for p in procs:
        if p.poll() is None:
            p.kill()
            p.wait()
        if p.stdout:
            p.stdout.close()


def test_terminate_all_stops_every_member(reaper):
    a = _ready(_spawn(SLEEPER))
    b = _ready(_spawn(SLEEPER))
    reaper += [a, b]
    group = ProcessGroup(terminate_timeout_s=5.0)
    group.add(a, "watcher")
    group.add(b, "command")

    group.terminate_all()

    assert a.poll() is not None
    assert b.poll() is not None


def test_terminate_escalates_to_kill(reaper):
    p = _ready(_spawn(STUBBORN))
    reaper.append(p)
    group = ProcessGroup(terminate_timeout_s=0.5)

    t0 = time.monotonic()
    group.terminate(p, "command")

    assert p.poll() == -signal.SIGKILL
    assert time.monotonic() - t0 < 5.0


def test_terminate_ignores_already_exited(reaper):
    p = _spawn("pass")
    reaper.append(p)
    p.wait()

    ProcessGroup().terminate(p)  # no error


def test_discard_removes_member(reaper):
    p = _ready(_spawn(SLEEPER))
    reaper.append(p)
    group = ProcessGroup()
    group.add(p, "command")

    group.discard(p)

    assert len(group) == 0
    group.terminate_all()
    assert p.poll() is None


def test_signal_handler_terminates_descendants_and_raises(reaper):
    p = _ready(_spawn(SLEEPER))
    reaper.append(p)
    handler = LifecycleHandler(ProcessGroup(terminate_timeout_s=5.0))
    handler.processes.add(p, "command")

    with pytest.raises(ShutdownRequested) as ei:
        handler._handle_signal(signal.SIGTERM, None)

    assert ei.value.signum == signal.SIGTERM
    assert handler.cancelled
    assert p.wait(timeout=10) == -signal.SIGTERM


def test_second_signal_while_shutting_down_is_ignored():
    handler = LifecycleHandler()
    handler.cancel(signal.SIGINT)

    handler._handle_signal(signal.SIGTERM, None)  # returns quietly

    assert handler.received_signal == signal.SIGINT


def test_real_sigterm_interrupts_blocking_wait(reaper):
    p = _ready(_spawn(SLEEPER))
    reaper.append(p)

    with LifecycleHandler(ProcessGroup(terminate_timeout_s=5.0)) as handler:
        handler.processes.add(p, "command")
        with pytest.raises(ShutdownRequested):
            threading.Timer(0.2, os.kill, args=(os.getpid(), signal.SIGTERM)).start()
            p.wait(timeout=30)

    assert p.poll() is not None


def test_handlers_restored_on_exit():
    before = signal.getsignal(signal.SIGTERM)

    with LifecycleHandler() as handler:
        assert signal.getsignal(signal.SIGTERM) == handler._handle_signal

    assert signal.getsignal(signal.SIGTERM) == before


def test_sleep_returns_normally_without_cancel():
    handler = LifecycleHandler()

    t0 = time.monotonic()
    handler.sleep(0.05)

    assert time.monotonic() - t0 >= 0.04


def test_sleep_raises_when_cancelled_from_another_thread():
    handler = LifecycleHandler()
    threading.Timer(0.1, handler.cancel, args=(signal.SIGINT,)).start()

    t0 = time.monotonic()
    with pytest.raises(ShutdownRequested) as ei:
        handler.sleep(30)

    assert ei.value.signum == signal.SIGINT
    assert time.monotonic() - t0 < 5.0


def test_install_skipped_off_main_thread():
    handler = LifecycleHandler()
    before = signal.getsignal(signal.SIGTERM)

    t = threading.Thread(target=handler.install)
    t.start()
    t.join()

    assert signal.getsignal(signal.SIGTERM) == before


def test_exit_terminates_leftovers(reaper):
    p = _ready(_spawn(SLEEPER))
    reaper.append(p)

    with LifecycleHandler(ProcessGroup(terminate_timeout_s=5.0)) as handler:
        handler.processes.add(p, "watcher")

    assert p.poll() is not None


def test_signal_all_does_not_wait(reaper):
    p = _ready(_spawn(STUBBORN))
    reaper.append(p)
    group = ProcessGroup(terminate_timeout_s=30.0)
    group.add(p, "command")

    t0 = time.monotonic()
    group.signal_all(signal.SIGTERM)

    assert time.monotonic() - t0 < 5.0
    assert p.poll() is None
    assert group.labels() == ["command"]
