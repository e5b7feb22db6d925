from __future__ import annotations

import logging
import sys

import pytest

from fsbatch.app.config import FsBatchConfig
from fsbatch.app.runner import AppRun, _close_run, run_app
from fsbatch.core.errors import ConfigError, ShutdownRequested, WatchTargetError
from fsbatch.model.batch import CommandSpec

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="POSIX processes")


EMIT = "import sys; sys.stdout.buffer.write(b'/w/a Created\\0/w/b Updated\\0'); sys.stdout.flush()"

APPEND_EVENTS = (
    "import os, sys\n"
    "with open(sys.argv[1], 'a') as f:\n"
    "    f.write(os.environ['FSBATCH_EVENTS'] + '\\n')\n"
)

FAIL_ONCE = (
    "import os, sys\n"
    "marker, out = sys.argv[1], sys.argv[2]\n"
    "if not os.path.exists(marker):\n"
    "    open(marker, 'w').close()\n"
    "    sys.exit(2)\n"
    "with open(out, 'a') as f:\n"
    "    f.write(os.environ['FSBATCH_EVENTS'] + '\\n')\n"
)


class RecordingSink:
    def __init__(self):
        self.events = []
        self.closed = False

    def on_dispatch(self, event):
        self.events.append(event)

    def close(self):
        self.closed = True


def _cfg(watch_dir, command_argv, **kw) -> FsBatchConfig:
    return FsBatchConfig(
        watch_dir=watch_dir,
        command=CommandSpec.from_argv(command_argv),
        watcher_driver="exec",
        watcher_argv=(sys.executable, "-c", EMIT),
        watcher_append_dir=False,
        grace_s=0.0,
        retry_delay_s=0.0,
        **kw,
    )


def _lines(path):
    return [ln for ln in path.read_text().split("\n") if ln]


def test_records_delivered_until_watcher_exits(tmp_path):
    out = tmp_path / "out.txt"
    sink = RecordingSink()

    summary = run_app(_cfg(tmp_path, [sys.executable, "-c", APPEND_EVENTS, str(out)]), sink=sink)

    assert summary.reason == "end_of_stream"
    assert summary.records == 2
    assert _lines(out) == ["/w/a Created", "/w/b Updated"]
    assert sink.closed


def test_failed_command_is_retried_with_same_batch(tmp_path):
    out = tmp_path / "out.txt"
    marker = tmp_path / "failed-once"
    sink = RecordingSink()

    summary = run_app(
        _cfg(tmp_path, [sys.executable, "-c", FAIL_ONCE, str(marker), str(out)]),
        sink=sink,
    )

    assert summary.attempts == summary.batches + 1
    assert _lines(out) == ["/w/a Created", "/w/b Updated"]
    kinds = [e.kind for e in sink.events]
    assert kinds[:4] == ["start", "fail", "retry", "start"]
    assert sink.events[1].exit_code == 2


def test_missing_watch_dir(tmp_path):
    with pytest.raises(WatchTargetError):
        run_app(_cfg(tmp_path / "absent", ["true"]))


def test_watch_target_must_be_directory(tmp_path):
    f = tmp_path / "file.txt"
    f.write_text("x")

    with pytest.raises(WatchTargetError):
        run_app(_cfg(f, ["true"]))


def test_unknown_driver_is_config_error(tmp_path):
    cfg = FsBatchConfig(
        watch_dir=tmp_path,
        command=CommandSpec.from_argv(["true"]),
        watcher_driver="nope",
    )

    with pytest.raises(ConfigError):
        run_app(cfg)


class _InterruptedWatcher:
    def stop(self):
        raise ShutdownRequested(15)


class _BrokenWatcher:
    def stop(self):
        raise RuntimeError("pipe already gone")


def _run_with(watcher, sink):
    return AppRun(
        config=None,
        lifecycle=None,
        watcher=watcher,
        reader=None,
        engine=None,
        sink=sink,
    )


def test_close_run_propagates_shutdown_and_still_closes_sink():
    sink = RecordingSink()

    with pytest.raises(ShutdownRequested):
        _close_run(_run_with(_InterruptedWatcher(), sink))

    assert sink.closed


def test_close_run_logs_other_cleanup_failures(caplog):
    sink = RecordingSink()

    with caplog.at_level(logging.ERROR, logger="fsbatch.app.runner"):
        _close_run(_run_with(_BrokenWatcher(), sink))

    assert sink.closed
    assert any("Failed to stop watcher" in r.getMessage() for r in caplog.records)
