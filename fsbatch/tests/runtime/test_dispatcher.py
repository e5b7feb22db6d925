from __future__ import annotations

import os
import sys

import pytest

from fsbatch.core.errors import ShutdownRequested
from fsbatch.model.batch import Batch, CommandSpec
from fsbatch.runtime.dispatcher import EXIT_NOT_EXECUTABLE, EXIT_NOT_FOUND, CommandDispatcher
from fsbatch.runtime.engine import BatchEngine
from fsbatch.runtime.lifecycle import ProcessGroup
from fsbatch.runtime.retry import RetryController
from fsbatch.stream.accumulator import BatchAccumulator
from fsbatch.stream.reader import RecordReader

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="POSIX process groups")


def _py(code: str, *args: str) -> CommandSpec:
    return CommandSpec.from_argv([sys.executable, "-c", code, *args])


DUMP_ENV = "import os, sys; open(sys.argv[1], 'w').write(os.environ[sys.argv[2]])"


def test_batch_passed_newline_joined_in_env(tmp_path):
    out = tmp_path / "env.txt"
    d = CommandDispatcher(_py(DUMP_ENV, str(out), "FSBATCH_EVENTS"))

    rc = d.dispatch(Batch.of(1, ["t1 /a Created", "t2 /b Updated", "t2 /b Updated"]))

    assert rc == 0
    assert out.read_text() == "t1 /a Created\nt2 /b Updated\nt2 /b Updated"


def test_custom_env_var_name(tmp_path):
    out = tmp_path / "env.txt"
    d = CommandDispatcher(_py(DUMP_ENV, str(out), "MY_EVENTS"), env_var="MY_EVENTS")

    d.dispatch(Batch.of(1, ["x"]))

    assert out.read_text() == "x"


def test_parent_environment_is_inherited(tmp_path, monkeypatch):
    monkeypatch.setenv("FSBATCH_TEST_MARKER", "kept")
    out = tmp_path / "env.txt"
    d = CommandDispatcher(_py(DUMP_ENV, str(out), "FSBATCH_TEST_MARKER"))

    d.dispatch(Batch.of(1, ["x"]))

    assert out.read_text() == "kept"


def test_base_env_replaces_parent_environment():
    d = CommandDispatcher(_py("pass"), base_env={"ONLY": "this"})

    env = d.build_env(Batch.of(1, ["a", "b"]))

    assert env == {"ONLY": "this", "FSBATCH_EVENTS": "a\nb"}


def test_exit_code_is_returned():
    d = CommandDispatcher(_py("import sys; sys.exit(3)"))

    assert d.dispatch(Batch.of(1, ["x"])) == 3


def test_missing_executable_maps_to_127(tmp_path):
    d = CommandDispatcher(CommandSpec.from_argv([str(tmp_path / "no-such-binary")]))

    assert d.dispatch(Batch.of(1, ["x"])) == EXIT_NOT_FOUND


def test_child_runs_in_own_session(tmp_path):
    out = tmp_path / "sid.txt"
    d = CommandDispatcher(_py("import os, sys; open(sys.argv[1], 'w').write(str(os.getsid(0)))", str(out)))

    d.dispatch(Batch.of(1, ["x"]))

    assert int(out.read_text()) != os.getsid(0)


def test_child_registered_only_while_running():
    seen = []

    class SpyGroup(ProcessGroup):
        def add(self, proc, label):
            super().add(proc, label)
            seen.append(list(self.labels()))

    group = SpyGroup()
    d = CommandDispatcher(_py("pass"), processes=group)

    d.dispatch(Batch.of(1, ["x"]))

    assert seen == [["command"]]
    assert len(group) == 0


def test_command_override_argument(tmp_path):
    d = CommandDispatcher(_py("import sys; sys.exit(9)"))

    assert d.dispatch(Batch.of(1, ["x"]), _py("pass")) == 0


def test_invalid_env_var_rejected():
    with pytest.raises(ValueError):
        CommandDispatcher(_py("pass"), env_var="A=B")
    with pytest.raises(ValueError):
        CommandDispatcher(_py("pass"), env_var="")


def test_record_with_nul_byte_is_a_failed_attempt_not_a_crash():
    group = ProcessGroup()
    d = CommandDispatcher(_py("pass"), processes=group)

    rc = d.dispatch(Batch.of(1, ["/w/a\0b Created"]))

    assert rc == EXIT_NOT_EXECUTABLE
    assert len(group) == 0



class _ClosedAfter:
    """Transport that hands out `chunks`, then reports a closed pipe."""

    def __init__(self, chunks):
        self.chunks = list(chunks)

    def read(self, n):
        return self.chunks.pop(0) if self.chunks else b""

    def poll(self, timeout=0.0):
        return True


def test_nul_record_from_newline_stream_is_retried():
    reader = RecordReader(_ClosedAfter([b"/w/a\0b Created\n"]), delimiter=b"\n")
    sleeps = []

    def sleep(s):
        sleeps.append(s)
        if len(sleeps) == 2:
            raise ShutdownRequested(15)

    retry = RetryController(CommandDispatcher(_py("pass")), delay_s=10.0, sleep=sleep)
    engine = BatchEngine(BatchAccumulator(reader, grace_s=0.0), retry)

    with pytest.raises(ShutdownRequested):
        engine.run()

    assert sleeps == [10.0, 10.0]


def test_child_reaped_when_registration_is_interrupted():
    procs = []

    class InterruptedGroup(ProcessGroup):
        def add(self, proc, label):
            super().add(proc, label)
            procs.append(proc)
            raise ShutdownRequested(15)

    group = InterruptedGroup(terminate_timeout_s=5.0)
    d = CommandDispatcher(_py("import time; time.sleep(60)"), processes=group)

    with pytest.raises(ShutdownRequested):
        d.dispatch(Batch.of(1, ["x"]))

    assert procs[0].poll() is not None
    assert len(group) == 0
