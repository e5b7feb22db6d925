from __future__ import annotations

import logging
import os
import subprocess
from typing import Mapping, Optional

from fsbatch.model.batch import Batch, CommandSpec
from .lifecycle import ProcessGroup

#: Shell conventions for "could not execute".
EXIT_NOT_EXECUTABLE = 126
EXIT_NOT_FOUND = 127


class CommandDispatcher:
    """
    Runs the configured command once for a batch and waits for it.

    The batch is handed over in a single environment variable, records joined
    with newlines in arrival order. The child leads its own process group and
    is registered in `processes` for as long as it runs.
    """

    def __init__(
        self,
        command: CommandSpec,
        *,
        env_var: str = "FSBATCH_EVENTS",
        processes: Optional[ProcessGroup] = None,
        base_env: Optional[Mapping[str, str]] = None,
        cwd: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ):
        if not env_var or "=" in env_var:
            raise ValueError(f"Invalid environment variable name: {env_var!r}")
        self.command = command
        self.env_var = env_var
        self.processes = processes if processes is not None else ProcessGroup()
        self.base_env = base_env
        self.cwd = cwd
        self._log = logger or logging.getLogger(__name__)

    def build_env(self, batch: Batch) -> dict:
        env = dict(os.environ if self.base_env is None else self.base_env)
        env[self.env_var] = batch.joined("\n")
        return env

    def dispatch(self, batch: Batch, command: Optional[CommandSpec] = None) -> int:
        spec = command or self.command
        argv = spec.argv

        self._log.debug("COMMAND_START seq=%d records=%d argv=%s", batch.seq, len(batch), argv)
        try:
            proc = subprocess.Popen(
                argv,
                env=self.build_env(batch),
                cwd=self.cwd,
                stdin=subprocess.DEVNULL,
                start_new_session=True,
            )
        except FileNotFoundError:
            self._log.error("COMMAND_NOT_FOUND argv0=%s", spec.executable)
            return EXIT_NOT_FOUND
        except PermissionError:
            self._log.error("COMMAND_NOT_EXECUTABLE argv0=%s", spec.executable)
            return EXIT_NOT_EXECUTABLE
        except OSError as e:
            self._log.error("COMMAND_SPAWN_FAILED argv0=%s err=%s", spec.executable, e)
            return EXIT_NOT_EXECUTABLE
        except ValueError as e:
            # e.g. a record carrying a NUL byte cannot go into the environment
            self._log.error("COMMAND_SPAWN_FAILED seq=%d err=%s", batch.seq, e)
            return EXIT_NOT_EXECUTABLE

        try:
            self.processes.add(proc, "command")
            rc = proc.wait()
        finally:
            # Interrupted (shutdown): reap the child before letting go of it.
            if proc.poll() is None:
                self.processes.terminate(proc, "command")
            self.processes.discard(proc)

        self._log.debug("COMMAND_EXIT seq=%d pid=%d rc=%d", batch.seq, proc.pid, rc)
        return rc
