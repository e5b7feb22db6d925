# fsbatch/core/errors.py
from __future__ import annotations


class FsBatchError(Exception):
    """
    Base class for all expected operational errors in fsbatch.
    """

    #: Stable machine-readable identifier (for CLI exit mapping, log parsing, etc.)
    code: str = "unknown"

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Configuration / setup errors (nothing spawned yet)
# ---------------------------------------------------------------------------

class ConfigError(FsBatchError):
    """
    Configuration is invalid or inconsistent.

    Examples:
      - unreadable or malformed YAML config file
      - unknown watcher driver
      - delimiter that is not exactly one byte
      - event filters that leave nothing to watch
    """
    code = "config_error"


class WatchTargetError(FsBatchError):
    """
    WATCHDIR is missing or is not a directory.
    """
    code = "watch_target_error"


# ---------------------------------------------------------------------------
# Process lifecycle errors
# ---------------------------------------------------------------------------

class WatcherStartError(FsBatchError):
    """
    The watcher process could not be spawned.

    Examples:
      - fswatch / inotifywait not installed
      - permission denied on the watcher executable
    """
    code = "watcher_start_error"


class ShutdownRequested(FsBatchError):
    """
    A termination signal arrived; descendants have already been terminated.
    """
    code = "shutdown_requested"

    def __init__(self, signum: int, *, hint: str | None = None):
        super().__init__(
            f"Terminated by signal {signum}.",
            hint=hint,
            details={"signum": int(signum)},
        )
        self.signum = int(signum)
