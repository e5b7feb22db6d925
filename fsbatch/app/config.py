from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Tuple

from fsbatch.core.errors import ConfigError
from fsbatch.model.batch import CommandSpec


@dataclass(frozen=True)
class EngineDefaults:
    watcher_driver: str = "fswatch"
    delimiter: bytes = b"\0"
    grace_s: float = 3.0            # debounce pause after the stream runs dry
    retry_delay_s: float = 10.0     # fixed, no backoff, no cap
    env_var: str = "FSBATCH_EVENTS"
    terminate_timeout_s: float = 2.0
    read_chunk_size: int = 4096

DEFAULTS = EngineDefaults()

_DELIMITER_ALIASES = {
    "\\0": b"\0",
    "nul": b"\0",
    "null": b"\0",
    "\\n": b"\n",
    "newline": b"\n",
    "\\t": b"\t",
    "tab": b"\t",
}


def parse_delimiter(value: Any) -> bytes:
    """
    Accept a delimiter as bytes, an integer byte value, a single character,
    or an alias ('\\0', 'nul', '\\n', 'newline', '\\t', 'tab').
    """
    if isinstance(value, bytes):
        raw = value
    elif isinstance(value, bool):
        raw = b""
    elif isinstance(value, int):
        if not 0 <= value <= 255:
            raise ConfigError(f"Delimiter byte out of range: {value}.")
        raw = bytes([value])
    elif isinstance(value, str):
        alias = _DELIMITER_ALIASES.get(value.lower())
        raw = alias if alias is not None else value.encode("utf-8")
    else:
        raw = b""

    if len(raw) != 1:
        raise ConfigError(
            f"Delimiter must be exactly one byte, got {value!r}.",
            hint="Use e.g. '\\0' (default) or '\\n'.",
        )
    return raw


@dataclass(frozen=True)
class FsBatchConfig:
    """
    Immutable run configuration, built once at startup.
    """
    watch_dir: Path
    command: CommandSpec
    watcher_driver: str = DEFAULTS.watcher_driver
    watcher_argv: Tuple[str, ...] = ()
    watcher_append_dir: bool = True
    allowed_events: Tuple[str, ...] = ()
    excluded_events: Tuple[str, ...] = ()
    delimiter: bytes = DEFAULTS.delimiter
    grace_s: float = DEFAULTS.grace_s
    retry_delay_s: float = DEFAULTS.retry_delay_s
    env_var: str = DEFAULTS.env_var
    terminate_timeout_s: float = DEFAULTS.terminate_timeout_s
    read_chunk_size: int = DEFAULTS.read_chunk_size

    def __post_init__(self) -> None:
        object.__setattr__(self, "watch_dir", Path(self.watch_dir))
        object.__setattr__(self, "delimiter", parse_delimiter(self.delimiter))
        object.__setattr__(self, "watcher_argv", tuple(str(a) for a in self.watcher_argv))
        object.__setattr__(self, "allowed_events", tuple(self.allowed_events))
        object.__setattr__(self, "excluded_events", tuple(self.excluded_events))

        if self.grace_s < 0:
            raise ConfigError(f"grace_s must be >= 0, got {self.grace_s}.")
        if self.retry_delay_s < 0:
            raise ConfigError(f"retry_delay_s must be >= 0, got {self.retry_delay_s}.")
        if self.terminate_timeout_s <= 0:
            raise ConfigError(f"terminate_timeout_s must be > 0, got {self.terminate_timeout_s}.")
        if self.read_chunk_size < 1:
            raise ConfigError(f"read_chunk_size must be >= 1, got {self.read_chunk_size}.")
        if not self.env_var or "=" in self.env_var:
            raise ConfigError(f"Invalid environment variable name: {self.env_var!r}.")

    def driver_params(self) -> dict:
        """Constructor kwargs for the selected watcher driver."""
        if self.watcher_driver.lower() == "exec":
            return {"argv": self.watcher_argv, "append_watch_dir": self.watcher_append_dir}
        return {}
