# fsbatch/watcher/drivers.py
from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Optional, Sequence, Tuple

from fsbatch.core.errors import ConfigError


FSWATCH_EVENTS: Tuple[str, ...] = (
    "NoOp",
    "PlatformSpecific",
    "Created",
    "Updated",
    "Removed",
    "Renamed",
    "OwnerModified",
    "AttributeModified",
    "MovedFrom",
    "MovedTo",
    "IsFile",
    "IsDir",
    "IsSymLink",
    "Link",
    "Overflow",
)

INOTIFY_EVENTS: Tuple[str, ...] = (
    "access",
    "modify",
    "attrib",
    "close_write",
    "close_nowrite",
    "close",
    "open",
    "moved_to",
    "moved_from",
    "move",
    "move_self",
    "create",
    "delete",
    "delete_self",
    "unmount",
)


def effective_events(
    known: Sequence[str],
    allow: Iterable[str] = (),
    exclude: Iterable[str] = (),
    *,
    driver: str = "watcher",
) -> Optional[Tuple[str, ...]]:
    """
    Resolve allow/exclude filters into a single allow-list.

    Returns None when no filter was given (watch every event type).
    """
    allow = tuple(allow)
    exclude = tuple(exclude)
    if not allow and not exclude:
        return None

    unknown = [e for e in (*allow, *exclude) if e not in known]
    if unknown:
        raise ConfigError(
            f"Unknown event type(s) for {driver}: {', '.join(unknown)}.",
            hint="Known event types: " + ", ".join(known),
            details={"driver": driver, "unknown": unknown},
        )

    excluded = set(exclude)
    base = allow if allow else tuple(known)
    result = tuple(e for e in base if e not in excluded)
    if not result:
        raise ConfigError(
            "Event filters exclude every event type.",
            hint="Relax --exclude-event or add an --event.",
            details={"driver": driver, "allow": list(allow), "exclude": list(exclude)},
        )
    return result


class WatcherDriver(ABC):
    """Builds the argv of an external watcher process."""

    name: str = "watcher"
    known_events: Tuple[str, ...] = ()

    @abstractmethod
    def build_argv(
        self,
        watch_dir: Path,
        *,
        allow: Sequence[str] = (),
        exclude: Sequence[str] = (),
        delimiter: bytes = b"\0",
    ) -> list[str]: ...

    def _unsupported_delimiter(self, delimiter: bytes) -> ConfigError:
        return ConfigError(
            f"{self.name} cannot emit delimiter {delimiter!r}.",
            hint="Use a NUL or newline delimiter, or the 'exec' watcher driver.",
            details={"driver": self.name, "delimiter": delimiter.hex()},
        )


class FswatchDriver(WatcherDriver):
    """fswatch: recursive, timestamped, with event flags."""

    name = "fswatch"
    known_events = FSWATCH_EVENTS

    def __init__(self, executable: str = "fswatch"):
        self.executable = executable

    def build_argv(self, watch_dir, *, allow=(), exclude=(), delimiter=b"\0"):
        argv = [self.executable, "-r", "-t", "-x"]
        if delimiter == b"\0":
            argv.append("-0")
        elif delimiter != b"\n":
            raise self._unsupported_delimiter(delimiter)

        events = effective_events(self.known_events, allow, exclude, driver=self.name)
        for ev in events or ():
            argv += ["--event", ev]

        argv.append(str(watch_dir))
        return argv


class InotifywaitDriver(WatcherDriver):
    """inotifywait in monitor mode with a custom record format."""

    name = "inotifywait"
    known_events = INOTIFY_EVENTS

    def __init__(self, executable: str = "inotifywait"):
        self.executable = executable

    def build_argv(self, watch_dir, *, allow=(), exclude=(), delimiter=b"\0"):
        if delimiter == b"\0":
            terminator = "%0"
        elif delimiter == b"\n":
            terminator = "\n"
        else:
            raise self._unsupported_delimiter(delimiter)

        argv = [
            self.executable,
            "-m",
            "-r",
            "-q",
            "--no-newline",
            "--timefmt",
            "%FT%T",
            "--format",
            "%T %w%f %e" + terminator,
        ]

        events = effective_events(self.known_events, allow, exclude, driver=self.name)
        for ev in events or ():
            argv += ["-e", ev]

        argv.append(str(watch_dir))
        return argv


class ExecDriver(WatcherDriver):
    """
    Runs a user-supplied watcher argv as-is.

    The program must already emit the configured delimiter; event filters
    cannot be applied and are rejected.
    """

    name = "exec"

    def __init__(self, argv: Sequence[str] = (), append_watch_dir: bool = True):
        self.argv = [str(a) for a in argv]
        self.append_watch_dir = bool(append_watch_dir)

    def build_argv(self, watch_dir, *, allow=(), exclude=(), delimiter=b"\0"):
        if not self.argv:
            raise ConfigError(
                "The 'exec' watcher driver needs an argv.",
                hint="Set watcher.argv in the config file.",
            )
        if allow or exclude:
            raise ConfigError(
                "Event filters are not supported by the 'exec' watcher driver.",
                details={"allow": list(allow), "exclude": list(exclude)},
            )

        argv = list(self.argv)
        if self.append_watch_dir:
            argv.append(str(watch_dir))
        return argv
