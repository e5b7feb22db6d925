# fsbatch/cli/args.py
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from fsbatch import __version__ as VERSION
from fsbatch.app.config import DEFAULTS, FsBatchConfig, parse_delimiter
from fsbatch.app.config_loader import ConfigLoader
from fsbatch.core.errors import ConfigError
from fsbatch.model.batch import CommandSpec
from fsbatch.watcher.registry import WatcherDriverRegistry

PROG = "fsbatch"

DESCRIPTION = (
    "Watch WATCHDIR recursively and run COMMAND once per burst of changes. "
    "The batch's event records are passed newline-joined in the environment "
    "variable ${env_var}."
)


class UsageArgumentParser(argparse.ArgumentParser):
    """argparse with usage errors exiting 1 instead of 2."""

    def error(self, message: str):  # type: ignore[override]
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def _non_negative_float(value: str) -> float:
    try:
        f = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number: {value!r}")
    if f < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {value}")
    return f


def _delimiter(value: str) -> bytes:
    try:
        return parse_delimiter(value)
    except ConfigError as e:
        raise argparse.ArgumentTypeError(e.message)


def build_parser() -> argparse.ArgumentParser:
    parser = UsageArgumentParser(
        prog=PROG,
        description=DESCRIPTION.format(env_var=DEFAULTS.env_var),
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")

    parser.add_argument(
        "-e", "--event",
        dest="events",
        action="append",
        default=None,
        metavar="TYPE",
        help="Only react to this event type (repeatable).",
    )
    parser.add_argument(
        "-x", "--exclude-event",
        dest="exclude_events",
        action="append",
        default=None,
        metavar="TYPE",
        help="Ignore this event type (repeatable).",
    )

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="count", default=0, help="Debug output on stderr.")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only report errors.")

    parser.add_argument("--config", type=Path, default=None, help="YAML config file with defaults.")
    parser.add_argument(
        "--watcher",
        choices=WatcherDriverRegistry.default().names(),
        default=None,
        help=f"Watcher program (default: {DEFAULTS.watcher_driver}).",
    )
    parser.add_argument(
        "--delimiter",
        type=_delimiter,
        default=None,
        help="Record delimiter emitted by the watcher: '\\0' (default), '\\n', or one character.",
    )
    parser.add_argument(
        "--grace",
        type=_non_negative_float,
        default=None,
        metavar="SECONDS",
        help=f"Pause before closing a batch (default: {DEFAULTS.grace_s:g}).",
    )
    parser.add_argument(
        "--retry-delay",
        type=_non_negative_float,
        default=None,
        metavar="SECONDS",
        help=f"Delay between retries of a failed command (default: {DEFAULTS.retry_delay_s:g}).",
    )
    parser.add_argument(
        "--env-var",
        default=None,
        metavar="NAME",
        help=f"Environment variable holding the batch (default: {DEFAULTS.env_var}).",
    )
    parser.add_argument("--log-file", type=Path, default=None, help="Also write logs to this file.")

    parser.add_argument("watch_dir", metavar="WATCHDIR", type=Path, help="Directory to watch (recursively).")
    parser.add_argument(
        "command",
        metavar="COMMAND",
        nargs=argparse.REMAINDER,
        help="Command (and its arguments) to run once per batch.",
    )
    return parser


def _cli_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    pairs = {
        "watcher_driver": args.watcher,
        "delimiter": args.delimiter,
        "grace_s": args.grace,
        "retry_delay_s": args.retry_delay,
        "env_var": args.env_var,
        "allowed_events": tuple(args.events) if args.events else None,
        "excluded_events": tuple(args.exclude_events) if args.exclude_events else None,
    }
    return {k: v for k, v in pairs.items() if v is not None}


def parse_args(
    argv: Optional[list[str]] = None,
    *,
    parser: Optional[argparse.ArgumentParser] = None,
) -> Tuple[argparse.Namespace, FsBatchConfig]:
    """
    Returns: (args, config)

    Precedence: CLI flags > --config file > built-in defaults.
    Usage problems (bad flags, missing/invalid WATCHDIR, no COMMAND) exit 1.
    Config-file problems raise ConfigError.
    """
    parser = parser or build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.error("missing COMMAND")
    if not args.watch_dir.is_dir():
        parser.error(f"WATCHDIR is not an existing directory: {args.watch_dir}")

    settings: Dict[str, Any] = {}
    if args.config is not None:
        settings.update(ConfigLoader(args.config).load())
    settings.update(_cli_overrides(args))

    cfg = FsBatchConfig(
        watch_dir=args.watch_dir,
        command=CommandSpec.from_argv(args.command),
        **settings,
    )
    return args, cfg
