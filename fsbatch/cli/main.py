# fsbatch/cli/main.py
from __future__ import annotations

import logging
import sys
from typing import Optional

from fsbatch.core.errors import FsBatchError, ShutdownRequested

from fsbatch.app.runner import run_app
from fsbatch.cli.args import parse_args
from fsbatch.common.logging import configure_logging


def main(argv: Optional[list[str]] = None) -> int:
    """
    Exit codes:
      0  help / version (raised as SystemExit by argparse)
      1  usage or setup error, termination by signal, watcher stream closed
    """
    try:
        args, cfg = parse_args(argv)
        configure_logging(verbosity=args.verbose, quiet=args.quiet, log_file=args.log_file)

        run_app(cfg)
        return 1
    except ShutdownRequested as e:
        logging.getLogger(__name__).info("SHUTDOWN signum=%d", e.signum)
        return 1
    except FsBatchError as e:
        print(f"ERROR: {e.message}", file=sys.stderr)
        if e.hint:
            print(f"Hint: {e.hint}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 1


def run() -> None:
    raise SystemExit(main())
