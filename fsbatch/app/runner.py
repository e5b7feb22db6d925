from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fsbatch.app.config import FsBatchConfig
from fsbatch.app.sinks import LoggingDispatchSink
from fsbatch.core.errors import ShutdownRequested, WatchTargetError
from fsbatch.interfaces.dispatch_sink import DispatchSink
from fsbatch.runtime.dispatcher import CommandDispatcher
from fsbatch.runtime.engine import BatchEngine, RunSummary
from fsbatch.runtime.lifecycle import LifecycleHandler, ProcessGroup
from fsbatch.runtime.retry import RetryController
from fsbatch.stream.accumulator import BatchAccumulator
from fsbatch.stream.reader import RecordReader
from fsbatch.watcher.process import WatcherProcess
from fsbatch.watcher.registry import WatcherDriverRegistry


@dataclass(frozen=True)
class AppRun:
    config: FsBatchConfig
    lifecycle: LifecycleHandler
    watcher: WatcherProcess
    reader: RecordReader
    engine: BatchEngine
    sink: DispatchSink


def check_watch_dir(cfg: FsBatchConfig) -> None:
    if not cfg.watch_dir.exists():
        raise WatchTargetError(
            f"Watch directory does not exist: {cfg.watch_dir}",
            details={"watch_dir": str(cfg.watch_dir)},
        )
    if not cfg.watch_dir.is_dir():
        raise WatchTargetError(
            f"Watch target is not a directory: {cfg.watch_dir}",
            details={"watch_dir": str(cfg.watch_dir)},
        )


def start_run(
    cfg: FsBatchConfig,
    *,
    lifecycle: LifecycleHandler,
    drivers: Optional[WatcherDriverRegistry] = None,
    sink: Optional[DispatchSink] = None,
) -> AppRun:
    """
    Validate the target, spawn the watcher and wire the pipeline.

    The watcher is running when this returns; the engine is not.
    """
    log = logging.getLogger(__name__)

    check_watch_dir(cfg)

    drivers = drivers or WatcherDriverRegistry.default()
    driver = drivers.create(cfg.watcher_driver, **cfg.driver_params())
    argv = driver.build_argv(
        cfg.watch_dir,
        allow=cfg.allowed_events,
        exclude=cfg.excluded_events,
        delimiter=cfg.delimiter,
    )

    watcher = WatcherProcess(argv, processes=lifecycle.processes)
    transport = watcher.start()

    reader = RecordReader(
        transport,
        delimiter=cfg.delimiter,
        chunk_size=cfg.read_chunk_size,
    )
    accumulator = BatchAccumulator(reader, grace_s=cfg.grace_s, sleep=lifecycle.sleep)

    dispatcher = CommandDispatcher(
        cfg.command,
        env_var=cfg.env_var,
        processes=lifecycle.processes,
    )
    sink = sink or LoggingDispatchSink()
    retry = RetryController(
        dispatcher,
        delay_s=cfg.retry_delay_s,
        sleep=lifecycle.sleep,
        sink=sink,
    )

    engine = BatchEngine(accumulator, retry, logger=log)

    log.info(
        "RUN_READY watch_dir=%s driver=%s command=%s grace_s=%.1f retry_delay_s=%.1f",
        cfg.watch_dir,
        driver.name,
        cfg.command.argv,
        cfg.grace_s,
        cfg.retry_delay_s,
    )

    return AppRun(
        config=cfg,
        lifecycle=lifecycle,
        watcher=watcher,
        reader=reader,
        engine=engine,
        sink=sink,
    )


def run_app(
    cfg: FsBatchConfig,
    *,
    lifecycle: Optional[LifecycleHandler] = None,
    drivers: Optional[WatcherDriverRegistry] = None,
    sink: Optional[DispatchSink] = None,
) -> RunSummary:
    """
    Run until the watcher stream closes or a termination signal arrives
    (the latter surfaces as ShutdownRequested).
    """
    log = logging.getLogger(__name__)
    lifecycle = lifecycle or LifecycleHandler(ProcessGroup(terminate_timeout_s=cfg.terminate_timeout_s))

    with lifecycle:
        run = start_run(cfg, lifecycle=lifecycle, drivers=drivers, sink=sink)
        try:
            summary = run.engine.run()
        finally:
            _close_run(run)

    log.error("WATCHER_STREAM_CLOSED watcher_rc=%s", run.watcher.returncode)
    return summary


def _close_run(run: AppRun) -> None:
    log = logging.getLogger(__name__)
    try:
        run.watcher.stop()
    except ShutdownRequested:
        raise
    except Exception:
        log.exception("Failed to stop watcher")
    finally:
        try:
            run.sink.close()
        except ShutdownRequested:
            raise
        except Exception:
            log.exception("Failed to close dispatch sink")
