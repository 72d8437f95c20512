"""mdlive application: the three modes behind the CLI.

``build`` renders the document once, ``watch`` keeps re-rendering it as the
sources change, and ``serve`` does the same while pushing live-reload
notifications to every connected browser.
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING

from mdlive._errors import BuildError, WatchError
from mdlive.builder import BuildRequest, build_document
from mdlive.config_loader import load_config
from mdlive.log import get_logger, log_event

if TYPE_CHECKING:
    from mdlive.config import MdliveConfig
    from mdlive.observability.log import EventLog
    from mdlive.rebuild import RebuildLoop
    from mdlive.watcher import SourceWatcher

logger = get_logger("app")


def _prepare(root: str | Path, overrides: dict[str, object]) -> tuple[MdliveConfig, BuildRequest]:
    """Load and validate the configuration.

    Raises:
        ConfigError: If the configuration is malformed or incomplete.

    """
    config = load_config(Path(root), **overrides)
    config.validate()
    return config, BuildRequest.from_config(config)


def _initial_build(request: BuildRequest, event_log: EventLog | None = None) -> bool:
    """Build once before watching.  A failure is logged and watching goes on."""
    from mdlive.observability import BuildCompleted, BuildFailed, now_ns

    start = time.perf_counter()
    try:
        build_document(request)
    except BuildError as exc:
        log_event(logger, logging.ERROR, "error performing initial build", err=exc)
        if event_log is not None:
            event_log.append(BuildFailed(
                trigger_path=str(request.markdown),
                error_type=type(exc).__name__,
                message=str(exc),
                suppressed=False,
                timestamp_ns=now_ns(),
            ))
        return False

    log_event(logger, logging.INFO, "initial build successful")
    if event_log is not None:
        event_log.append(BuildCompleted(
            trigger_path=str(request.markdown),
            output_path=str(request.output),
            duration_ms=(time.perf_counter() - start) * 1000,
            timestamp_ns=now_ns(),
        ))
    return True


def _create_watcher(config: MdliveConfig, request: BuildRequest) -> SourceWatcher:
    from mdlive.watcher import SourceWatcher

    return SourceWatcher(
        request.sources,
        settle_delay=config.settle_delay,
        debounce_ms=config.debounce_ms,
        step_ms=config.step_ms,
    )


async def _watch_until_cancelled(
    request: BuildRequest,
    watcher: SourceWatcher,
    rebuild: RebuildLoop,
) -> bool:
    """Initial build, then feed watcher changes to the rebuild loop."""
    await asyncio.to_thread(_initial_build, request)

    try:
        watcher.start()
    except WatchError as exc:
        log_event(logger, logging.ERROR, "error adding file to watcher", err=exc)
        return False

    log_event(logger, logging.INFO, "watching for changes...")
    try:
        await rebuild.run(watcher.changes())
    finally:
        await asyncio.to_thread(watcher.stop)
    return True


# ---------------------------------------------------------------------------
# Public entry points
# ---------------------------------------------------------------------------


def build(root: str | Path = ".", **overrides: object) -> bool:
    """Render the markdown document into the template once.

    Args:
        root: Directory searched for an ``mdlive.yaml`` / ``mdlive.toml``.
        **overrides: Override MdliveConfig fields.

    Returns:
        True if the output file was written.

    """
    from mdlive.banner import print_banner

    config, request = _prepare(root, overrides)
    print_banner(config, mode="build")

    try:
        build_document(request)
    except BuildError as exc:
        log_event(logger, logging.ERROR, "there was an error building the markdown document", err=exc)
        return False

    log_event(
        logger, logging.INFO, "the template was successfully rendered",
        input=request.markdown, template=request.template, output=request.output,
    )
    return True


def watch(root: str | Path = ".", **overrides: object) -> bool:
    """Build, then rebuild on every change to the markdown or the template.

    Runs until interrupted with Ctrl-C.

    Args:
        root: Directory searched for an ``mdlive.yaml`` / ``mdlive.toml``.
        **overrides: Override MdliveConfig fields.

    Returns:
        False if the watcher could not be started, True after an interrupt.

    """
    from mdlive.banner import print_banner
    from mdlive.rebuild import RebuildLoop

    config, request = _prepare(root, overrides)
    watcher = _create_watcher(config, request)
    rebuild = RebuildLoop(request)

    print_banner(config, mode="watch")

    try:
        return asyncio.run(_watch_until_cancelled(request, watcher, rebuild))
    except KeyboardInterrupt:
        return True


def serve(root: str | Path = ".", **overrides: object) -> bool:
    """Watch the sources and serve the output with live reload.

    Launches a single-worker Pounce server.  The hub, the watcher and the
    rebuild loop start with the server and stop with it.

    Args:
        root: Directory searched for an ``mdlive.yaml`` / ``mdlive.toml``.
        **overrides: Override MdliveConfig fields.

    Returns:
        False if the watcher or the server could not be started.

    """
    from mdlive.banner import print_banner
    from mdlive.hub import Hub
    from mdlive.observability import EventLog
    from mdlive.rebuild import RebuildLoop
    from mdlive.server import create_app

    config, request = _prepare(root, overrides)

    event_log = EventLog()
    hub = Hub(write_timeout=config.write_timeout, event_log=event_log)
    watcher = _create_watcher(config, request)
    rebuild = RebuildLoop(request, hub=hub, event_log=event_log)

    _initial_build(request, event_log)

    # The watcher itself starts with the server; fail before binding the port.
    try:
        watcher.check()
    except WatchError as exc:
        log_event(logger, logging.ERROR, "error adding file to watcher", err=exc)
        return False

    app = create_app(config, hub, watcher=watcher, rebuild=rebuild, event_log=event_log)

    print_banner(config, mode="serve")
    log_event(logger, logging.INFO, "starting server, watching for changes...", address=config.url)

    try:
        app.run(host=config.host, port=config.port)
    except OSError as exc:
        log_event(logger, logging.ERROR, "server failed to start", err=exc)
        return False
    return True


def run(root: str | Path = ".", **overrides: object) -> bool:
    """Dispatch on the resolved configuration: serve, else watch, else build."""
    config = load_config(Path(root), **overrides)
    if config.serve:
        return serve(root, **overrides)
    if config.watch:
        return watch(root, **overrides)
    return build(root, **overrides)
