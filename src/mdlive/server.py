"""Live-reload server: the Chirp app behind ``mdlive --serve``.

Routes:

- ``/`` serves the rendered output file with the reload script injected
- ``/__mdlive/events`` is the live-reload event stream (the Connection Acceptor)
- ``/__mdlive/stats`` reports the build/reload event log as JSON
- every other path is served from the static directory

The hub, the watcher and the rebuild task live inside the event loop run
by Pounce; they are started and stopped by Chirp's lifecycle hooks.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from pathlib import Path
from typing import TYPE_CHECKING, Any

from mdlive._errors import UpgradeError
from mdlive.hub import ReloadConnection
from mdlive.log import get_logger, log_event
from mdlive.reload_script import EVENTS_ENDPOINT, reload_middleware

if TYPE_CHECKING:
    from chirp import App, Request
    from chirp.middleware.protocol import AnyResponse, Next

    from mdlive.config import MdliveConfig
    from mdlive.hub import Hub
    from mdlive.observability.log import EventLog
    from mdlive.rebuild import RebuildLoop
    from mdlive.watcher import SourceWatcher

logger = get_logger("server")

STATS_ENDPOINT = "/__mdlive/stats"

# Paths under this prefix never reach the static directory
_INTERNAL_PREFIX = "/__mdlive/"

_EVENT_STREAM = "text/event-stream"


def accepts_event_stream(request: Request) -> bool:
    """Whether the request's ``Accept`` header allows an SSE response."""
    accept = request.headers.get("accept", "")
    return _EVENT_STREAM in accept or "*/*" in accept


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


def register_reload_endpoint(app: App, hub: Hub, *, queue_size: int = 16) -> None:
    """Register the ``/__mdlive/events`` live-reload endpoint.

    Each accepted request becomes a ``ReloadConnection`` registered with the
    hub right away.  The returned ``EventStream`` drains the connection's
    queue; when the client goes away, or the hub closes the connection, the
    stream's cleanup unregisters it.  Nothing is ever read from the client.

    A request that cannot take an event stream is rejected with 400 and is
    never registered.

    Args:
        app: The Chirp app to register the route on.
        hub: Hub owning the live-reload connections.
        queue_size: Pending events buffered per connection.

    """
    from chirp import EventStream
    from chirp.http.response import Response

    async def events_handler(request: Request) -> Any:
        if not accepts_event_stream(request):
            exc = UpgradeError(
                f"client does not accept {_EVENT_STREAM}: {request.headers.get('accept', '')!r}"
            )
            log_event(logger, logging.ERROR, "failed to upgrade connection", err=exc)
            return Response(body=str(exc), status=400, content_type="text/plain; charset=utf-8")

        conn = ReloadConnection(client_id=str(uuid.uuid4()), maxsize=queue_size)
        hub.register(conn)

        async def generate():  # type: ignore[return]
            try:
                async for event in conn.stream():
                    yield event
            finally:
                hub.unregister(conn)
                conn.close()

        return EventStream(generate())

    events_handler.__name__ = "mdlive_events"
    events_handler.__qualname__ = "mdlive_events"

    app.route(EVENTS_ENDPOINT, name="mdlive:events")(events_handler)


def register_page_route(app: App, output: Path) -> None:
    """Register ``/``: the current contents of *output*, read on every request."""
    from chirp.http.response import Response

    async def page_handler(request: Request) -> Any:
        try:
            html = await asyncio.to_thread(output.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            return Response(
                body=f"Could not read output file: {exc}",
                status=500,
                content_type="text/plain; charset=utf-8",
            )
        return Response(body=html, status=200, content_type="text/html; charset=utf-8")

    page_handler.__name__ = "mdlive_page"
    page_handler.__qualname__ = "mdlive_page"

    app.route("/", name="mdlive:page")(page_handler)


def register_stats_endpoint(app: App, event_log: EventLog, hub: Hub | None = None) -> None:
    """Register the ``/__mdlive/stats`` JSON endpoint.

    Reports the event log summary, the most recent events and, when a hub
    is given, the number of connected clients.

    """
    import json
    from dataclasses import asdict

    async def stats_handler(request: Request) -> Any:
        from chirp.http.response import Response

        payload: dict[str, Any] = {
            "event_log": event_log.stats(),
            "recent": [
                {"type": type(event).__name__, **asdict(event)}
                for event in event_log.recent(10)
            ],
        }
        if hub is not None and hub.is_running:
            payload["clients"] = len(await hub.snapshot())

        return Response(
            body=json.dumps(payload, indent=2, default=str),
            status=200,
            content_type="application/json",
        )

    stats_handler.__name__ = "mdlive_stats"
    stats_handler.__qualname__ = "mdlive_stats"

    app.route(STATS_ENDPOINT, name="mdlive:stats")(stats_handler)


# ---------------------------------------------------------------------------
# Static files
# ---------------------------------------------------------------------------


class StaticFallback:
    """Serve *directory* for every path except ``/`` and the internal endpoints.

    Wraps Chirp's ``StaticFiles`` mounted at the root prefix, which would
    otherwise answer ``/`` itself whenever the directory has an index file.

    """

    __slots__ = ("_static",)

    def __init__(self, directory: Path) -> None:
        from chirp.middleware import StaticFiles

        self._static = StaticFiles(directory=directory, prefix="/")

    async def __call__(self, request: Request, next: Next) -> AnyResponse:
        path = request.path
        if path == "/" or path.startswith(_INTERNAL_PREFIX):
            return await next(request)
        return await self._static(request, next)


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


def wire_lifecycle(
    app: App,
    hub: Hub,
    watcher: SourceWatcher | None = None,
    rebuild: RebuildLoop | None = None,
) -> None:
    """Run the hub, watcher and rebuild loop for the lifetime of *app*.

    Flow:
        on_startup  -> start the hub coordinator, start the watcher thread,
                       spawn the rebuild task consuming ``watcher.changes()``
        on_shutdown -> stop the watcher, cancel the rebuild task, stop the
                       hub (closing every client)

    """
    _task: asyncio.Task[None] | None = None

    @app.on_startup
    async def _start_live_reload() -> None:
        nonlocal _task
        hub.start()
        if watcher is not None and rebuild is not None:
            watcher.start()
            _task = asyncio.create_task(rebuild.run(watcher.changes()), name="mdlive-rebuild")

    @app.on_shutdown
    async def _stop_live_reload() -> None:
        nonlocal _task
        if watcher is not None:
            await asyncio.to_thread(watcher.stop)
        if _task is not None and not _task.done():
            _task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await _task
        _task = None
        await hub.stop()


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------


def create_app(
    config: MdliveConfig,
    hub: Hub,
    *,
    watcher: SourceWatcher | None = None,
    rebuild: RebuildLoop | None = None,
    event_log: EventLog | None = None,
) -> App:
    """Create the Chirp app serving the rendered document with live reload.

    Runs single-worker: the hub's connection set lives in one process and
    one event loop.

    """
    from chirp import App, AppConfig

    app = App(config=AppConfig(
        host=config.host,
        port=config.port,
        static_dir=None,
        workers=1,
    ))

    register_page_route(app, Path(config.output))
    register_reload_endpoint(app, hub, queue_size=config.client_queue_size)
    if event_log is not None:
        register_stats_endpoint(app, event_log, hub)

    app.add_middleware(reload_middleware(config.reconnect_delay_ms))
    if Path(config.static_dir).is_dir():
        app.add_middleware(StaticFallback(Path(config.static_dir)))

    wire_lifecycle(app, hub, watcher, rebuild)
    return app
