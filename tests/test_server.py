"""Tests for mdlive.server: page route, live-reload endpoint and static files."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
from chirp.testing import TestClient

from mdlive.builder import BuildRequest, build_document
from mdlive.config import MdliveConfig
from mdlive.hub import RELOAD, Hub
from mdlive.observability import EventLog
from mdlive.reload_script import EVENTS_ENDPOINT, SCRIPT_MARKER
from mdlive.server import STATS_ENDPOINT, create_app

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def config(tmp_sources: Path) -> MdliveConfig:
    return MdliveConfig(
        markdown=tmp_sources / "post.md",
        template=tmp_sources / "template.html",
        output=tmp_sources / "output.html",
        static_dir=tmp_sources,
    )


@pytest.fixture
def built(config: MdliveConfig) -> MdliveConfig:
    """The config after one successful build."""
    build_document(BuildRequest.from_config(config))
    return config


async def _broadcast_once_connected(hub: Hub, payload: str = RELOAD) -> None:
    """Wait until a client has registered, then broadcast to it."""
    for _ in range(200):
        if await hub.snapshot():
            hub.broadcast(payload)
            return
        await asyncio.sleep(0.01)
    msg = "no client registered"
    raise AssertionError(msg)


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestRouteRegistration:
    """Routes are registered on the Chirp app."""

    def test_named_routes(self, config: MdliveConfig) -> None:
        app = create_app(config, Hub(), event_log=EventLog())
        route_names = [r.name for r in app._pending_routes if hasattr(r, "name")]
        assert "mdlive:page" in route_names
        assert "mdlive:events" in route_names
        assert "mdlive:stats" in route_names

    def test_stats_requires_event_log(self, config: MdliveConfig) -> None:
        app = create_app(config, Hub())
        route_names = [r.name for r in app._pending_routes if hasattr(r, "name")]
        assert "mdlive:stats" not in route_names

    def test_app_config(self, config: MdliveConfig) -> None:
        app = create_app(config, Hub())
        assert app.config.port == config.port
        assert app.config.workers == 1
        assert app.config.static_dir is None
        # The template is compiled by the builder, not by Chirp.
        assert Path(app.config.template_dir) != Path(config.template).parent


class TestPageRoute:
    """``/`` serves the output file with the reload script."""

    @pytest.mark.asyncio
    async def test_serves_output_with_script(self, built: MdliveConfig) -> None:
        app = create_app(built, Hub())
        async with TestClient(app) as client:
            response = await client.get("/")

        assert response.status == 200
        assert "text/html" in response.content_type
        assert "<p>Hello</p>" in response.text
        assert SCRIPT_MARKER in response.text
        assert response.text.index(SCRIPT_MARKER) < response.text.index("</body>")

    @pytest.mark.asyncio
    async def test_reads_output_on_every_request(self, built: MdliveConfig) -> None:
        app = create_app(built, Hub())
        async with TestClient(app) as client:
            first = await client.get("/")
            Path(built.output).write_text("<html><body>rebuilt</body></html>", encoding="utf-8")
            second = await client.get("/")

        assert "<p>Hello</p>" in first.text
        assert "rebuilt" in second.text

    @pytest.mark.asyncio
    async def test_missing_output_is_500(self, config: MdliveConfig) -> None:
        app = create_app(config, Hub())
        async with TestClient(app) as client:
            response = await client.get("/")

        assert response.status == 500
        assert response.text.startswith("Could not read output file: ")
        assert SCRIPT_MARKER not in response.text


class TestStaticFiles:
    """Every other path is served from the static directory."""

    @pytest.mark.asyncio
    async def test_serves_static_file(self, built: MdliveConfig, tmp_sources: Path) -> None:
        (tmp_sources / "style.css").write_text("body { margin: 0; }\n", encoding="utf-8")
        app = create_app(built, Hub())
        async with TestClient(app) as client:
            response = await client.get("/style.css")

        assert response.status == 200
        assert "margin: 0" in response.text

    @pytest.mark.asyncio
    async def test_index_file_does_not_shadow_root(self, built: MdliveConfig, tmp_sources: Path) -> None:
        (tmp_sources / "index.html").write_text("<html><body>index</body></html>", encoding="utf-8")
        app = create_app(built, Hub())
        async with TestClient(app) as client:
            response = await client.get("/")

        assert "<p>Hello</p>" in response.text
        assert "index" not in response.text

    @pytest.mark.asyncio
    async def test_missing_file_is_404(self, built: MdliveConfig) -> None:
        app = create_app(built, Hub())
        async with TestClient(app) as client:
            response = await client.get("/nope.css")

        assert response.status == 404

    @pytest.mark.asyncio
    async def test_static_html_not_injected(self, built: MdliveConfig, tmp_sources: Path) -> None:
        (tmp_sources / "about.html").write_text("<html><body>about</body></html>", encoding="utf-8")
        app = create_app(built, Hub())
        async with TestClient(app) as client:
            response = await client.get("/about.html")

        assert response.status == 200
        assert "about" in response.text
        assert SCRIPT_MARKER not in response.text


class TestReloadEndpoint:
    """The live-reload event stream."""

    @pytest.mark.asyncio
    async def test_rejects_non_event_stream_request(self, built: MdliveConfig) -> None:
        hub = Hub()
        app = create_app(built, hub)
        async with TestClient(app) as client:
            response = await client.get(EVENTS_ENDPOINT, headers={"Accept": "text/html"})
            assert response.status == 400
            assert await hub.snapshot() == frozenset()

    @pytest.mark.asyncio
    async def test_client_receives_reload(self, built: MdliveConfig) -> None:
        hub = Hub()
        app = create_app(built, hub)
        async with TestClient(app) as client:
            pusher = asyncio.create_task(_broadcast_once_connected(hub))
            result = await client.sse(EVENTS_ENDPOINT, max_events=1)
            await pusher

        assert result.status == 200
        assert [event.data for event in result.events] == ["reload"]

    @pytest.mark.asyncio
    async def test_disconnect_unregisters(self, built: MdliveConfig) -> None:
        hub = Hub()
        app = create_app(built, hub)
        async with TestClient(app) as client:
            pusher = asyncio.create_task(_broadcast_once_connected(hub))
            await client.sse(EVENTS_ENDPOINT, max_events=1)
            await pusher

            await hub.flush()
            assert await hub.snapshot() == frozenset()

    @pytest.mark.asyncio
    async def test_every_client_receives_reload(self, built: MdliveConfig) -> None:
        hub = Hub()
        app = create_app(built, hub)

        async def broadcast_when_both_connected() -> None:
            for _ in range(200):
                if len(await hub.snapshot()) == 2:
                    hub.broadcast(RELOAD)
                    return
                await asyncio.sleep(0.01)

        async with TestClient(app) as client:
            pusher = asyncio.create_task(broadcast_when_both_connected())
            results = await asyncio.gather(
                client.sse(EVENTS_ENDPOINT, max_events=1),
                client.sse(EVENTS_ENDPOINT, max_events=1),
            )
            await pusher

        assert all([e.data for e in r.events] == ["reload"] for r in results)


class TestStatsEndpoint:
    """``/__mdlive/stats`` reports the event log."""

    @pytest.mark.asyncio
    async def test_reports_event_log(self, built: MdliveConfig) -> None:
        event_log = EventLog()
        hub = Hub(event_log=event_log)
        app = create_app(built, hub, event_log=event_log)
        async with TestClient(app) as client:
            hub.broadcast(RELOAD)
            await hub.flush()
            response = await client.get(STATS_ENDPOINT)

        assert response.status == 200
        payload = response.json
        assert payload["event_log"]["by_type"] == {"ReloadBroadcast": 1}
        assert payload["clients"] == 0
        assert payload["recent"][0]["type"] == "ReloadBroadcast"


class TestLifecycle:
    """The hub and watcher run for the lifetime of the app."""

    @pytest.mark.asyncio
    async def test_hub_runs_inside_app(self, built: MdliveConfig) -> None:
        hub = Hub()
        app = create_app(built, hub)
        async with TestClient(app):
            assert hub.is_running
        assert not hub.is_running

    @pytest.mark.asyncio
    async def test_watcher_and_rebuild_wired(self, built: MdliveConfig) -> None:
        from mdlive.rebuild import RebuildLoop
        from mdlive.watcher import SourceWatcher

        request = BuildRequest.from_config(built)
        hub = Hub()
        watcher = SourceWatcher(request.sources)
        rebuild = RebuildLoop(request, hub=hub)
        app = create_app(built, hub, watcher=watcher, rebuild=rebuild)

        async with TestClient(app):
            assert watcher.is_running
        assert not watcher.is_running
        assert not hub.is_running
