"""Tests for live reload."""

import asyncio
import json
from pathlib import Path
from typing import Any

import pytest

from pagewire.app_keys import live_reload_key
from pagewire.config import Config
from pagewire.core.cache import MemorySessionStore
from pagewire.live import CLIENT_SCRIPT, LiveReloadManager, inject_client
from pagewire.server import create_app


class TestLiveReloadManager:
    """Tests for LiveReloadManager change handling."""

    @pytest.fixture
    def root(self, tmp_path: Path) -> Path:
        root = tmp_path / "site"
        root.mkdir()
        return root

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("relative", "url_path"),
        [
            ("index.html", "/"),
            ("about.html", "/about"),
            ("guide/index.html", "/guide/"),
            ("guide/setup.html", "/guide/setup"),
        ],
    )
    async def test__watched_file__maps_to_clean_url(
        self,
        root: Path,
        relative: str,
        url_path: str,
    ) -> None:
        """Changed pages are reported by the URL serving them."""
        manager = LiveReloadManager(root)

        assert manager._to_url_path(root / relative) == url_path
        assert await manager.notify_change(root / relative)

    @pytest.mark.asyncio
    async def test__watched_change__clears_store(self, root: Path) -> None:
        """Any fragment may include the changed file, so all are dropped."""
        store = MemorySessionStore()
        store.set("include_cache_x", "old")
        manager = LiveReloadManager(root, store=store)

        assert await manager.notify_change(root / "partials" / "nav.html")

        assert len(store) == 0

    @pytest.mark.asyncio
    async def test__unwatched_change__ignored(self, root: Path) -> None:
        """Files outside the patterns or the root do nothing."""
        store = MemorySessionStore()
        store.set("include_cache_x", "old")
        manager = LiveReloadManager(root, store=store)

        assert not await manager.notify_change(root / "site.css")
        assert not await manager.notify_change(root.parent / "elsewhere.html")
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test__custom_patterns__respected(self, root: Path) -> None:
        """Watch patterns are configurable."""
        manager = LiveReloadManager(root, watch_patterns=["**/*.css"])

        assert await manager.notify_change(root / "assets" / "site.css")
        assert not await manager.notify_change(root / "index.html")


class TestLiveReloadWebSocket:
    """Tests for the live reload WebSocket endpoint."""

    @pytest.mark.asyncio
    async def test__change__broadcast_to_clients(
        self,
        aiohttp_client: Any,
        test_config: Config,
    ) -> None:
        """Connected clients receive a reload message."""
        app = create_app(test_config.with_overrides(live_reload_enabled=True))
        client = await aiohttp_client(app)
        manager = app[live_reload_key]

        async with client.ws_connect("/ws/live-reload") as ws:
            for _ in range(100):
                if manager.connections:
                    break
                await asyncio.sleep(0.01)
            await manager.notify_change(test_config.site.root_dir / "about.html")
            message = await ws.receive_str(timeout=5)

        assert json.loads(message) == {"type": "reload", "path": "/about"}


class TestInjectClient:
    """Tests for inject_client()."""

    def test__full_page__inserted_before_body_close(self) -> None:
        """The client lands at the end of the body."""
        html = "<html><body><main>x</main></body></html>"

        assert inject_client(html) == f"<html><body><main>x</main>{CLIENT_SCRIPT}</body></html>"

    def test__uppercase_body_tag__found(self) -> None:
        """Tag matching ignores case."""
        assert inject_client("<BODY>x</BODY>") == f"<BODY>x{CLIENT_SCRIPT}</BODY>"

    def test__no_body_tag__appended(self) -> None:
        """Bare fragments get the client appended."""
        assert inject_client("<main>x</main>") == f"<main>x</main>{CLIENT_SCRIPT}"


class TestServedPages:
    """Tests for the reload client in served pages."""

    @pytest.mark.asyncio
    async def test__live_reload_enabled__client_in_html(
        self,
        aiohttp_client: Any,
        test_config: Config,
    ) -> None:
        """Pages connect back to the reload socket."""
        (test_config.site.root_dir / "index.html").write_text("<html><body><main>Hi</main></body></html>")
        app = create_app(test_config.with_overrides(live_reload_enabled=True))
        client = await aiohttp_client(app)

        text = await (await client.get("/")).text()

        assert text == f"<html><body><main>Hi</main>{CLIENT_SCRIPT}</body></html>"
        assert "/ws/live-reload" in text

    @pytest.mark.asyncio
    async def test__live_reload_disabled__page_untouched(
        self,
        aiohttp_client: Any,
        test_config: Config,
    ) -> None:
        """Without live reload nothing is injected."""
        (test_config.site.root_dir / "index.html").write_text("<html><body><main>Hi</main></body></html>")
        app = create_app(test_config.with_overrides(live_reload_enabled=False))
        client = await aiohttp_client(app)

        text = await (await client.get("/")).text()

        assert text == "<html><body><main>Hi</main></body></html>"
