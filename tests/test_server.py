"""Tests for server module."""

from dataclasses import replace
from typing import Any

import pytest
from aiohttp import web

from pagewire.app_keys import config_key, live_reload_key, store_key, transport_key
from pagewire.config import Config
from pagewire.core.cache import FileSessionStore
from pagewire.server import create_app

INDEX = """<html><head><title>Home</title></head>
<body>@include('/partials/nav.html')<main>@include('intro.html')</main></body></html>"""


@pytest.fixture
def site_config(test_config: Config) -> Config:
    """Test config with a small site on disk."""
    root = test_config.site.root_dir
    (root / "partials").mkdir()
    (root / "guide").mkdir()
    (root / "index.html").write_text(INDEX)
    (root / "intro.html").write_text("<p>Intro</p>")
    (root / "partials" / "nav.html").write_text('<nav><a href="/about">About</a></nav>')
    (root / "about.html").write_text("<main>About</main>")
    (root / "guide" / "index.html").write_text("<main>@include('step.html')</main>")
    (root / "guide" / "step.html").write_text("<ol><li>one</li></ol>")
    (root / "site.css").write_text("body { color: red; }")
    return test_config


class TestCreateApp:
    """Tests for create_app()."""

    def test__valid_config__returns_configured_app(self, site_config: Config) -> None:
        """Create app with valid configuration."""
        app = create_app(site_config)

        assert app[config_key] is site_config
        assert app[transport_key].root_dir == site_config.site.root_dir.resolve()
        assert app[store_key].cache_dir == site_config.site.cache_dir
        assert live_reload_key not in app

    def test__cache_disabled__no_store(self, site_config: Config) -> None:
        """Without caching no fragment store is created."""
        config = site_config.with_overrides(cache_enabled=False)

        assert store_key not in create_app(config)

    def test__live_reload_enabled__manager_registered(self, site_config: Config) -> None:
        """Live reload adds its manager."""
        config = site_config.with_overrides(live_reload_enabled=True)

        assert live_reload_key in create_app(config)


class TestServePage:
    """Tests for page serving."""

    @pytest.fixture
    def app(self, site_config: Config) -> web.Application:
        return create_app(site_config)

    @pytest.mark.asyncio
    async def test__root__served_with_includes_expanded(
        self,
        aiohttp_client: Any,
        app: web.Application,
    ) -> None:
        """Pages arrive with their fragments already in place."""
        client = await aiohttp_client(app)
        response = await client.get("/")

        assert response.status == 200
        assert "text/html" in response.headers["Content-Type"]
        text = await response.text()
        assert '<nav><a href="/about">About</a></nav>' in text
        assert "<main><p>Intro</p></main>" in text
        assert "@include" not in text

    @pytest.mark.asyncio
    async def test__directory_url__resolves_relative_to_page(
        self,
        aiohttp_client: Any,
        app: web.Application,
    ) -> None:
        """Relative include paths resolve against the page URL."""
        client = await aiohttp_client(app)
        response = await client.get("/guide/")

        assert response.status == 200
        assert "<ol><li>one</li></ol>" in await response.text()

    @pytest.mark.asyncio
    async def test__clean_url__serves_html_file(
        self,
        aiohttp_client: Any,
        app: web.Application,
    ) -> None:
        """Extensionless URLs map to .html files."""
        client = await aiohttp_client(app)
        response = await client.get("/about")

        assert response.status == 200
        assert await response.text() == "<main>About</main>"

    @pytest.mark.asyncio
    async def test__static_asset__served_as_is(
        self,
        aiohttp_client: Any,
        app: web.Application,
    ) -> None:
        """Non-HTML files are served without processing."""
        client = await aiohttp_client(app)
        response = await client.get("/site.css")

        assert response.status == 200
        assert await response.text() == "body { color: red; }"
        assert response.headers.get("Cache-Control") != "no-cache"

    @pytest.mark.asyncio
    async def test__missing_page__returns_404(
        self,
        aiohttp_client: Any,
        app: web.Application,
    ) -> None:
        """Unknown URLs are 404."""
        client = await aiohttp_client(app)
        response = await client.get("/nope")

        assert response.status == 404

    @pytest.mark.asyncio
    async def test__html_response__validation_headers(
        self,
        aiohttp_client: Any,
        app: web.Application,
    ) -> None:
        """HTML pages are revalidated on every use."""
        client = await aiohttp_client(app)
        response = await client.get("/")

        etag = response.headers["ETag"]
        assert etag.startswith('"') and etag.endswith('"')
        assert len(etag) == 18
        assert response.headers["Cache-Control"] == "no-cache"

    @pytest.mark.asyncio
    async def test__matching_etag__returns_304(
        self,
        aiohttp_client: Any,
        app: web.Application,
    ) -> None:
        """Unchanged pages are not sent again."""
        client = await aiohttp_client(app)
        first = await client.get("/")
        etag = first.headers["ETag"]

        second = await client.get("/", headers={"If-None-Match": etag})

        assert second.status == 304

    @pytest.mark.asyncio
    async def test__stale_etag__returns_page(
        self,
        aiohttp_client: Any,
        app: web.Application,
    ) -> None:
        """Outdated validators get the full page."""
        client = await aiohttp_client(app)
        response = await client.get("/", headers={"If-None-Match": '"0000000000000000"'})

        assert response.status == 200

    @pytest.mark.asyncio
    async def test__fragments__cached_in_store(
        self,
        aiohttp_client: Any,
        app: web.Application,
    ) -> None:
        """Fragments retrieved for one page are stored for the session."""
        client = await aiohttp_client(app)
        await client.get("/")

        assert len(app[store_key]) == 2


class TestServerSettings:
    """Tests for settings that change serving behaviour."""

    @pytest.mark.asyncio
    async def test__prerender_disabled__directives_left_for_client(
        self,
        aiohttp_client: Any,
        site_config: Config,
    ) -> None:
        """Without prerendering the raw page is served."""
        app = create_app(site_config.with_overrides(prerender=False))
        client = await aiohttp_client(app)

        text = await (await client.get("/")).text()

        assert "@include('intro.html')" in text

    @pytest.mark.asyncio
    async def test__mark_failures__comment_in_page(
        self,
        aiohttp_client: Any,
        site_config: Config,
    ) -> None:
        """Failed includes can be marked in served pages."""
        (site_config.site.root_dir / "broken.html").write_text("<p>@include('gone.html')</p>")
        config = replace(site_config, includes=replace(site_config.includes, mark_failures=True))
        client = await aiohttp_client(create_app(config))

        text = await (await client.get("/broken")).text()

        assert text == "<p><!-- include failed: gone.html --></p>"

    @pytest.mark.asyncio
    async def test__startup__clears_stale_fragments(
        self,
        aiohttp_client: Any,
        site_config: Config,
    ) -> None:
        """Every server run starts with an empty fragment store."""
        FileSessionStore(site_config.site.cache_dir).set("include_cache_stale", "old")
        app = create_app(site_config)

        await aiohttp_client(app)

        assert app[store_key].get("include_cache_stale") is None

    @pytest.mark.asyncio
    async def test__cache_disabled__still_expands(
        self,
        aiohttp_client: Any,
        site_config: Config,
    ) -> None:
        """Expansion works with a per-request store."""
        app = create_app(site_config.with_overrides(cache_enabled=False))
        client = await aiohttp_client(app)

        text = await (await client.get("/")).text()

        assert "<p>Intro</p>" in text
        assert not site_config.site.cache_dir.exists()
