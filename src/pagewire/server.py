"""aiohttp server for pagewire.

Serves a static site with clean URLs and expands include directives in HTML
pages before they are sent, so first paint already contains the fragments.
"""

import logging
import sys
from hashlib import md5

from aiohttp import web

from pagewire.app_keys import (
    config_key,
    live_reload_key,
    store_key,
    transport_key,
    verbose_key,
)
from pagewire.config import Config
from pagewire.core.browser import FixedLocation
from pagewire.core.cache import FileSessionStore, MemorySessionStore, SessionStore
from pagewire.core.directives import DirectiveResolver
from pagewire.core.fetch import FragmentCache
from pagewire.core.prerender import prerender
from pagewire.core.transport import LocalFileTransport
from pagewire.core.urls import normalize_url
from pagewire.live import LiveReloadManager, create_live_reload_routes, inject_client

logger = logging.getLogger(__name__)

HTML_SUFFIXES = frozenset({".html", ".htm"})


async def serve_page(request: web.Request) -> web.StreamResponse:
    """Serve the file behind a clean URL.

    HTML pages get their include directives expanded, carry the live reload
    client when live reload is on, and are validated with an ETag; other
    files are streamed as they are.
    """
    transport = request.app[transport_key]
    path = transport.file_for(str(request.url))
    if path is None:
        raise web.HTTPNotFound()

    if path.suffix.lower() not in HTML_SUFFIXES:
        return web.FileResponse(path)

    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        return web.FileResponse(path)

    config = request.app[config_key]
    if config.includes.prerender:
        expanded = await _prerender_page(request, text)
        if request.app[verbose_key] and expanded != text:
            print(f"[INFO] {request.path}: includes expanded", file=sys.stderr)
        text = expanded

    if live_reload_key in request.app:
        text = inject_client(text)

    etag = _compute_etag(text)
    headers = {"ETag": etag, "Cache-Control": "no-cache"}

    if request.headers.get("If-None-Match") == etag:
        return web.Response(status=304, headers=headers)

    return web.Response(text=text, content_type="text/html", headers=headers)


async def _prerender_page(request: web.Request, text: str) -> str:
    config = request.app[config_key]
    store: SessionStore | None = request.app.get(store_key)
    if store is None:
        store = MemorySessionStore()

    page_url = normalize_url(str(request.url))
    cache = FragmentCache(
        request.app[transport_key],
        FixedLocation(page_url),
        store=store,
        timeout=config.includes.timeout,
    )
    resolver = DirectiveResolver(cache, mark_failures=config.includes.mark_failures)
    return await prerender(text, resolver, base=page_url, max_passes=config.includes.max_passes)


def create_app(config: Config, *, verbose: bool = False) -> web.Application:
    """Create aiohttp application.

    Args:
        config: Application configuration
        verbose: Enable verbose output (report expanded pages)

    Returns:
        Configured aiohttp application
    """
    app = web.Application()

    transport = LocalFileTransport(config.site.root_dir)
    store: FileSessionStore | None = None
    if config.site.cache_enabled:
        store = FileSessionStore(config.site.cache_dir)
        app[store_key] = store

    app[config_key] = config
    app[transport_key] = transport
    app[verbose_key] = verbose

    app.on_startup.append(_clear_fragment_store)

    # Live reload WebSocket endpoint
    if config.live_reload.enabled:
        manager = LiveReloadManager(
            config.site.root_dir,
            watch_patterns=config.live_reload.watch_patterns,
            store=store,
        )
        app[live_reload_key] = manager
        app.router.add_routes(create_live_reload_routes(manager))
        app.on_startup.append(_start_live_reload)
        app.on_cleanup.append(_stop_live_reload)

    # Catch-all must be last
    app.router.add_get("/{path:.*}", serve_page)

    return app


async def _clear_fragment_store(app: web.Application) -> None:
    """Start every server run with an empty fragment store."""
    store = app.get(store_key)
    if store is not None:
        logger.debug(f"Clearing fragment store at {store.cache_dir}")
        store.clear()


async def _start_live_reload(app: web.Application) -> None:
    """Start live reload on application startup."""
    await app[live_reload_key].start()


async def _stop_live_reload(app: web.Application) -> None:
    """Stop live reload on application cleanup."""
    await app[live_reload_key].stop()


def _compute_etag(content: str) -> str:
    # First 16 hex chars (64 bits) are enough to tell page versions apart
    content_hash = md5(content.encode("utf-8"), usedforsecurity=False).hexdigest()[:16]
    return f'"{content_hash}"'


def run_server(config: Config, *, verbose: bool = False) -> None:
    """Run the server.

    Args:
        config: Application configuration
        verbose: Enable verbose output (report expanded pages)
    """
    app = create_app(config, verbose=verbose)
    web.run_app(app, host=config.server.host, port=config.server.port)
