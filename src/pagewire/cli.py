"""CLI interface for pagewire.

Command-line tool for serving, expanding and browsing include-driven sites.
"""

import asyncio
import logging
import sys
from pathlib import Path

import click
import httpx

from pagewire.config import Config
from pagewire.core.browser import FixedLocation
from pagewire.core.cache import MemorySessionStore
from pagewire.core.directives import DirectiveResolver
from pagewire.core.fetch import FragmentCache
from pagewire.core.prerender import prerender
from pagewire.core.transport import HttpxTransport, LocalFileTransport
from pagewire.errors import PagewireError
from pagewire.session import BrowserSession

LOCAL_ORIGIN = "http://localhost"

_config_option = click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to configuration file (default: auto-discover pagewire.toml)",
)

_verbose_option = click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output (debug logging)",
)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        force=True,
    )


def _fail(error: Exception) -> None:
    click.echo(click.style(f"Error: {error}", fg="red"), err=True)
    sys.exit(1)


@click.group()
def cli() -> None:
    """pagewire - HTML includes and in-place navigation for static sites."""


@cli.command()
@_config_option
@click.option(
    "--root-dir",
    "-r",
    type=click.Path(exists=True, path_type=Path, file_okay=False),
    default=None,
    help="Site root directory (overrides config)",
)
@click.option(
    "--host",
    default=None,
    help="Host to bind to (overrides config)",
)
@click.option(
    "--port",
    "-p",
    type=int,
    default=None,
    help="Port to bind to (overrides config)",
)
@click.option(
    "--prerender/--no-prerender",
    default=None,
    help="Enable/disable server-side include expansion (overrides config, default: enabled)",
)
@click.option(
    "--live-reload/--no-live-reload",
    default=None,
    help="Enable/disable live reload (overrides config, default: enabled)",
)
@click.option(
    "--cache/--no-cache",
    default=None,
    help="Enable/disable the fragment cache (overrides config, default: enabled)",
)
@_verbose_option
def serve(
    config_path: Path | None,
    root_dir: Path | None,
    host: str | None,
    port: int | None,
    prerender: bool | None,
    live_reload: bool | None,
    cache: bool | None,
    verbose: bool,
) -> None:
    """Start the site server."""
    from pagewire.server import run_server

    _setup_logging(verbose)
    try:
        config = Config.load(config_path)
    except (FileNotFoundError, ValueError) as e:
        _fail(e)
        return

    config = config.with_overrides(
        host=host,
        port=port,
        root_dir=root_dir,
        cache_enabled=cache,
        prerender=prerender,
        live_reload_enabled=live_reload,
    )

    click.echo(f"Starting server on {config.server.host}:{config.server.port}")
    click.echo(f"Site directory: {config.site.root_dir}")
    if config.site.cache_enabled:
        click.echo(f"Cache directory: {config.site.cache_dir}")
    else:
        click.echo("Cache: disabled")
    if config.includes.prerender:
        click.echo("Prerender: enabled")
    else:
        click.echo("Prerender: disabled")
    if config.live_reload.enabled:
        click.echo("Live reload: enabled")
    else:
        click.echo("Live reload: disabled")

    run_server(config, verbose=verbose)


@cli.command()
@click.argument("html_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@_config_option
@click.option(
    "--root-dir",
    "-r",
    type=click.Path(exists=True, path_type=Path, file_okay=False),
    default=None,
    help="Site root that include paths resolve against (default: config, else file's directory)",
)
@click.option(
    "--base-url",
    default=None,
    help="URL the page is served at (default: derived from its place in the site root)",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the expanded page here instead of stdout",
)
@_verbose_option
def expand(
    html_file: Path,
    config_path: Path | None,
    root_dir: Path | None,
    base_url: str | None,
    output: Path | None,
    verbose: bool,
) -> None:
    """Expand the include directives of one page."""
    _setup_logging(verbose)
    try:
        config = Config.load(config_path)
        if root_dir is None:
            root_dir = config.site.root_dir if config.config_path else html_file.parent
        transport = LocalFileTransport(root_dir)
        if base_url is None:
            base_url = _page_url(html_file, transport.root_dir)

        text = html_file.read_text(encoding="utf-8")
        cache = FragmentCache(
            transport,
            FixedLocation(base_url),
            store=MemorySessionStore(),
            timeout=config.includes.timeout,
        )
        resolver = DirectiveResolver(cache, mark_failures=config.includes.mark_failures)
        expanded = asyncio.run(
            prerender(text, resolver, base=base_url, max_passes=config.includes.max_passes)
        )
    except (FileNotFoundError, ValueError, OSError, PagewireError) as e:
        _fail(e)
        return

    if output is None:
        click.echo(expanded, nl=False)
    else:
        output.write_text(expanded, encoding="utf-8")
        click.echo(f"Wrote {output}", err=True)


@cli.command()
@click.argument("url")
@_config_option
@click.option(
    "--click",
    "clicks",
    multiple=True,
    help="Follow this link after loading (repeatable)",
)
@click.option(
    "--back",
    is_flag=True,
    help="Go back one history entry at the end",
)
@_verbose_option
def visit(
    url: str,
    config_path: Path | None,
    clicks: tuple[str, ...],
    back: bool,
    verbose: bool,
) -> None:
    """Browse a site headlessly and print where you end up."""
    _setup_logging(verbose)
    try:
        config = Config.load(config_path)
        session = asyncio.run(_browse(config, url, clicks, back))
    except (FileNotFoundError, ValueError, PagewireError) as e:
        _fail(e)
        return

    document = session.document
    click.echo(f"Location: {session.window.href}")
    click.echo(f"Title: {document.title}")
    click.echo(f"History: {session.window.length} entries")
    region = document.find_content_region(config.navigation.content_selectors)
    if region is not None:
        click.echo("")
        click.echo(region.get_text(" ", strip=True))


async def _browse(
    config: Config,
    url: str,
    clicks: tuple[str, ...],
    back: bool,
) -> BrowserSession:
    async with httpx.AsyncClient() as client:
        session = BrowserSession(
            HttpxTransport(client),
            includes=config.includes,
            navigation=config.navigation,
        )
        await session.open(url)
        for href in clicks:
            intercepted = await session.click(href)
            click.echo(f"{'Swapped' if intercepted else 'Loaded'}: {session.window.href}", err=True)
        if back:
            await session.back()
        session.close()
    return session


def _page_url(html_file: Path, root_dir: Path) -> str:
    """Clean URL a file would be served at under root_dir."""
    try:
        relative = html_file.resolve().relative_to(root_dir).as_posix()
    except ValueError:
        relative = html_file.name
    if relative == "index.html":
        return f"{LOCAL_ORIGIN}/"
    if relative.endswith("/index.html"):
        return f"{LOCAL_ORIGIN}/{relative.removesuffix('index.html')}"
    return f"{LOCAL_ORIGIN}/{relative}"
