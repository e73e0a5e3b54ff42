"""Headless browsing session.

Plays the role of the browser around the core engines: performs full page
loads, runs include expansion on the loaded body, and hands link clicks and
history moves to the navigation engine. Engine instances are per page load;
the fragment store lives as long as the session.
"""

import logging
from urllib.parse import urljoin

from pagewire.config import IncludesConfig, NavigationConfig
from pagewire.core.browser import HeadlessWindow, ScriptDescriptor
from pagewire.core.cache import MemorySessionStore, SessionStore
from pagewire.core.directives import DirectiveResolver
from pagewire.core.document import Document
from pagewire.core.fetch import FragmentCache
from pagewire.core.includes import IncludeProcessor, IncludeReport, is_executable_script
from pagewire.core.links import MODIFIER_KEYS, LinkClick
from pagewire.core.navigation import NavigationEngine, NavigationResult
from pagewire.core.transport import Transport
from pagewire.core.urls import NON_NAVIGABLE_SCHEMES, normalize_url
from pagewire.errors import ParseError, RetrievalError

logger = logging.getLogger(__name__)


class BrowserSession:
    """A single-tab browsing session over a transport."""

    def __init__(
        self,
        transport: Transport,
        *,
        store: SessionStore | None = None,
        includes: IncludesConfig | None = None,
        navigation: NavigationConfig | None = None,
    ) -> None:
        """Initialize session.

        Args:
            transport: Transport used for every retrieval
            store: Fragment store scoped to this session (default: in-memory)
            includes: Include resolution settings
            navigation: Client navigation settings
        """
        self._transport = transport
        self._store: SessionStore = store if store is not None else MemorySessionStore()
        self._includes = includes or IncludesConfig()
        self._navigation = navigation or NavigationConfig()
        self._window = HeadlessWindow()
        self._navigator: NavigationEngine | None = None
        self.last_report: IncludeReport | None = None

    @property
    def window(self) -> HeadlessWindow:
        return self._window

    @property
    def document(self) -> Document:
        return self._window.document

    @property
    def store(self) -> SessionStore:
        return self._store

    @property
    def navigator(self) -> NavigationEngine:
        """Navigation engine of the current page load.

        Raises:
            RuntimeError: If no page has been opened yet
        """
        if self._navigator is None:
            raise RuntimeError("No page loaded, call open() first")
        return self._navigator

    async def open(self, url: str) -> Document:
        """Perform a full page load of url.

        Returns:
            The loaded document
        """
        await self._load(normalize_url(url))
        await self._drain_pending_load()
        return self._window.document

    async def click(self, href: str, **kwargs: object) -> bool:
        """Activate a link on the current page.

        Keyword arguments are passed to LinkClick (target, button, modifiers,
        download, default_prevented).

        Returns:
            True if the navigation engine intercepted the click
        """
        click = LinkClick(href=href, **kwargs)  # type: ignore[arg-type]
        intercepted = await self.navigator.handle_click(click)
        if not intercepted and _follows_in_place(click):
            self._window.assign(urljoin(self._window.href, href))
        await self._drain_pending_load()
        return intercepted

    async def back(self) -> NavigationResult | None:
        """Move one history entry back and re-render it.

        Returns:
            Navigation result, or None at the start of history
        """
        if self._window.back() is None:
            return None
        return await self._replay()

    async def forward(self) -> NavigationResult | None:
        """Move one history entry forward and re-render it.

        Returns:
            Navigation result, or None at the end of history
        """
        if self._window.forward() is None:
            return None
        return await self._replay()

    def close(self) -> None:
        """End the session, discarding cached fragments."""
        logger.debug(f"Closing session, dropping {len(self._store)} cached fragments")
        self._store.clear()

    async def _replay(self) -> NavigationResult:
        result = await self.navigator.handle_popstate()
        await self._drain_pending_load(replace=True)
        return result

    async def _drain_pending_load(self, *, replace: bool = False) -> None:
        while (url := self._window.take_pending_load()) is not None:
            if url.strip().lower().startswith(NON_NAVIGABLE_SCHEMES):
                logger.info(f"Ignoring navigation to {url}")
                continue
            await self._load(normalize_url(url), replace=replace)

    async def _load(self, url: str, *, replace: bool = False) -> None:
        cache = FragmentCache(
            self._transport,
            self._window,
            store=self._store,
            timeout=self._includes.timeout,
        )

        try:
            markup = await cache.fetch_fresh(url)
            document = Document.parse(markup, url)
        except (RetrievalError, ParseError) as e:
            logger.error(f"Failed to load {url}: {e}")
            document = Document.empty(url)
            document.title = "Error"

        self._window.commit_load(url, document, replace=replace)
        # The page's own scripts run as part of the load itself
        self._window.executed_scripts.extend(
            ScriptDescriptor.from_tag(script)
            for script in document.soup.find_all("script")
            if is_executable_script(script)
        )

        resolver = DirectiveResolver(cache, mark_failures=self._includes.mark_failures)
        processor = IncludeProcessor(
            resolver,
            self._window,
            max_passes=self._includes.max_passes,
            base_mode=self._includes.base,
        )
        self._navigator = NavigationEngine(
            self._window,
            cache,
            processor=processor,
            content_selectors=self._navigation.content_selectors,
            use_cache=self._navigation.use_cache,
            active_class=self._navigation.active_class,
            loading_class=self._navigation.loading_class or None,
        )
        self._navigator.update_active_links()
        self.last_report = await processor.run(document.body)
        logger.info(f"Loaded {url} ({self.last_report.replacements} includes)")


def _follows_in_place(click: LinkClick) -> bool:
    """Whether the browser's default action replaces the current page."""
    href = (click.href or "").strip()
    if not href or href.startswith("#") or click.default_prevented:
        return False
    if click.button != 0 or click.modifiers & MODIFIER_KEYS:
        return False
    return click.target in (None, "", "_self") and not click.download
