"""In-site navigation without full page loads.

Fetches the target page, swaps the content region of the live document,
re-runs include expansion and script activation on the new content, and
updates title, classes and history. Anything that goes wrong before the
swap falls back to a full page load, so the user never sees a half-applied page.

Overlapping navigations are serialized by sequence number: only the latest
navigation may apply its result, older ones are discarded as superseded.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from urllib.parse import urljoin, urlsplit

from bs4 import Tag

from pagewire.core.browser import Window
from pagewire.core.document import (
    DEFAULT_CONTENT_SELECTORS,
    Document,
    get_classes,
    set_classes,
)
from pagewire.core.fetch import FragmentCache
from pagewire.core.includes import IncludeProcessor, activate_scripts
from pagewire.core.links import LinkClick, should_intercept
from pagewire.core.urls import NON_NAVIGABLE_SCHEMES, normalize_url, page_file, same_origin
from pagewire.errors import NoContentRegionError, ParseError, RetrievalError

logger = logging.getLogger(__name__)

NAVIGATED_EVENT = "pagewire:navigated"


class NavState(enum.Enum):
    """Navigation engine lifecycle state."""

    IDLE = "idle"
    LOADING = "loading"
    SWAPPING = "swapping"
    FAILED = "failed"


class NavStatus(enum.Enum):
    """Outcome of a navigate() call."""

    COMPLETED = "completed"
    SKIPPED = "skipped"
    SUPERSEDED = "superseded"
    EXTERNAL = "external"
    FAILED = "failed"


@dataclass
class NavigationResult:
    """Result of a navigation request."""

    status: NavStatus
    url: str
    sequence: int
    error: Exception | None = None


def _same_page(url: str, other: str) -> bool:
    a = urlsplit(url)
    b = urlsplit(other)
    return (a.path or "/", a.query) == (b.path or "/", b.query)


class NavigationEngine:
    """Swaps page content for same-origin navigations."""

    def __init__(
        self,
        window: Window,
        cache: FragmentCache,
        *,
        processor: IncludeProcessor | None = None,
        content_selectors: tuple[str, ...] | list[str] = DEFAULT_CONTENT_SELECTORS,
        use_cache: bool = True,
        active_class: str = "active",
        loading_class: str | None = "spa-loading",
    ) -> None:
        """Initialize navigation engine.

        Args:
            window: Browser capabilities and the live document
            cache: Fragment cache used to retrieve target pages
            processor: Include processor re-run on swapped content; the engine
                       registers itself as its link binder
            content_selectors: Content-region selectors in priority order
            use_cache: Retrieve pages through the cache (False always refetches)
            active_class: Class marking the nav link of the current page
            loading_class: Body class present while a navigation is loading;
                           None disables it
        """
        self._window = window
        self._cache = cache
        self._processor = processor
        self._selectors = tuple(content_selectors)
        self._use_cache = use_cache
        self._active_class = active_class
        self._loading_class = loading_class
        self._in_flight: set[int] = set()
        self._sequence = 0
        self._displayed_url: str | None = None
        self.state = NavState.IDLE

        if processor is not None:
            processor.navigator = self

    @property
    def sequence(self) -> int:
        """Sequence number of the latest navigation request."""
        return self._sequence

    @property
    def current_url(self) -> str:
        """URL of the content currently displayed."""
        return self._displayed_url or self._window.href

    async def navigate(self, href: str, push: bool = True) -> NavigationResult:
        """Navigate to href, swapping content in place when possible.

        Args:
            href: Target reference, resolved against the current location
            push: Add a history entry (False when replaying history)

        Returns:
            NavigationResult describing what happened
        """
        if not href:
            return NavigationResult(NavStatus.SKIPPED, "", self._sequence)

        self._sequence += 1
        sequence = self._sequence
        current = self._window.href

        if href.strip().lower().startswith(NON_NAVIGABLE_SCHEMES) or not same_origin(
            href, current
        ):
            logger.debug(f"Not same-origin, using full navigation: {href}")
            self._window.assign(href)
            return NavigationResult(NavStatus.EXTERNAL, href, sequence)

        target = normalize_url(urljoin(current, href))
        if push and _same_page(target, current):
            logger.debug(f"Already displaying {target}")
            return NavigationResult(NavStatus.SKIPPED, target, sequence)

        self.state = NavState.LOADING
        self._begin_loading(sequence)
        try:
            return await self._load(target, sequence, push)
        finally:
            self._end_loading(sequence)

    async def _load(self, target: str, sequence: int, push: bool) -> NavigationResult:
        try:
            if self._use_cache:
                markup = await self._cache.retrieve(target)
            else:
                markup = await self._cache.fetch_fresh(target)
            if self._is_stale(sequence):
                return self._superseded(target, sequence)

            self.state = NavState.SWAPPING
            await self._swap(target, markup)
        except (RetrievalError, ParseError, NoContentRegionError) as e:
            if self._is_stale(sequence):
                return self._superseded(target, sequence)
            logger.warning(f"Navigation to {target} failed, falling back to full load: {e}")
            self.state = NavState.FAILED
            self._window.assign(target)
            self.state = NavState.IDLE
            return NavigationResult(NavStatus.FAILED, target, sequence, error=e)

        if self._is_stale(sequence):
            return self._superseded(target, sequence)

        if push:
            self._window.push_state(target)
        self.update_active_links()
        self._window.dispatch(
            NAVIGATED_EVENT,
            {"url": target, "time": datetime.now(UTC).isoformat()},
        )
        self._window.scroll_to_top()
        self.state = NavState.IDLE
        logger.info(f"Navigated to {target}")
        return NavigationResult(NavStatus.COMPLETED, target, sequence)

    async def handle_click(self, click: LinkClick) -> bool:
        """Handle a link activation.

        Returns:
            True if the click was intercepted (default action suppressed)
        """
        if not should_intercept(click, self._window.href):
            return False
        logger.debug(f"Intercepting: {click.href}")
        await self.navigate(click.href or "", push=True)
        return True

    async def handle_popstate(self) -> NavigationResult:
        """Re-render the current location after a history back/forward move."""
        logger.debug(f"Popstate detected, navigating to {self._window.href}")
        return await self.navigate(self._window.href, push=False)

    def rebind_links(self, root: Tag) -> int:
        """Re-sync link state after anchors were inserted under root.

        Returns:
            Number of anchors under root that navigation would intercept
        """
        self.update_active_links()
        current = self._window.href
        count = sum(
            1
            for anchor in root.find_all("a", href=True)
            if should_intercept(
                LinkClick(
                    href=str(anchor["href"]),
                    target=anchor.get("target"),
                    download=anchor.has_attr("download"),
                ),
                current,
            )
        )
        logger.debug(f"Bound {count} links")
        return count

    def update_active_links(self) -> None:
        """Mark nav links pointing at the displayed page with the active class."""
        current = self.current_url
        current_file = page_file(urlsplit(current).path)
        for anchor in self._window.document.soup.select("nav a[href]"):
            href = str(anchor["href"])
            classes = [c for c in get_classes(anchor) if c != self._active_class]
            if not href.startswith("#") and same_origin(href, current):
                target_file = page_file(urlsplit(urljoin(current, href)).path)
                if target_file == current_file:
                    classes.append(self._active_class)
            set_classes(anchor, classes)

    async def _swap(self, target: str, markup: str) -> None:
        """Replace the live content region with the target page's.

        Both regions are located before anything is mutated.

        Raises:
            ParseError: If the target markup cannot be parsed
            NoContentRegionError: If either document lacks a content region
        """
        incoming = Document.parse(markup, target)
        new_region = incoming.find_content_region(self._selectors)
        if new_region is None:
            raise NoContentRegionError(target, "target")

        live = self._window.document
        current_region = live.find_content_region(self._selectors)
        if current_region is None:
            raise NoContentRegionError(live.url, "current")

        logger.debug(f"Swapping content region <{new_region.name}> for {target}")
        set_classes(current_region, get_classes(new_region))
        classes = incoming.body_classes
        if self._loading_class and self._loading_class in live.body_classes:
            classes = [c for c in classes if c != self._loading_class]
            classes.append(self._loading_class)
        live.body_classes = classes
        live.title = incoming.title
        current_region.clear()
        for child in list(new_region.contents):
            current_region.append(child.extract())
        live.url = target
        self._displayed_url = target

        if self._processor is not None:
            await self._processor.run(current_region, base=target, activate_all=True)
        else:
            activate_scripts(current_region, self._window)

    def _begin_loading(self, sequence: int) -> None:
        self._in_flight.add(sequence)
        if not self._loading_class:
            return
        document = self._window.document
        if self._loading_class not in document.body_classes:
            document.body_classes = [*document.body_classes, self._loading_class]

    def _end_loading(self, sequence: int) -> None:
        self._in_flight.discard(sequence)
        # Older navigations still in flight are already superseded
        if not self._loading_class or any(s > sequence for s in self._in_flight):
            return
        document = self._window.document
        document.body_classes = [c for c in document.body_classes if c != self._loading_class]

    def _is_stale(self, sequence: int) -> bool:
        return sequence != self._sequence

    def _superseded(self, target: str, sequence: int) -> NavigationResult:
        logger.debug(f"Discarding superseded navigation #{sequence} to {target}")
        return NavigationResult(NavStatus.SUPERSEDED, target, sequence)
