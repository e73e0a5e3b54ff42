"""Browser capability interfaces and a headless implementation.

The resolver, activator and navigation engine only touch the browser through
these narrow protocols, so the same logic runs against HeadlessWindow (CLI,
server-side tooling, tests) or any other host that implements them.
"""

import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

from bs4 import Tag

from pagewire.core.document import Document

logger = logging.getLogger(__name__)

BLANK_URL = "about:blank"


@dataclass(frozen=True)
class ScriptDescriptor:
    """Everything needed to recreate a script element."""

    src: str | None
    code: str
    attrs: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_tag(cls, tag: Tag) -> "ScriptDescriptor":
        attrs = {
            name: " ".join(value) if isinstance(value, list) else str(value)
            for name, value in tag.attrs.items()
        }
        src = attrs.get("src")
        return cls(src=src, code="" if src else tag.get_text(), attrs=attrs)


class Location(Protocol):
    """Current document location."""

    @property
    def href(self) -> str: ...

    def assign(self, url: str) -> None:
        """Perform a full page load of url."""
        ...


class History(Protocol):
    """Session history stack."""

    @property
    def length(self) -> int: ...

    def push_state(self, url: str) -> None: ...


class ScriptHost(Protocol):
    """Execution context for activated scripts."""

    def execute(self, script: ScriptDescriptor) -> None: ...


class EventTarget(Protocol):
    """Receiver of notifications for other components."""

    def dispatch(self, name: str, detail: dict[str, Any]) -> None: ...


class Viewport(Protocol):
    """Scrollable viewport."""

    def scroll_to_top(self) -> None: ...


class Window(Location, History, ScriptHost, EventTarget, Viewport, Protocol):
    """All capabilities the navigation engine needs, plus the live document."""

    @property
    def document(self) -> Document: ...


class FixedLocation:
    """Location of a page being rendered outside a browser (server, CLI).

    Nothing can navigate away from it; assign() only logs.
    """

    def __init__(self, href: str) -> None:
        self._href = href

    @property
    def href(self) -> str:
        return self._href

    def assign(self, url: str) -> None:
        logger.warning(f"Ignoring navigation to {url} while rendering {self._href}")


class HeadlessWindow:
    """In-memory browser window.

    Full page loads requested through assign() are recorded and left pending;
    the owning session performs them and commits the result with commit_load().
    """

    def __init__(self) -> None:
        self._document = Document.empty(BLANK_URL)
        self._entries: list[str] = []
        self._index = -1
        self._listeners: defaultdict[str, list[Callable[[dict[str, Any]], None]]] = defaultdict(
            list
        )
        self.scroll_y = 0
        self.pending_load: str | None = None
        self.hard_navigations: list[str] = []
        self.executed_scripts: list[ScriptDescriptor] = []
        self.events: list[tuple[str, dict[str, Any]]] = []

    @property
    def document(self) -> Document:
        return self._document

    @property
    def href(self) -> str:
        if self._index < 0:
            return BLANK_URL
        return self._entries[self._index]

    @property
    def length(self) -> int:
        return len(self._entries)

    def assign(self, url: str) -> None:
        logger.info(f"Full navigation to {url}")
        self.hard_navigations.append(url)
        self.pending_load = url

    def commit_load(self, url: str, document: Document, *, replace: bool = False) -> None:
        """Install a fully loaded document.

        Args:
            url: Final URL of the load
            document: Parsed page
            replace: Overwrite the current history entry instead of pushing
                     (used when a history move triggers the load)
        """
        if replace and self._index >= 0:
            self._entries[self._index] = url
        else:
            self._push(url)
        self._document = document
        self.pending_load = None
        self.scroll_y = 0

    def take_pending_load(self) -> str | None:
        url, self.pending_load = self.pending_load, None
        return url

    def push_state(self, url: str) -> None:
        self._push(url)

    def back(self) -> str | None:
        """Move one entry back; returns the URL to replay, or None at the start."""
        if self._index <= 0:
            return None
        self._index -= 1
        return self.href

    def forward(self) -> str | None:
        """Move one entry forward; returns the URL to replay, or None at the end."""
        if self._index >= len(self._entries) - 1:
            return None
        self._index += 1
        return self.href

    def execute(self, script: ScriptDescriptor) -> None:
        fresh = self._document.soup.new_tag("script", attrs=dict(script.attrs))
        if script.code:
            fresh.string = script.code
        self._document.head.append(fresh)
        self.executed_scripts.append(script)

    def dispatch(self, name: str, detail: dict[str, Any]) -> None:
        self.events.append((name, detail))
        for callback in list(self._listeners[name]):
            callback(detail)

    def add_listener(self, name: str, callback: Callable[[dict[str, Any]], None]) -> None:
        self._listeners[name].append(callback)

    def scroll_to_top(self) -> None:
        self.scroll_y = 0

    def _push(self, url: str) -> None:
        del self._entries[self._index + 1 :]
        self._entries.append(url)
        self._index = len(self._entries) - 1
