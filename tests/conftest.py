"""Shared test fixtures."""

import asyncio
from collections import Counter
from pathlib import Path

import pytest

from pagewire.config import (
    Config,
    IncludesConfig,
    LiveReloadConfig,
    NavigationConfig,
    ServerConfig,
    SiteConfig,
)
from pagewire.errors import RetrievalError

ORIGIN = "https://site.test"


class FakeTransport:
    """In-memory transport keyed by absolute URL that counts requests.

    URLs registered with gate() block until the returned event is set.
    """

    def __init__(self, pages: dict[str, str] | None = None, *, delay: float = 0.0) -> None:
        self.pages = dict(pages or {})
        self.delay = delay
        self.calls: list[str] = []
        self._gates: dict[str, asyncio.Event] = {}

    def add(self, path: str, text: str) -> None:
        """Register a page under ORIGIN + path."""
        self.pages[f"{ORIGIN}{path}"] = text

    def gate(self, path: str) -> asyncio.Event:
        event = asyncio.Event()
        self._gates[f"{ORIGIN}{path}"] = event
        return event

    def count(self, path: str) -> int:
        return Counter(self.calls)[f"{ORIGIN}{path}"]

    async def fetch_text(self, url: str) -> str:
        self.calls.append(url)
        if self.delay:
            await asyncio.sleep(self.delay)
        gate = self._gates.get(url)
        if gate is not None:
            await gate.wait()
        if url not in self.pages:
            raise RetrievalError(url, status=404)
        return self.pages[url]


@pytest.fixture
def transport() -> FakeTransport:
    """Empty fake transport; tests register pages with add()."""
    return FakeTransport()


@pytest.fixture
def test_config(tmp_path: Path) -> Config:
    """Create a test configuration with tmp_path directories.

    Creates root_dir and returns a Config instance suitable for testing.
    Use exist_ok=True to allow other fixtures to also create the site dir.
    """
    root_dir = tmp_path / "site"
    root_dir.mkdir(exist_ok=True)
    cache_dir = tmp_path / ".cache"

    return Config(
        server=ServerConfig(),
        site=SiteConfig(root_dir=root_dir, cache_dir=cache_dir),
        includes=IncludesConfig(),
        navigation=NavigationConfig(),
        live_reload=LiveReloadConfig(enabled=False),
    )
