"""Transports that retrieve text resources by absolute URL.

HttpxTransport talks to a real HTTP server; LocalFileTransport reads from a
site directory and backs the server-side mirror.
"""

import logging
from pathlib import Path
from typing import Protocol
from urllib.parse import unquote, urlsplit

import httpx

from pagewire.core.urls import page_file
from pagewire.errors import RetrievalError

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Fetch text by URL."""

    async def fetch_text(self, url: str) -> str: ...


class HttpxTransport:
    """Async HTTP transport over a shared httpx client.

    The client's cookie jar carries same-origin credentials between requests.
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        """Initialize transport.

        Args:
            client: httpx AsyncClient shared by the session
        """
        self.client = client

    async def fetch_text(self, url: str) -> str:
        """GET a URL and return its text body.

        Raises:
            RetrievalError: On non-2xx status or transport failure
        """
        logger.debug(f"GET {url}")
        try:
            response = await self.client.get(url, follow_redirects=True)
        except httpx.HTTPError as e:
            raise RetrievalError(url, reason=str(e) or type(e).__name__) from e

        if not response.is_success:
            raise RetrievalError(url, status=response.status_code)
        return response.text


class LocalFileTransport:
    """Serve URLs from a site directory using the clean-URL mapping.

    Only the URL path is considered; scheme and host are ignored.
    """

    def __init__(self, root_dir: Path) -> None:
        self._root_dir = root_dir.resolve()

    @property
    def root_dir(self) -> Path:
        """Site root directory."""
        return self._root_dir

    def file_for(self, url: str) -> Path | None:
        """Map a URL to an existing file under the root, or None.

        Paths escaping the root are rejected.
        """
        relative = page_file(unquote(urlsplit(url).path))
        candidate = (self._root_dir / relative).resolve()
        if not candidate.is_relative_to(self._root_dir):
            logger.warning(f"Rejected path outside site root: {url}")
            return None
        if not candidate.is_file():
            return None
        return candidate

    async def fetch_text(self, url: str) -> str:
        """Read the file serving a URL.

        Raises:
            RetrievalError: With status 404 if no file serves the URL
        """
        path = self.file_for(url)
        if path is None:
            raise RetrievalError(url, status=404)
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise RetrievalError(url, reason=str(e)) from e
