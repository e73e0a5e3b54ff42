"""WebSocket-based live reload for development mode.

Monitors the site directory for changes and notifies connected clients
via WebSocket to trigger page reloads.
"""

import asyncio
import json
import logging
import weakref
from pathlib import Path

from aiohttp import WSMsgType, web
from watchfiles import Change, awatch

from pagewire.core.cache import SessionStore

logger = logging.getLogger(__name__)

DEFAULT_WATCH_PATTERNS = ["**/*.html"]
LIVE_RELOAD_PATH = "/ws/live-reload"

CLIENT_SCRIPT = (
    "<script>(function () {"
    "var proto = location.protocol === 'https:' ? 'wss:' : 'ws:';"
    f"var ws = new WebSocket(proto + '//' + location.host + '{LIVE_RELOAD_PATH}');"
    "ws.onmessage = function (event) {"
    "if (JSON.parse(event.data).type === 'reload') { location.reload(); }"
    "};"
    "})();</script>"
)


class LiveReloadManager:
    """Manages WebSocket connections and file watching for live reload.

    A changed page or fragment invalidates every cached fragment, since any
    page may include it.
    """

    def __init__(
        self,
        root_dir: Path,
        watch_patterns: list[str] | None = None,
        *,
        store: SessionStore | None = None,
    ) -> None:
        """Initialize the live reload manager.

        Args:
            root_dir: Site directory to watch for changes
            watch_patterns: Glob patterns to watch (default: ["**/*.html"])
            store: Fragment store to clear on change
        """
        self._root_dir = root_dir.resolve()
        self._watch_patterns = watch_patterns or DEFAULT_WATCH_PATTERNS
        self._connections: weakref.WeakSet[web.WebSocketResponse] = weakref.WeakSet()
        self._watch_task: asyncio.Task[None] | None = None
        self._store = store

    @property
    def connections(self) -> int:
        """Number of connected clients."""
        return len(self._connections)

    async def start(self) -> None:
        """Start the file watcher."""
        if self._watch_task is not None:
            return
        self._watch_task = asyncio.create_task(self._watch_files())

    async def stop(self) -> None:
        """Stop the file watcher and close all connections."""
        if self._watch_task is not None:
            self._watch_task.cancel()
            try:
                await self._watch_task
            except asyncio.CancelledError:
                pass
            self._watch_task = None

        for ws in list(self._connections):
            await ws.close()

    async def handle_websocket(self, request: web.Request) -> web.WebSocketResponse:
        """Handle WebSocket connection for live reload.

        Args:
            request: aiohttp request

        Returns:
            WebSocket response
        """
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        self._connections.add(ws)

        try:
            async for msg in ws:
                if msg.type == WSMsgType.ERROR:
                    break
        finally:
            self._connections.discard(ws)

        return ws

    async def notify_change(self, path: Path) -> bool:
        """Handle one changed file.

        Args:
            path: Absolute path of the changed file

        Returns:
            True if the file is watched and a reload was broadcast
        """
        if not self._matches_patterns(path):
            return False

        url_path = self._to_url_path(path)
        logger.info(f"Changed: {url_path}")
        self._invalidate_caches()
        await self._broadcast_reload(url_path)
        return True

    async def _watch_files(self) -> None:
        """Watch for file changes and broadcast reload events."""
        async for changes in awatch(self._root_dir):
            for change_type, path_str in changes:
                if change_type == Change.deleted:
                    continue
                await self.notify_change(Path(path_str))

    def _invalidate_caches(self) -> None:
        if self._store is not None:
            self._store.clear()

    def _matches_patterns(self, path: Path) -> bool:
        """Check if a path matches any watch pattern.

        Args:
            path: Path to check

        Returns:
            True if path matches any pattern
        """
        try:
            relative = path.relative_to(self._root_dir)
        except ValueError:
            return False

        for pattern in self._watch_patterns:
            if relative.match(pattern):
                return True
            # "**/" also matches zero directories (top-level files)
            if pattern.startswith("**/") and relative.match(pattern.removeprefix("**/")):
                return True
        return False

    def _to_url_path(self, file_path: Path) -> str:
        """Convert a file system path to the clean URL serving it.

        Args:
            file_path: Absolute file path

        Returns:
            URL path (e.g., "/guide/setup", "/guide/")
        """
        relative = file_path.relative_to(self._root_dir).as_posix()
        if relative.endswith(".html"):
            relative = relative.removesuffix(".html")
            if relative == "index":
                return "/"
            if relative.endswith("/index"):
                return f"/{relative.removesuffix('index')}"
        return f"/{relative}"

    async def _broadcast_reload(self, path: str) -> None:
        """Broadcast reload event to all connected clients.

        Args:
            path: URL path that changed
        """
        if not self._connections:
            return

        message = json.dumps({"type": "reload", "path": path})

        for ws in list(self._connections):
            if ws.closed:
                continue
            try:
                await ws.send_str(message)
            except ConnectionResetError:
                logger.debug("Client disconnected during broadcast")


def create_live_reload_routes(manager: LiveReloadManager) -> list[web.RouteDef]:
    """Create routes for live reload WebSocket.

    Args:
        manager: LiveReloadManager instance

    Returns:
        List of route definitions
    """
    return [web.get(LIVE_RELOAD_PATH, manager.handle_websocket)]


def inject_client(html: str) -> str:
    """Insert the reload client before the closing body tag, or append it."""
    marker = html.lower().rfind("</body>")
    if marker == -1:
        return html + CLIENT_SCRIPT
    return html[:marker] + CLIENT_SCRIPT + html[marker:]
