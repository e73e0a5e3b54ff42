"""Live reload for development mode."""

from .reload import CLIENT_SCRIPT, LiveReloadManager, create_live_reload_routes, inject_client

__all__ = ["CLIENT_SCRIPT", "LiveReloadManager", "create_live_reload_routes", "inject_client"]
