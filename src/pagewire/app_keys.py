"""Application keys for type-safe app configuration access."""

from aiohttp import web

from pagewire.config import Config
from pagewire.core.cache import FileSessionStore
from pagewire.core.transport import LocalFileTransport
from pagewire.live.reload import LiveReloadManager

config_key = web.AppKey("config", Config)
transport_key = web.AppKey("transport", LocalFileTransport)
store_key = web.AppKey("store", FileSessionStore)
verbose_key = web.AppKey("verbose", bool)
live_reload_key = web.AppKey("live_reload_manager", LiveReloadManager)
