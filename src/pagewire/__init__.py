"""pagewire - HTML includes and in-place navigation for static sites."""

from pagewire.config import Config
from pagewire.errors import NoContentRegionError, PagewireError, ParseError, RetrievalError
from pagewire.session import BrowserSession

__all__ = [
    "BrowserSession",
    "Config",
    "NoContentRegionError",
    "PagewireError",
    "ParseError",
    "RetrievalError",
]
