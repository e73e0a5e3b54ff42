"""Core include resolution and navigation engine.

Everything here is independent of the HTTP server and the CLI: browser
operations go through the capability protocols in pagewire.core.browser.
"""

from .directives import DirectiveResolver, find_directives
from .fetch import FragmentCache
from .includes import IncludeProcessor, IncludeReport, activate_scripts
from .navigation import NavigationEngine, NavigationResult, NavState, NavStatus

__all__ = [
    "DirectiveResolver",
    "FragmentCache",
    "IncludeProcessor",
    "IncludeReport",
    "NavState",
    "NavStatus",
    "NavigationEngine",
    "NavigationResult",
    "activate_scripts",
    "find_directives",
]
