"""Core type definitions."""

from typing import NewType

# Absolute, origin-normalized URL used as cache key (e.g., "http://site.test/nav.html")
# Distinct from raw href strings to catch unresolved paths
ResourceURL = NewType("ResourceURL", str)
