"""Session-scoped fragment stores.

Fragments are persisted under ``"include_cache_" + absolute URL`` and live for
one browsing (or serving) session. Entries are never invalidated within a
session; the session owner calls ``clear()`` when the session ends.

File store structure:
    .cache/
    ├── .gitignore
    └── fragments/
        └── <sha256 of key>.html
"""

import hashlib
import shutil
from pathlib import Path
from typing import Protocol

CACHE_KEY_PREFIX = "include_cache_"


def cache_key(url: str) -> str:
    """Return the store key for an absolute URL."""
    return f"{CACHE_KEY_PREFIX}{url}"


class SessionStore(Protocol):
    """Key/value store for fragment content, scoped to a session."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def clear(self) -> None: ...

    def __len__(self) -> int: ...


class MemorySessionStore:
    """In-memory session store."""

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._entries.get(key)

    def set(self, key: str, value: str) -> None:
        self._entries[key] = value

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class FileSessionStore:
    """File-based session store.

    One file per key, named by the SHA-256 of the key so that arbitrary URLs
    map to safe filenames.
    """

    _GITIGNORE_CONTENT = "# Ignore everything in this directory\n*\n"

    def __init__(self, cache_dir: Path) -> None:
        """Initialize store with directory path.

        Args:
            cache_dir: Root directory for cache files (e.g., .cache/)
        """
        self._cache_dir = cache_dir
        self._fragments_dir = cache_dir / "fragments"

    @property
    def cache_dir(self) -> Path:
        """Root cache directory."""
        return self._cache_dir

    def _ensure_cache_dir(self) -> None:
        """Create cache directory with .gitignore if it doesn't exist."""
        if not self._cache_dir.exists():
            self._cache_dir.mkdir(parents=True, exist_ok=True)
            gitignore_path = self._cache_dir / ".gitignore"
            gitignore_path.write_text(self._GITIGNORE_CONTENT, encoding="utf-8")

    def _entry_path(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self._fragments_dir / f"{digest}.html"

    def get(self, key: str) -> str | None:
        """Retrieve a stored fragment.

        Args:
            key: Store key (see cache_key())

        Returns:
            Fragment content, or None on miss or unreadable entry
        """
        entry_path = self._entry_path(key)
        if not entry_path.exists():
            return None

        try:
            return entry_path.read_text(encoding="utf-8")
        except OSError:
            return None

    def set(self, key: str, value: str) -> None:
        """Store a fragment.

        Args:
            key: Store key (see cache_key())
            value: Fragment content
        """
        self._ensure_cache_dir()
        self._fragments_dir.mkdir(parents=True, exist_ok=True)
        self._entry_path(key).write_text(value, encoding="utf-8")

    def clear(self) -> None:
        """Remove all stored fragments."""
        if self._fragments_dir.exists():
            shutil.rmtree(self._fragments_dir)

    def __len__(self) -> int:
        if not self._fragments_dir.exists():
            return 0
        return sum(1 for _ in self._fragments_dir.glob("*.html"))
