"""Tests for session fragment stores."""

from pathlib import Path

from pagewire.core.cache import (
    CACHE_KEY_PREFIX,
    FileSessionStore,
    MemorySessionStore,
    cache_key,
)


class TestCacheKey:
    """Tests for cache_key()."""

    def test__url__prefixed(self) -> None:
        """Keys are the prefix followed by the absolute URL."""
        assert cache_key("https://site.test/nav.html") == "include_cache_https://site.test/nav.html"
        assert CACHE_KEY_PREFIX == "include_cache_"


class TestMemorySessionStore:
    """Tests for MemorySessionStore."""

    def test__miss__returns_none(self) -> None:
        """Unknown keys are misses."""
        assert MemorySessionStore().get("nope") is None

    def test__set_then_get__returns_value(self) -> None:
        """Stored values are returned verbatim."""
        store = MemorySessionStore()
        store.set("k", "<nav>x</nav>")

        assert store.get("k") == "<nav>x</nav>"
        assert len(store) == 1

    def test__clear__drops_everything(self) -> None:
        """Clearing ends the session."""
        store = MemorySessionStore()
        store.set("a", "1")
        store.set("b", "2")

        store.clear()

        assert len(store) == 0
        assert store.get("a") is None


class TestFileSessionStore:
    """Tests for FileSessionStore."""

    def test__first_write__creates_gitignore(self, tmp_path: Path) -> None:
        """Cache directory is ignored by git."""
        cache_dir = tmp_path / ".cache"
        store = FileSessionStore(cache_dir)

        store.set(cache_key("https://site.test/nav.html"), "<nav></nav>")

        gitignore = cache_dir / ".gitignore"
        assert gitignore.exists()
        assert "*" in gitignore.read_text()

    def test__set_then_get__returns_value(self, tmp_path: Path) -> None:
        """Values round-trip through the filesystem."""
        store = FileSessionStore(tmp_path / ".cache")
        key = cache_key("https://site.test/a?x=1")

        store.set(key, "héllo")

        assert store.get(key) == "héllo"
        assert FileSessionStore(tmp_path / ".cache").get(key) == "héllo"

    def test__miss__returns_none(self, tmp_path: Path) -> None:
        """Missing entries and missing directories are misses."""
        store = FileSessionStore(tmp_path / ".cache")

        assert store.get("nope") is None
        assert len(store) == 0

    def test__clear__removes_entries(self, tmp_path: Path) -> None:
        """Clearing removes fragments but keeps the directory."""
        store = FileSessionStore(tmp_path / ".cache")
        store.set("a", "1")
        store.set("b", "2")
        assert len(store) == 2

        store.clear()

        assert len(store) == 0
        assert store.get("a") is None
        assert store.cache_dir.exists()

    def test__unreadable_entry__treated_as_miss(self, tmp_path: Path) -> None:
        """An entry that cannot be read as a file is a miss."""
        store = FileSessionStore(tmp_path / ".cache")
        store.set("a", "1")
        entry = next((tmp_path / ".cache" / "fragments").glob("*.html"))
        entry.unlink()
        entry.mkdir()

        assert store.get("a") is None
