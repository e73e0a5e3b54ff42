"""Configuration management for pagewire.

Supports TOML configuration format with auto-discovery.
"""

import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path

from pagewire.core.document import DEFAULT_CONTENT_SELECTORS
from pagewire.core.includes import DEFAULT_MAX_PASSES, BaseMode

CONFIG_FILENAME = "pagewire.toml"

_BASE_MODES: tuple[BaseMode, ...] = ("document", "fragment")


@dataclass
class ServerConfig:
    """Server configuration."""

    host: str = "127.0.0.1"
    port: int = 8080


@dataclass
class SiteConfig:
    """Static site configuration."""

    root_dir: Path = field(default_factory=lambda: Path("site"))
    cache_dir: Path = field(default_factory=lambda: Path(".cache"))
    cache_enabled: bool = True


@dataclass
class IncludesConfig:
    """Include resolution configuration."""

    max_passes: int = DEFAULT_MAX_PASSES
    timeout: float | None = 10.0
    base: BaseMode = "document"
    mark_failures: bool = False
    prerender: bool = True


@dataclass
class NavigationConfig:
    """Client navigation configuration."""

    content_selectors: list[str] = field(
        default_factory=lambda: list(DEFAULT_CONTENT_SELECTORS),
    )
    use_cache: bool = True
    active_class: str = "active"
    loading_class: str = "spa-loading"


@dataclass
class LiveReloadConfig:
    """Live reload configuration."""

    enabled: bool = True
    watch_patterns: list[str] | None = None


@dataclass
class Config:
    """Application configuration."""

    server: ServerConfig
    site: SiteConfig
    includes: IncludesConfig
    navigation: NavigationConfig
    live_reload: LiveReloadConfig
    config_path: Path | None = None

    @classmethod
    def load(cls, config_path: Path | None = None) -> "Config":
        """Load configuration from file.

        If config_path is provided, loads from that file.
        Otherwise, searches for pagewire.toml in current directory and parents.

        Args:
            config_path: Optional explicit path to config file

        Returns:
            Config instance with defaults for missing sections

        Raises:
            FileNotFoundError: If explicit config_path doesn't exist
            ValueError: If configuration is invalid
        """
        if config_path is not None:
            if not config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {config_path}")
            return cls._load_from_file(config_path)

        discovered_path = cls._discover_config()
        if discovered_path is None:
            return cls._default()

        return cls._load_from_file(discovered_path)

    @classmethod
    def _discover_config(cls) -> Path | None:
        """Search for config file in current directory and parents.

        Returns:
            Path to config file or None if not found
        """
        current = Path.cwd()
        while True:
            candidate = current / CONFIG_FILENAME
            if candidate.exists():
                return candidate
            parent = current.parent
            if parent == current:
                return None
            current = parent

    @classmethod
    def _default(cls) -> "Config":
        """Create config with all defaults."""
        return cls(
            server=ServerConfig(),
            site=SiteConfig(),
            includes=IncludesConfig(),
            navigation=NavigationConfig(),
            live_reload=LiveReloadConfig(),
        )

    @classmethod
    def _load_from_file(cls, path: Path) -> "Config":
        """Load configuration from a specific file.

        Args:
            path: Path to TOML configuration file

        Returns:
            Config instance

        Raises:
            ValueError: If configuration is invalid
        """
        with path.open("rb") as f:
            try:
                data = tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise ValueError(f"Invalid TOML in {path}: {e}") from e

        config_dir = path.parent

        return cls(
            server=cls._parse_server(data.get("server")),
            site=cls._parse_site(data.get("site"), config_dir),
            includes=cls._parse_includes(data.get("includes")),
            navigation=cls._parse_navigation(data.get("navigation")),
            live_reload=cls._parse_live_reload(data.get("live_reload")),
            config_path=path,
        )

    @classmethod
    def _parse_server(cls, data: object) -> ServerConfig:
        """Parse server configuration section."""
        if data is None:
            return ServerConfig()

        if not isinstance(data, dict):
            raise ValueError("server section must be a dictionary")

        host = data.get("host", "127.0.0.1")
        if not isinstance(host, str):
            raise ValueError("server.host must be a string")

        port = data.get("port", 8080)
        if not isinstance(port, int) or isinstance(port, bool):
            raise ValueError("server.port must be an integer")

        return ServerConfig(host=host, port=port)

    @classmethod
    def _parse_site(cls, data: object, config_dir: Path) -> SiteConfig:
        """Parse site configuration section.

        Args:
            data: Raw site section data
            config_dir: Directory containing config file (for relative paths)

        Returns:
            SiteConfig instance
        """
        if data is None:
            return SiteConfig(
                root_dir=config_dir / "site",
                cache_dir=config_dir / ".cache",
            )

        if not isinstance(data, dict):
            raise ValueError("site section must be a dictionary")

        root_dir = data.get("root_dir", "site")
        if not isinstance(root_dir, str):
            raise ValueError("site.root_dir must be a string")

        cache_dir = data.get("cache_dir", ".cache")
        if not isinstance(cache_dir, str):
            raise ValueError("site.cache_dir must be a string")

        cache_enabled = data.get("cache_enabled", True)
        if not isinstance(cache_enabled, bool):
            raise ValueError("site.cache_enabled must be a boolean")

        return SiteConfig(
            root_dir=config_dir / root_dir,
            cache_dir=config_dir / cache_dir,
            cache_enabled=cache_enabled,
        )

    @classmethod
    def _parse_includes(cls, data: object) -> IncludesConfig:
        """Parse includes configuration section.

        A timeout of 0 disables the per-retrieval ceiling.
        """
        if data is None:
            return IncludesConfig()

        if not isinstance(data, dict):
            raise ValueError("includes section must be a dictionary")

        max_passes = data.get("max_passes", DEFAULT_MAX_PASSES)
        if not isinstance(max_passes, int) or isinstance(max_passes, bool) or max_passes < 1:
            raise ValueError("includes.max_passes must be a positive integer")

        timeout = data.get("timeout", 10.0)
        if not isinstance(timeout, int | float) or isinstance(timeout, bool) or timeout < 0:
            raise ValueError("includes.timeout must be a non-negative number")

        base = data.get("base", "document")
        if base not in _BASE_MODES:
            raise ValueError('includes.base must be "document" or "fragment"')

        mark_failures = data.get("mark_failures", False)
        if not isinstance(mark_failures, bool):
            raise ValueError("includes.mark_failures must be a boolean")

        prerender = data.get("prerender", True)
        if not isinstance(prerender, bool):
            raise ValueError("includes.prerender must be a boolean")

        return IncludesConfig(
            max_passes=max_passes,
            timeout=float(timeout) or None,
            base=base,
            mark_failures=mark_failures,
            prerender=prerender,
        )

    @classmethod
    def _parse_navigation(cls, data: object) -> NavigationConfig:
        """Parse navigation configuration section."""
        if data is None:
            return NavigationConfig()

        if not isinstance(data, dict):
            raise ValueError("navigation section must be a dictionary")

        selectors_raw = data.get("content_selectors")
        selectors = list(DEFAULT_CONTENT_SELECTORS)
        if selectors_raw is not None:
            if not isinstance(selectors_raw, list):
                raise ValueError("navigation.content_selectors must be a list")
            selectors = []
            for item in selectors_raw:
                if not isinstance(item, str):
                    raise ValueError("navigation.content_selectors items must be strings")
                selectors.append(item)

        use_cache = data.get("use_cache", True)
        if not isinstance(use_cache, bool):
            raise ValueError("navigation.use_cache must be a boolean")

        active_class = data.get("active_class", "active")
        if not isinstance(active_class, str) or not active_class:
            raise ValueError("navigation.active_class must be a non-empty string")

        loading_class = data.get("loading_class", "spa-loading")
        if not isinstance(loading_class, str):
            raise ValueError("navigation.loading_class must be a string")

        return NavigationConfig(
            content_selectors=selectors,
            use_cache=use_cache,
            active_class=active_class,
            loading_class=loading_class,
        )

    @classmethod
    def _parse_live_reload(cls, data: object) -> LiveReloadConfig:
        """Parse live_reload configuration section."""
        if data is None:
            return LiveReloadConfig()

        if not isinstance(data, dict):
            raise ValueError("live_reload section must be a dictionary")

        enabled = data.get("enabled", True)
        if not isinstance(enabled, bool):
            raise ValueError("live_reload.enabled must be a boolean")

        watch_patterns_raw = data.get("watch_patterns")
        watch_patterns: list[str] | None = None
        if watch_patterns_raw is not None:
            if not isinstance(watch_patterns_raw, list):
                raise ValueError("live_reload.watch_patterns must be a list")
            watch_patterns = []
            for item in watch_patterns_raw:
                if not isinstance(item, str):
                    raise ValueError("live_reload.watch_patterns items must be strings")
                watch_patterns.append(item)

        return LiveReloadConfig(enabled=enabled, watch_patterns=watch_patterns)

    def with_overrides(
        self,
        *,
        host: str | None = None,
        port: int | None = None,
        root_dir: Path | None = None,
        cache_enabled: bool | None = None,
        prerender: bool | None = None,
        live_reload_enabled: bool | None = None,
    ) -> "Config":
        """Create a new Config with CLI overrides applied.

        Only non-None values override the existing config. The original
        Config is not modified.

        Args:
            host: Override server.host
            port: Override server.port
            root_dir: Override site.root_dir
            cache_enabled: Override site.cache_enabled
            prerender: Override includes.prerender
            live_reload_enabled: Override live_reload.enabled

        Returns:
            New Config instance with overrides applied
        """
        server = self.server
        if host is not None or port is not None:
            server = replace(
                self.server,
                host=host if host is not None else self.server.host,
                port=port if port is not None else self.server.port,
            )

        site = self.site
        if root_dir is not None or cache_enabled is not None:
            site = replace(
                self.site,
                root_dir=root_dir if root_dir is not None else self.site.root_dir,
                cache_enabled=(
                    cache_enabled if cache_enabled is not None else self.site.cache_enabled
                ),
            )

        includes = self.includes
        if prerender is not None:
            includes = replace(self.includes, prerender=prerender)

        live_reload = self.live_reload
        if live_reload_enabled is not None:
            live_reload = replace(self.live_reload, enabled=live_reload_enabled)

        return replace(
            self,
            server=server,
            site=site,
            includes=includes,
            live_reload=live_reload,
        )
