"""URL normalization and clean-URL mapping."""

from urllib.parse import urldefrag, urljoin, urlsplit, urlunsplit

from pagewire.core.types import ResourceURL

_DEFAULT_PORTS = {"http": 80, "https": 443}

NON_NAVIGABLE_SCHEMES = ("mailto:", "tel:", "javascript:")


def normalize_url(url: str) -> ResourceURL:
    """Normalize an absolute URL into a cache key.

    Lowercases scheme and host, drops default ports and the fragment,
    and turns an empty path into "/".

    Args:
        url: Absolute URL

    Returns:
        Normalized ResourceURL
    """
    parts = urlsplit(urldefrag(url)[0])
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    netloc = host
    if parts.port is not None and _DEFAULT_PORTS.get(scheme) != parts.port:
        netloc = f"{host}:{parts.port}"
    if parts.username:
        userinfo = parts.username
        if parts.password:
            userinfo = f"{userinfo}:{parts.password}"
        netloc = f"{userinfo}@{netloc}"
    path = parts.path or "/"
    return ResourceURL(urlunsplit((scheme, netloc, path, parts.query, "")))


def resolve_url(path: str, base: str) -> ResourceURL:
    """Resolve a relative or absolute reference against a base URL."""
    return normalize_url(urljoin(base, path))


def origin_of(url: str) -> tuple[str, str, int | None]:
    """Return the (scheme, host, port) origin tuple with default ports filled in."""
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    port = parts.port if parts.port is not None else _DEFAULT_PORTS.get(scheme)
    return scheme, (parts.hostname or "").lower(), port


def same_origin(url: str, base: str) -> bool:
    """Check whether url, resolved against base, shares base's origin.

    Unparsable input is never same-origin.
    """
    try:
        target = urljoin(base, url)
        return origin_of(target) == origin_of(base)
    except ValueError:
        return False


def page_file(url_path: str) -> str:
    """Map a clean URL path to the HTML file that serves it.

    Examples:
        "/" -> "index.html"
        "/about" -> "about.html"
        "/guide/" -> "guide/index.html"
        "/nav.html" -> "nav.html"
    """
    path = urlsplit(url_path).path
    if path in ("", "/"):
        return "index.html"
    if path.endswith("/"):
        return f"{path.strip('/')}/index.html"
    path = path.lstrip("/")
    if "." in path.rsplit("/", 1)[-1]:
        return path
    return f"{path}.html"
