"""Error taxonomy for include resolution and navigation."""


class PagewireError(Exception):
    """Base class for pagewire errors."""


class RetrievalError(PagewireError):
    """A resource could not be retrieved (non-success status or transport failure)."""

    def __init__(self, url: str, *, status: int | None = None, reason: str | None = None) -> None:
        self.url = url
        self.status = status
        self.reason = reason
        detail = f"status {status}" if status is not None else (reason or "transport failure")
        super().__init__(f"Fetch {url} failed: {detail}")


class ParseError(PagewireError):
    """Markup could not be parsed into a document or fragment."""


class NoContentRegionError(PagewireError):
    """No swappable content region was found on one side of a navigation."""

    def __init__(self, url: str, side: str) -> None:
        self.url = url
        self.side = side
        super().__init__(f"No content region in {side} document ({url})")
