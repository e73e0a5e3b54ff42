"""HTML document model over BeautifulSoup trees."""

from bs4 import BeautifulSoup, ParserRejectedMarkup, Tag
from bs4.element import PageElement

from pagewire.errors import ParseError

PARSER = "html.parser"

DEFAULT_CONTENT_SELECTORS: tuple[str, ...] = (
    "main",
    '[role="main"]',
    "#spa-content",
    "#content",
    "#page-content",
)

# The structural content-region fallback only considers top-level divs
_FALLBACK_TAG = "div"
_NON_CONTENT_ROLES = frozenset({"navigation", "banner", "contentinfo"})


def parse_fragment(markup: str) -> list[PageElement]:
    """Parse a markup fragment into detached nodes.

    Raises:
        ParseError: If the parser rejects the markup
    """
    try:
        soup = BeautifulSoup(markup, PARSER)
    except ParserRejectedMarkup as e:
        raise ParseError(f"Malformed fragment: {e}") from e
    return [node.extract() for node in list(soup.contents)]


class Document:
    """A parsed HTML page and the URL it was loaded from."""

    def __init__(self, soup: BeautifulSoup, url: str) -> None:
        self.soup = soup
        self.url = url

    @classmethod
    def parse(cls, markup: str, url: str) -> "Document":
        """Parse page markup.

        Raises:
            ParseError: If the parser rejects the markup
        """
        try:
            soup = BeautifulSoup(markup, PARSER)
        except ParserRejectedMarkup as e:
            raise ParseError(f"Malformed document {url}: {e}") from e
        return cls(soup, url)

    @classmethod
    def empty(cls, url: str) -> "Document":
        """Create an empty page, as shown after a failed load."""
        return cls.parse("<html><head><title></title></head><body></body></html>", url)

    @property
    def body(self) -> Tag:
        """The body element, or the whole tree when the markup has none."""
        if self.soup.body is not None:
            return self.soup.body
        if self.soup.html is not None:
            return self.soup.html
        return self.soup

    @property
    def head(self) -> Tag:
        """The head element, created on demand."""
        head = self.soup.head
        if head is None:
            head = self.soup.new_tag("head")
            html = self.soup.html
            if html is not None:
                html.insert(0, head)
            else:
                self.soup.insert(0, head)
        return head

    @property
    def title(self) -> str:
        title = self.soup.title
        if title is None:
            return ""
        return title.get_text()

    @title.setter
    def title(self, value: str) -> None:
        title = self.soup.title
        if title is None:
            title = self.soup.new_tag("title")
            self.head.append(title)
        title.string = value

    @property
    def body_classes(self) -> list[str]:
        return get_classes(self.body)

    @body_classes.setter
    def body_classes(self, classes: list[str]) -> None:
        set_classes(self.body, classes)

    def find_content_region(self, selectors: tuple[str, ...] | list[str]) -> Tag | None:
        """Locate the swappable content region.

        Tries each selector in priority order, then falls back to the first
        top-level body div that is not marked as a navigation or banner region.

        Args:
            selectors: CSS selectors in priority order

        Returns:
            Content region element, or None if nothing qualifies
        """
        for selector in selectors:
            found = self.soup.select_one(selector)
            if found is not None:
                return found

        for child in self.body.find_all(_FALLBACK_TAG, recursive=False):
            if child.get("role") in _NON_CONTENT_ROLES:
                continue
            return child
        return None

    def serialize(self) -> str:
        return str(self.soup)


def get_classes(tag: Tag) -> list[str]:
    """Return an element's class list."""
    value = tag.get("class")
    if value is None:
        return []
    if isinstance(value, str):
        return value.split()
    return list(value)


def set_classes(tag: Tag, classes: list[str]) -> None:
    """Replace an element's class list; an empty list removes the attribute."""
    if classes:
        tag["class"] = list(classes)
    elif "class" in tag.attrs:
        del tag["class"]
