"""Inclusion directive scanning and single-pass substitution.

Directive syntax:
    @include('relative/or/absolute/path.html')
    @include("path.html")

The opening and closing quotes must match. The path runs to the first
matching quote followed by ")" on the same line. No escaping, no parameters.
"""

import asyncio
import logging
import re
from collections.abc import Collection
from dataclasses import dataclass

from pagewire.core.fetch import FragmentCache
from pagewire.core.types import ResourceURL
from pagewire.errors import RetrievalError

logger = logging.getLogger(__name__)

DIRECTIVE_MARKER = "@include("

DIRECTIVE_PATTERN = re.compile(r"""@include\((['"])(.+?)\1\)""")


@dataclass(frozen=True)
class Directive:
    """A directive occurrence inside a text segment."""

    text: str
    path: str
    start: int
    end: int


@dataclass(frozen=True)
class Segment:
    """A piece of resolved text.

    Literal segments carry the original text with source None. Included
    segments carry fragment content and the URL it was retrieved from;
    failed includes have source set and empty (or comment) content.
    """

    text: str
    source: ResourceURL | None = None
    directive: Directive | None = None
    failed: bool = False

    @property
    def included(self) -> bool:
        return self.directive is not None


def has_directive(text: str) -> bool:
    """Cheap marker test, a superset of what find_directives() matches."""
    return DIRECTIVE_MARKER in text


def find_directives(text: str) -> list[Directive]:
    """Scan text for directives in a single left-to-right pass."""
    return [
        Directive(text=m.group(0), path=m.group(2), start=m.start(), end=m.end())
        for m in DIRECTIVE_PATTERN.finditer(text)
    ]


def join_segments(segments: list[Segment]) -> str:
    return "".join(segment.text for segment in segments)


class DirectiveResolver:
    """Substitutes directives with the content of the resources they reference.

    One call performs one pass: directives introduced by substituted content
    are left for the caller's multi-pass driver.
    """

    def __init__(self, cache: FragmentCache, *, mark_failures: bool = False) -> None:
        """Initialize resolver.

        Args:
            cache: Fragment cache used for retrieval
            mark_failures: Substitute failed includes with an HTML comment
                           instead of empty content
        """
        self._cache = cache
        self._mark_failures = mark_failures

    @property
    def cache(self) -> FragmentCache:
        return self._cache

    async def resolve(self, text: str, *, base: str | None = None) -> str:
        """Substitute every directive in text (single pass).

        Never raises for retrieval failures. Text without directives is
        returned unchanged.

        Args:
            text: Text to resolve
            base: Resolution base for relative paths (default: document location)

        Returns:
            Substituted text
        """
        if not has_directive(text):
            return text
        return join_segments(await self.expand(text, base=base))

    async def expand(
        self,
        text: str,
        *,
        base: str | None = None,
        exclude: Collection[str] = (),
    ) -> list[Segment]:
        """Resolve text into literal and included segments (single pass).

        Distinct referenced URLs are retrieved concurrently; every occurrence
        of the same URL receives identical content. Substitution splices by
        match position, so included content is never re-scanned in this pass.

        Args:
            text: Text to resolve
            base: Resolution base for relative paths (default: document location)
            exclude: URLs that would close an include cycle; substituted like failures

        Returns:
            Segments in source order
        """
        directives = find_directives(text)
        if not directives:
            return [Segment(text=text)]

        urls: dict[str, ResourceURL | None] = {}
        for directive in directives:
            if directive.path not in urls:
                urls[directive.path] = self._resolve_url(directive.path, base)

        distinct = sorted({url for url in urls.values() if url is not None and url not in exclude})
        for url in {url for url in urls.values() if url is not None and url in exclude}:
            logger.warning(f"Include cycle detected, skipping {url}")

        results = await asyncio.gather(
            *(self._cache.retrieve(url) for url in distinct),
            return_exceptions=True,
        )
        contents: dict[ResourceURL, str | None] = {}
        for url, result in zip(distinct, results, strict=True):
            if isinstance(result, RetrievalError):
                logger.error(f"Error loading include {url}: {result}")
                contents[url] = None
            elif isinstance(result, BaseException):
                raise result
            else:
                contents[url] = result

        segments: list[Segment] = []
        position = 0
        for directive in directives:
            if directive.start > position:
                segments.append(Segment(text=text[position : directive.start]))
            url = urls[directive.path]
            content = contents.get(url) if url is not None else None
            if content is None:
                segments.append(
                    Segment(
                        text=self._failure_text(directive),
                        source=url,
                        directive=directive,
                        failed=True,
                    )
                )
            else:
                segments.append(Segment(text=content, source=url, directive=directive))
            position = directive.end
        if position < len(text):
            segments.append(Segment(text=text[position:]))
        return segments

    def _resolve_url(self, path: str, base: str | None) -> ResourceURL | None:
        try:
            return self._cache.resolve_url(path, base)
        except RetrievalError as e:
            logger.error(f"Error resolving include {path!r}: {e}")
            return None

    def _failure_text(self, directive: Directive) -> str:
        if not self._mark_failures:
            return ""
        safe_path = directive.path.replace("--", "- -")
        return f"<!-- include failed: {safe_path} -->"
