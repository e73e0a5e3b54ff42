"""Include expansion over document trees and script activation.

Walks the text leaves of a subtree, expands their directives with the
DirectiveResolver, and splices the resulting fragments into the tree.
Directives inside inserted fragments are expanded in later passes from an
explicit worklist: each pending leaf remembers the chain of fragment URLs that
produced it, which cuts include cycles, and the pass cap bounds the rest.

Scripts assigned as markup never execute on their own, so every executable
script an include inserts is recreated through the ScriptHost.
"""

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal, Protocol

from bs4 import NavigableString, Tag
from bs4.element import PageElement, PreformattedString

from pagewire.core.browser import ScriptDescriptor, ScriptHost
from pagewire.core.directives import DirectiveResolver, Segment, has_directive, join_segments
from pagewire.core.document import parse_fragment
from pagewire.core.types import ResourceURL
from pagewire.errors import ParseError

logger = logging.getLogger(__name__)

DEFAULT_MAX_PASSES = 10

BaseMode = Literal["document", "fragment"]

# Strings inside these elements are raw text, not markup
_RAW_TEXT_TAGS = frozenset({"script", "style"})

_EXECUTABLE_SCRIPT_TYPES = frozenset(
    {
        "",
        "module",
        "text/javascript",
        "application/javascript",
        "text/ecmascript",
        "application/ecmascript",
        "application/x-javascript",
        "text/x-javascript",
    }
)


class LinkBinder(Protocol):
    """Component that needs to see anchors inserted into the tree."""

    def rebind_links(self, root: Tag) -> int: ...


@dataclass
class IncludeReport:
    """Outcome of one IncludeProcessor.run() call."""

    passes: int = 0
    replacements: int = 0
    scripts_activated: int = 0
    cap_reached: bool = False

    @property
    def changed(self) -> bool:
        return self.replacements > 0 or self.scripts_activated > 0


@dataclass(frozen=True)
class _PendingLeaf:
    leaf: NavigableString
    base: str | None
    chain: frozenset[ResourceURL]


def is_executable_script(tag: Tag) -> bool:
    """Check whether a script element would run in a browser."""
    script_type = str(tag.get("type") or "").strip().lower()
    return script_type in _EXECUTABLE_SCRIPT_TYPES


def activate_scripts(
    root: Tag,
    script_host: ScriptHost,
    only: Iterable[Tag] | None = None,
) -> int:
    """Recreate executable scripts so that their payload runs.

    Each inert script element is removed from the tree and its descriptor
    (source reference or inline code, plus attributes) is handed to the
    script host, which inserts a fresh element into the execution context.

    Args:
        root: Subtree to search when only is None
        script_host: Execution context receiving the fresh scripts
        only: Restrict activation to these script elements

    Returns:
        Number of scripts activated
    """
    scripts = list(only) if only is not None else root.find_all("script")
    activated = 0
    for script in scripts:
        if script.parent is None or not is_executable_script(script):
            continue
        descriptor = ScriptDescriptor.from_tag(script)
        script.decompose()
        script_host.execute(descriptor)
        activated += 1
    return activated


def _is_text_leaf(node: PageElement) -> bool:
    if not isinstance(node, NavigableString) or isinstance(node, PreformattedString):
        return False
    parent = node.parent
    return parent is None or parent.name not in _RAW_TEXT_TAGS


def _directive_leaves(node: PageElement) -> list[NavigableString]:
    if isinstance(node, NavigableString):
        return [node] if _is_text_leaf(node) and has_directive(node) else []
    if not isinstance(node, Tag):
        return []
    return [
        leaf
        for leaf in node.descendants
        if _is_text_leaf(leaf) and has_directive(leaf)  # type: ignore[arg-type]
    ]


def _scripts_in(node: PageElement) -> list[Tag]:
    if not isinstance(node, Tag):
        return []
    found = node.find_all("script")
    return [node, *found] if node.name == "script" else list(found)


class IncludeProcessor:
    """Expands include directives across a subtree until it converges."""

    def __init__(
        self,
        resolver: DirectiveResolver,
        script_host: ScriptHost,
        *,
        max_passes: int = DEFAULT_MAX_PASSES,
        base_mode: BaseMode = "document",
        navigator: LinkBinder | None = None,
    ) -> None:
        """Initialize processor.

        Args:
            resolver: Directive resolver (one pass per call)
            script_host: Execution context for activated scripts
            max_passes: Upper bound on expansion passes
            base_mode: "document" resolves nested paths against the page
                       location, "fragment" against the including fragment
            navigator: Link binder to notify after the tree changes
        """
        self._resolver = resolver
        self._script_host = script_host
        self._max_passes = max_passes
        self._base_mode = base_mode
        self.navigator = navigator

    async def run(
        self,
        root: Tag,
        *,
        base: str | None = None,
        activate_all: bool = False,
    ) -> IncludeReport:
        """Expand every directive under root.

        A subtree without directives is left untouched unless activate_all
        is set.

        Args:
            root: Subtree to process
            base: Resolution base for top-level directives (default: document location)
            activate_all: Activate every script under root, not only included ones

        Returns:
            IncludeReport describing the work done
        """
        report = IncludeReport()
        pending = [_PendingLeaf(leaf, base, frozenset()) for leaf in _directive_leaves(root)]
        inserted_scripts: list[Tag] = []

        while pending:
            if report.passes >= self._max_passes:
                logger.warning(f"Reached max passes ({self._max_passes}), stopping")
                report.cap_reached = True
                break
            report.passes += 1
            logger.debug(f"Pass {report.passes} start: {len(pending)} pending leaves")

            expansions = await asyncio.gather(
                *(
                    self._resolver.expand(str(item.leaf), base=item.base, exclude=item.chain)
                    for item in pending
                )
            )

            next_pending: list[_PendingLeaf] = []
            replaced = 0
            for item, segments in zip(pending, expansions, strict=True):
                if item.leaf.parent is None:
                    continue
                if join_segments(segments) == str(item.leaf):
                    continue
                try:
                    nodes, nested, scripts = self._build_nodes(segments, item)
                except ParseError as e:
                    logger.error(f"Failure processing text node: {e}")
                    continue
                next_pending.extend(nested)
                inserted_scripts.extend(scripts)
                if nodes:
                    item.leaf.replace_with(*nodes)
                else:
                    item.leaf.extract()
                replaced += 1

            report.replacements += replaced
            logger.debug(f"Pass {report.passes} done: replaced={replaced}")
            pending = next_pending

        if activate_all:
            report.scripts_activated = activate_scripts(root, self._script_host)
        else:
            report.scripts_activated = activate_scripts(
                root, self._script_host, only=inserted_scripts
            )

        if self.navigator is not None and report.changed:
            self.navigator.rebind_links(root)

        return report

    def _build_nodes(
        self,
        segments: list[Segment],
        item: _PendingLeaf,
    ) -> tuple[list[PageElement], list[_PendingLeaf], list[Tag]]:
        """Turn resolved segments into nodes.

        Returns:
            (nodes to splice, leaves with nested directives, inserted scripts)
        """
        nodes: list[PageElement] = []
        nested: list[_PendingLeaf] = []
        scripts: list[Tag] = []
        for segment in segments:
            if not segment.included:
                nodes.append(NavigableString(segment.text))
                continue
            if not segment.text:
                continue

            fragment = parse_fragment(segment.text)
            chain = item.chain
            child_base = item.base
            if segment.source is not None:
                chain = chain | {segment.source}
                if self._base_mode == "fragment":
                    child_base = segment.source
            for node in fragment:
                nested.extend(
                    _PendingLeaf(leaf, child_base, chain) for leaf in _directive_leaves(node)
                )
                scripts.extend(_scripts_in(node))
            nodes.extend(fragment)
        return nodes, nested, scripts
