"""Classification of link activations for in-site navigation."""

from dataclasses import dataclass, field

from pagewire.core.urls import NON_NAVIGABLE_SCHEMES, same_origin

MODIFIER_KEYS = frozenset({"alt", "ctrl", "meta", "shift"})


@dataclass(frozen=True)
class LinkClick:
    """A click on a link-like element."""

    href: str | None
    target: str | None = None
    button: int = 0
    modifiers: frozenset[str] = field(default_factory=frozenset)
    download: bool = False
    default_prevented: bool = False


def should_intercept(click: LinkClick, current_href: str) -> bool:
    """Decide whether a click is a same-origin navigation to handle in-page.

    New-tab or modified clicks, downloads, in-page anchors, non-navigable
    schemes and cross-origin targets are left to the browser.
    """
    if click.default_prevented or click.button != 0:
        return False
    if click.modifiers & MODIFIER_KEYS:
        return False
    if click.target not in (None, "", "_self"):
        return False
    if click.download:
        return False

    href = (click.href or "").strip()
    if not href or href.startswith("#"):
        return False
    if href.lower().startswith(NON_NAVIGABLE_SCHEMES):
        return False
    return same_origin(href, current_href)
