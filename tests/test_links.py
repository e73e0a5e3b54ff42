"""Tests for link click classification."""

import pytest

from pagewire.core.links import LinkClick, should_intercept

CURRENT = "https://site.test/docs/"


class TestShouldIntercept:
    """Tests for should_intercept()."""

    @pytest.mark.parametrize("href", ["/about", "page", "https://site.test/x", "../up?q=1"])
    def test__plain_same_origin_click__intercepted(self, href: str) -> None:
        """Plain primary clicks on same-origin links are handled in place."""
        assert should_intercept(LinkClick(href=href), CURRENT)

    @pytest.mark.parametrize(
        "click",
        [
            LinkClick(href="/about", button=1),
            LinkClick(href="/about", modifiers=frozenset({"meta"})),
            LinkClick(href="/about", modifiers=frozenset({"shift"})),
            LinkClick(href="/about", target="_blank"),
            LinkClick(href="/about", download=True),
            LinkClick(href="/about", default_prevented=True),
        ],
    )
    def test__new_tab_or_handled_click__not_intercepted(self, click: LinkClick) -> None:
        """Clicks that would not replace this page are left alone."""
        assert not should_intercept(click, CURRENT)

    @pytest.mark.parametrize(
        "href",
        [
            None,
            "",
            "#section",
            "mailto:a@site.test",
            "TEL:123",
            "javascript:void(0)",
            "https://other.test/",
            "http://site.test/docs/",
        ],
    )
    def test__non_navigable_href__not_intercepted(self, href: str | None) -> None:
        """Anchors, special schemes and other origins are left to the browser."""
        assert not should_intercept(LinkClick(href=href), CURRENT)

    def test__self_target__intercepted(self) -> None:
        """An explicit _self target is a normal click."""
        assert should_intercept(LinkClick(href="/about", target="_self"), CURRENT)
