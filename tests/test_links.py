"""Tests for Markdown link extraction and resolution."""

from __future__ import annotations

import pytest

from memoize.links import extract_link_targets, fallback_href, resolve_target, split_target


def test_extract_link_targets_in_document_order() -> None:
    markdown = "\n".join(
        [
            "See [first](a.md) and ![diagram](img/pic.png \"Diagram\").",
            "Also [by reference][ref].",
            "",
            "```",
            "[not a link](code.md)",
            "```",
            "",
            "Inline `[span](span.md)` stays literal, but [after](c.md#part) counts.",
            "",
            "[ref]: notes/b%20c.md",
            "[unused]: unused.md",
        ]
    )

    assert extract_link_targets(markdown) == ["a.md", "img/pic.png", "notes/b%20c.md", "c.md#part"]


def test_extract_skips_indented_code_blocks() -> None:
    markdown = "Example:\n\n    [x](missing.md)\n\n[real](real.md)\n"

    assert extract_link_targets(markdown) == ["real.md"]


def test_extract_keeps_balanced_parentheses_and_angle_targets() -> None:
    markdown = '[x](gone(1).md) and [y](<with space.md> "t")\n'

    assert extract_link_targets(markdown) == ["gone(1).md", "with space.md"]


def test_extract_handles_tilde_fences_and_nested_markers() -> None:
    markdown = "~~~~\n```\n[hidden](x.md)\n~~~~\n[shown](y.md)\n"

    assert extract_link_targets(markdown) == ["y.md"]


def test_split_target() -> None:
    assert split_target("a.md") == ("a.md", "")
    assert split_target("a.md#sec") == ("a.md", "#sec")
    assert split_target("a.md?x=1#sec") == ("a.md", "?x=1#sec")


def test_resolve_sibling_page() -> None:
    outputs = {"a/b.md": "a/b.html", "a/c.md": "a/c.html"}

    resolved = resolve_target("a/b.md", "c.md", outputs)

    assert resolved is not None
    target, link = resolved
    assert target == "a/c.md"
    assert link.href == "c.html"
    assert not link.broken


def test_resolve_parent_page_from_subdirectory() -> None:
    outputs = {"x.md": "x.html", "dir/y.md": "dir/y.html"}

    resolved = resolve_target("dir/y.md", "../x.md", outputs)

    assert resolved is not None
    assert resolved[1].href == "../x.html"


def test_resolve_keeps_fragment_and_encoding() -> None:
    outputs = {"my note.md": "my note.html", "index.md": "index.html"}

    resolved = resolve_target("index.md", "my%20note.md#intro", outputs)

    assert resolved is not None
    assert resolved[0] == "my note.md"
    assert resolved[1].href == "my%20note.html#intro"


def test_resolve_missing_target_is_broken_with_fallback_href() -> None:
    resolved = resolve_target("dir/y.md", "z.md", {"dir/y.md": "dir/y.html"})

    assert resolved is not None
    target, link = resolved
    assert target == "dir/z.md"
    assert link.broken
    assert link.href == "z.html"


@pytest.mark.parametrize(
    "target",
    ["https://example.com/page.md", "mailto:me@example.com", "#heading", "/abs/page.md", "img.png", "../../outside.md"],
)
def test_resolve_passes_through(target: str) -> None:
    assert resolve_target("a/b.md", target, {"a/b.md": "a/b.html"}) is None


def test_fallback_href() -> None:
    assert fallback_href("other.md#x") == "other.html#x"
    assert fallback_href("https://example.com/x.md") == "https://example.com/x.md"
    assert fallback_href("photo.png") == "photo.png"
