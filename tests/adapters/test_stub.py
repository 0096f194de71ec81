"""Tests for the lightweight adapters."""

from __future__ import annotations

from pathlib import Path

from memoize.adapters import MinimalTemplateRenderer, NullMetadataProvider, PlainMarkdownRenderer, StaticMetadataProvider
from memoize.models import GitInfo, PageContext, RenderedPage, ResolvedLink


def test_plain_renderer_handles_headings_and_links() -> None:
    links = {"b.md": ResolvedLink(target="b.md", href="b.html", broken=True)}

    page = PlainMarkdownRenderer().render("# Title\nsee [b](b.md) & more\n", links)

    assert page.title == "Title"
    assert '<h1 id="title">Title</h1>' in page.html
    assert '<a href="b.html" class="broken-link">b</a> &amp; more' in page.html


def test_metadata_stubs(tmp_path: Path) -> None:
    info = GitInfo(commit="abc", date="2024-01-01", author_name="A", author_email="a@example.com")

    assert NullMetadataProvider().lookup(tmp_path / "a.md") is None
    assert StaticMetadataProvider(info).lookup(tmp_path / "a.md") is info


def test_minimal_template_uses_path_when_untitled() -> None:
    document = MinimalTemplateRenderer().apply(
        RenderedPage(html="<p>x</p>"), PageContext(rel_path="dir/a.md", output_rel_path="dir/a.html")
    )

    assert "<title>dir/a.md</title>" in document
    assert "<footer>" not in document
