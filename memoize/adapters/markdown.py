"""Python-Markdown based renderer with link rewriting and heading anchors."""

from __future__ import annotations

import html
import xml.etree.ElementTree as etree
from typing import Any, Dict, Iterable, List, Mapping, Sequence

import markdown
from markdown.extensions import Extension
from markdown.extensions.toc import TocExtension
from markdown.treeprocessors import Treeprocessor

from ..errors import RenderError
from ..links import LINK_TREEPROCESSOR_PRIORITY, MARKDOWN_EXTENSIONS
from ..models import RenderedPage, ResolvedLink, TocEntry

BROKEN_LINK_CLASS = "broken-link"


def slugify(value: str, separator: str = "-") -> str:
    """Lowercase alphanumerics; collapse every other run of characters to one separator."""
    chars: List[str] = []
    last_is_separator = False
    for char in value:
        if char.isalnum():
            chars.append(char.lower())
            last_is_separator = False
        elif not last_is_separator:
            chars.append(separator)
            last_is_separator = True
    return "".join(chars).strip(separator)


class _LinkRewriter(Treeprocessor):
    """Points anchors at the output pages resolved in the site graph.

    Anchors without an entry in ``links`` (URLs, fragments, non-Markdown files
    and paths outside the source tree) keep their href unchanged.
    """

    def __init__(self, md: markdown.Markdown, links: Mapping[str, ResolvedLink]) -> None:
        super().__init__(md)
        self.links = links

    def run(self, root: etree.Element) -> None:
        for element in root.iter("a"):
            link = self.links.get(element.get("href", ""))
            if link is None:
                continue
            element.set("href", link.href)
            if link.broken:
                classes = element.get("class")
                element.set("class", f"{classes} {BROKEN_LINK_CLASS}" if classes else BROKEN_LINK_CLASS)


class _LinkRewriteExtension(Extension):
    def __init__(self, links: Mapping[str, ResolvedLink], **kwargs: Any) -> None:
        self.links = links
        super().__init__(**kwargs)

    def extendMarkdown(self, md: markdown.Markdown) -> None:
        md.treeprocessors.register(
            _LinkRewriter(md, self.links), "memoize_links", LINK_TREEPROCESSOR_PRIORITY
        )


class PythonMarkdownRenderer:
    """Renders notes with Python-Markdown.

    A fresh ``Markdown`` instance is created per call because instances keep
    per-document state and are not safe to share between worker threads.
    """

    DEFAULT_EXTENSIONS: Sequence[str] = MARKDOWN_EXTENSIONS

    def __init__(self, extensions: Iterable[str] | None = None) -> None:
        self.extensions = list(extensions) if extensions is not None else list(self.DEFAULT_EXTENSIONS)

    def render(self, content: str, links: Mapping[str, ResolvedLink]) -> RenderedPage:
        md = markdown.Markdown(
            extensions=[
                *self.extensions,
                TocExtension(slugify=slugify),
                _LinkRewriteExtension(links),
            ],
            output_format="html",
        )
        try:
            body = md.convert(content)
        except Exception as exc:
            raise RenderError(f"Markdown conversion failed: {exc}") from exc

        toc = tuple(_flatten_toc(getattr(md, "toc_tokens", [])))
        title = toc[0].title if toc and toc[0].level == 1 else None
        return RenderedPage(html=body, title=title, toc=toc)


def _flatten_toc(tokens: Sequence[Dict[str, Any]]) -> Iterable[TocEntry]:
    for token in tokens:
        yield TocEntry(
            level=int(token["level"]),
            id=str(token["id"]),
            title=html.unescape(str(token["name"])),
        )
        yield from _flatten_toc(token.get("children", []))


__all__ = ["BROKEN_LINK_CLASS", "PythonMarkdownRenderer", "slugify"]
