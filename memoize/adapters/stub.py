"""Lightweight adapter implementations for tests and metadata-free builds."""

from __future__ import annotations

import html
import re
from pathlib import Path
from typing import Mapping, Optional

from ..models import GitInfo, PageContext, RenderedPage, ResolvedLink, TocEntry

_LINK_PATTERN = re.compile(r"\[([^\]]*)\]\(([^)\s]+)\)")
_HEADING_PATTERN = re.compile(r"^(#{1,6})\s+(.*?)\s*#*\s*$")


class PlainMarkdownRenderer:
    """Escapes text, turns ``[text](target)`` into anchors and ``#`` lines into headings."""

    def render(self, content: str, links: Mapping[str, ResolvedLink]) -> RenderedPage:
        lines = []
        toc = []
        for raw in content.splitlines():
            heading = _HEADING_PATTERN.match(raw)
            if heading:
                level = len(heading.group(1))
                title = heading.group(2)
                anchor = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")
                toc.append(TocEntry(level=level, id=anchor, title=title))
                lines.append(f'<h{level} id="{anchor}">{html.escape(title)}</h{level}>')
                continue
            lines.append(_LINK_PATTERN.sub(lambda match: _anchor(match, links), html.escape(raw, quote=False)))
        title = toc[0].title if toc and toc[0].level == 1 else None
        return RenderedPage(html="\n".join(lines), title=title, toc=tuple(toc))


def _anchor(match: "re.Match[str]", links: Mapping[str, ResolvedLink]) -> str:
    text, target = match.group(1), html.unescape(match.group(2))
    link = links.get(target)
    href = link.href if link is not None else target
    css = ' class="broken-link"' if link is not None and link.broken else ""
    return f'<a href="{html.escape(href)}"{css}>{text}</a>'


class NullMetadataProvider:
    """Always reports metadata as unavailable."""

    def lookup(self, source_path: Path) -> Optional[GitInfo]:
        return None


class StaticMetadataProvider:
    """Returns the same commit details for every file."""

    def __init__(self, info: GitInfo) -> None:
        self.info = info

    def lookup(self, source_path: Path) -> Optional[GitInfo]:
        return self.info


class MinimalTemplateRenderer:
    """Bare HTML shell around the fragment."""

    def apply(self, page: RenderedPage, context: PageContext) -> str:
        title = html.escape(page.title or context.rel_path)
        footer = ""
        if context.git is not None:
            footer = f"\n<footer>{html.escape(context.git.commit)}</footer>"
        return f"<!DOCTYPE html>\n<html><head><title>{title}</title></head><body>\n{page.html}{footer}\n</body></html>\n"


__all__ = [
    "MinimalTemplateRenderer",
    "NullMetadataProvider",
    "PlainMarkdownRenderer",
    "StaticMetadataProvider",
]
