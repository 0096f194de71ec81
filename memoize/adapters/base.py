"""Capability contracts for the rendering collaborators."""

from __future__ import annotations

from pathlib import Path
from typing import Mapping, Optional, Protocol

from ..models import GitInfo, PageContext, RenderedPage, ResolvedLink


class MarkdownRenderer(Protocol):
    """Turns Markdown text into an HTML fragment."""

    def render(self, content: str, links: Mapping[str, ResolvedLink]) -> RenderedPage:
        """Render ``content``, substituting resolved link targets; raises RenderError."""


class MetadataProvider(Protocol):
    """Looks up version-control history for a source file."""

    def lookup(self, source_path: Path) -> Optional[GitInfo]:
        """Return last-commit details, or None when unavailable."""


class TemplateRenderer(Protocol):
    """Wraps a rendered fragment into a complete HTML document."""

    def apply(self, page: RenderedPage, context: PageContext) -> str:
        """Return the final document; raises RenderError."""
