"""Swappable rendering, templating and metadata collaborators."""

from .base import MarkdownRenderer, MetadataProvider, TemplateRenderer
from .markdown import PythonMarkdownRenderer, slugify
from .stub import (
    MinimalTemplateRenderer,
    NullMetadataProvider,
    PlainMarkdownRenderer,
    StaticMetadataProvider,
)
from .templating import JinjaTemplateRenderer

__all__ = [
    "JinjaTemplateRenderer",
    "MarkdownRenderer",
    "MetadataProvider",
    "MinimalTemplateRenderer",
    "NullMetadataProvider",
    "PlainMarkdownRenderer",
    "PythonMarkdownRenderer",
    "StaticMetadataProvider",
    "TemplateRenderer",
    "slugify",
]
