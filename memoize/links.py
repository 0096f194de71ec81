"""Markdown link extraction and relative link resolution."""

from __future__ import annotations

import posixpath
import re
import xml.etree.ElementTree as etree
from typing import Any, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import quote, unquote

import markdown
from markdown.extensions import Extension
from markdown.treeprocessors import Treeprocessor

from .models import ResolvedLink
from .paths import HTML_SUFFIX, PAGE_SUFFIX

MARKDOWN_EXTENSIONS: Sequence[str] = ("extra", "sane_lists", "smarty")

# After the inline processor (priority 20) has turned link syntax into elements.
LINK_TREEPROCESSOR_PRIORITY = 15

_SCHEME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*:")


class _TargetCollector(Treeprocessor):
    def __init__(self, md: markdown.Markdown, targets: List[str]) -> None:
        super().__init__(md)
        self.targets = targets

    def run(self, root: etree.Element) -> None:
        for element in root.iter():
            if element.tag == "a":
                value = element.get("href")
            elif element.tag == "img":
                value = element.get("src")
            else:
                continue
            if value:
                self.targets.append(value)


class _CollectTargetsExtension(Extension):
    def __init__(self, targets: List[str], **kwargs: Any) -> None:
        self.targets = targets
        super().__init__(**kwargs)

    def extendMarkdown(self, md: markdown.Markdown) -> None:
        md.treeprocessors.register(
            _TargetCollector(md, self.targets), "memoize_targets", LINK_TREEPROCESSOR_PRIORITY
        )


def extract_link_targets(
    content: str, extensions: Sequence[str] = MARKDOWN_EXTENSIONS
) -> List[str]:
    """Return link and image targets in document order.

    The text is parsed by Python-Markdown with the same extensions the
    renderer uses, so code blocks, code spans and unused reference
    definitions contribute nothing and every target matches an ``href`` or
    ``src`` the renderer will see.
    """
    targets: List[str] = []
    md = markdown.Markdown(extensions=[*extensions, _CollectTargetsExtension(targets)])
    md.convert(content)
    return targets


def is_relative_target(target: str) -> bool:
    """True for targets that name a path relative to the current page."""
    if not target or target.startswith(("#", "/", "\\")):
        return False
    return not _SCHEME_PATTERN.match(target)


def split_target(target: str) -> Tuple[str, str]:
    """Split ``target`` into its path and its ``?query#fragment`` suffix."""
    cut = len(target)
    for marker in ("?", "#"):
        index = target.find(marker)
        if index != -1:
            cut = min(cut, index)
    return target[:cut], target[cut:]


def resolve_target(
    page_rel_path: str,
    target: str,
    outputs: Mapping[str, str],
) -> Optional[Tuple[str, ResolvedLink]]:
    """Resolve a Markdown link found in ``page_rel_path``.

    Returns None for targets that are passed through untouched: absolute URLs,
    anchors, non-Markdown paths and paths escaping the source root. Otherwise
    returns the target's source path together with the rewritten link, which
    is marked broken when the target is not part of the site.
    """
    if not is_relative_target(target):
        return None
    path_part, suffix = split_target(target)
    if not path_part.endswith(PAGE_SUFFIX):
        return None

    decoded = unquote(path_part)
    page_dir = posixpath.dirname(page_rel_path)
    joined = posixpath.normpath(posixpath.join(page_dir, decoded))
    if joined == ".." or joined.startswith("../"):
        return None

    output = outputs.get(joined)
    if output is not None and output.endswith(HTML_SUFFIX):
        href = posixpath.relpath(output, page_dir or ".")
        if decoded != path_part:
            href = quote(href, safe="/")
        return joined, ResolvedLink(target=target, href=href + suffix)

    return joined, ResolvedLink(target=target, href=fallback_href(target), broken=True)


def fallback_href(target: str) -> str:
    """Rewrite a relative ``.md`` link to ``.html`` without consulting the graph."""
    if not is_relative_target(target):
        return target
    path_part, suffix = split_target(target)
    if path_part.endswith(PAGE_SUFFIX):
        return path_part[: -len(PAGE_SUFFIX)] + HTML_SUFFIX + suffix
    return target


__all__ = [
    "LINK_TREEPROCESSOR_PRIORITY",
    "MARKDOWN_EXTENSIONS",
    "extract_link_targets",
    "fallback_href",
    "is_relative_target",
    "resolve_target",
    "split_target",
]
