"""Path rules shared by the scanner, the watcher and the preview server."""

from __future__ import annotations

import posixpath
import re
from pathlib import Path, PurePosixPath
from typing import Optional

PAGE_SUFFIX = ".md"
HTML_SUFFIX = ".html"
_DRIVE_PATTERN = re.compile(r"^[A-Za-z]:")


def is_excluded_name(name: str) -> bool:
    """Hidden (``.``) and special (``_``) names are never published."""
    return (name.startswith(".") and name not in {".", ".."}) or name.startswith("_")


def is_excluded(rel_path: str) -> bool:
    """Return True when any component of ``rel_path`` is excluded."""
    return any(is_excluded_name(part) for part in rel_path.split("/") if part)


def is_page_name(name: str) -> bool:
    return name.endswith(PAGE_SUFFIX) and len(name) > len(PAGE_SUFFIX)


def output_path_for(rel_path: str) -> str:
    """Map a source path to its output path; pages swap ``.md`` for ``.html``."""
    if is_page_name(posixpath.basename(rel_path)):
        return rel_path[: -len(PAGE_SUFFIX)] + HTML_SUFFIX
    return rel_path


def relative_to_root(root: Path, path: Path) -> Optional[str]:
    """Return ``path`` as a POSIX path relative to ``root``, or None if outside it."""
    try:
        rel = path.relative_to(root)
    except ValueError:
        return None
    rel_str = rel.as_posix()
    return "" if rel_str == "." else rel_str


def sanitize_request_path(path: str) -> Optional[str]:
    """Validate a URL path so it can be joined under a base directory.

    Leading slashes and ``.`` segments are dropped. ``..``, a leading drive
    prefix such as ``C:`` and excluded components are rejected by returning
    None.
    """
    parts = []
    for part in PurePosixPath(path.replace("\\", "/")).parts:
        if part in {"/", "."}:
            continue
        if part == ".." or (not parts and _DRIVE_PATTERN.match(part)):
            return None
        if is_excluded_name(part):
            return None
        parts.append(part)
    return "/".join(parts)


__all__ = [
    "HTML_SUFFIX",
    "PAGE_SUFFIX",
    "is_excluded",
    "is_excluded_name",
    "is_page_name",
    "output_path_for",
    "relative_to_root",
    "sanitize_request_path",
]
