"""Core data models shared across memoize components."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import FrozenSet, List, Mapping, Optional, Tuple, Union


class EntryKind(enum.Enum):
    PAGE = "page"
    ASSET = "asset"
    EXCLUDED = "excluded"


@dataclass(frozen=True)
class SourceEntry:
    """A file discovered under the source root."""

    path: Path
    kind: EntryKind
    rel_path: str


@dataclass(frozen=True)
class ScanError:
    """Non-fatal problem encountered while reading one entry."""

    rel_path: str
    message: str


@dataclass(frozen=True)
class LinkWarning:
    """A relative Markdown link whose target is not part of the site."""

    rel_path: str
    target: str
    message: str


@dataclass(frozen=True)
class JobFailure:
    """A build job that raised instead of producing output."""

    rel_path: str
    message: str


@dataclass(frozen=True)
class TocEntry:
    """One heading in a page's table of contents."""

    level: int
    id: str
    title: str


@dataclass(frozen=True)
class GitInfo:
    """Last-commit details for a source file."""

    commit: str
    date: str
    author_name: str
    author_email: str
    web_url: Optional[str] = None


@dataclass(frozen=True)
class ResolvedLink:
    """A link target as written in Markdown and the href it renders to."""

    target: str
    href: str
    broken: bool = False


@dataclass(frozen=True)
class RenderedPage:
    """HTML fragment produced by a Markdown renderer."""

    html: str
    title: Optional[str] = None
    toc: Tuple[TocEntry, ...] = ()


@dataclass(frozen=True)
class PageContext:
    """Everything a template needs besides the rendered body."""

    rel_path: str
    output_rel_path: str
    git: Optional[GitInfo] = None


@dataclass(frozen=True)
class Page:
    """A Markdown note with its output location and resolved outbound links.

    ``content`` holds the bytes links were resolved from; None when the file
    could not be read.
    """

    entry: SourceEntry
    output_rel_path: str
    content: Optional[bytes] = b""
    links: Mapping[str, ResolvedLink] = field(default_factory=dict)

    @property
    def rel_path(self) -> str:
        return self.entry.rel_path


@dataclass(frozen=True)
class Asset:
    """An opaque file copied verbatim into the output tree."""

    entry: SourceEntry
    output_rel_path: str

    @property
    def rel_path(self) -> str:
        return self.entry.rel_path


@dataclass(frozen=True)
class SiteGraph:
    """Build-scoped, read-only map from source paths to pages, assets and links.

    Constructed single-threaded by ``SiteGraphBuilder`` and shared by every
    render worker of one build pass; none of its mappings can be mutated.
    """

    source_root: Path
    pages: Mapping[str, Page]
    assets: Mapping[str, Asset]
    outputs: Mapping[str, str]
    backlinks: Mapping[str, FrozenSet[str]]
    warnings: Tuple[LinkWarning, ...] = ()
    errors: Tuple[ScanError, ...] = ()

    def __post_init__(self) -> None:
        for name in ("pages", "assets", "outputs", "backlinks"):
            value = getattr(self, name)
            if not isinstance(value, MappingProxyType):
                object.__setattr__(self, name, MappingProxyType(dict(value)))


@dataclass(frozen=True)
class RenderPage:
    page: Page

    @property
    def rel_path(self) -> str:
        return self.page.rel_path

    @property
    def output_rel_path(self) -> str:
        return self.page.output_rel_path


@dataclass(frozen=True)
class CopyAsset:
    asset: Asset

    @property
    def rel_path(self) -> str:
        return self.asset.rel_path

    @property
    def output_rel_path(self) -> str:
        return self.asset.output_rel_path


BuildJob = Union[RenderPage, CopyAsset]


class WatchEventKind(enum.Enum):
    CREATED = "created"
    MODIFIED = "modified"
    REMOVED = "removed"


@dataclass(frozen=True)
class WatchEvent:
    """Filesystem change notification consumed by the debounce stage."""

    path: Path
    kind: WatchEventKind
    is_directory: bool = False


@dataclass(frozen=True)
class AffectedSet:
    """Source paths a batch of watch events requires rebuilding."""

    full: bool = True
    paths: FrozenSet[str] = frozenset()
    removed: FrozenSet[str] = frozenset()


@dataclass
class BuildReport:
    """Aggregated outcome of one build pass."""

    pages_rendered: List[str] = field(default_factory=list)
    assets_copied: List[str] = field(default_factory=list)
    failures: List[JobFailure] = field(default_factory=list)
    warnings: List[LinkWarning] = field(default_factory=list)
    scan_errors: List[ScanError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def failed_paths(self) -> List[str]:
        return [failure.rel_path for failure in self.failures]
