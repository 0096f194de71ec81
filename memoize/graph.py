"""Two-phase construction of the site graph."""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, List, Optional, Set

from .links import extract_link_targets, resolve_target
from .logging import get_logger
from .models import (
    Asset,
    EntryKind,
    LinkWarning,
    Page,
    ResolvedLink,
    ScanError,
    SiteGraph,
)
from .paths import output_path_for
from .scanner import ScanResult


class SiteGraphBuilder:
    """Builds a frozen ``SiteGraph`` from a scan result.

    Phase 1 assigns an output path to every entry. Only once every entry has
    one does phase 2 read page contents and resolve links, so a page can link
    to any other page regardless of scan order.
    """

    def __init__(self) -> None:
        self.logger = get_logger("graph")

    def build(self, scan: ScanResult) -> SiteGraph:
        outputs = self.collect_paths(scan)

        pages: Dict[str, Page] = {}
        assets: Dict[str, Asset] = {}
        backlinks: Dict[str, Set[str]] = defaultdict(set)
        warnings: List[LinkWarning] = []
        errors: List[ScanError] = list(scan.errors)

        for entry in scan.entries:
            output_rel_path = outputs[entry.rel_path]
            if entry.kind is EntryKind.ASSET:
                assets[entry.rel_path] = Asset(entry=entry, output_rel_path=output_rel_path)
                continue

            content: Optional[bytes]
            try:
                content = entry.path.read_bytes()
            except OSError as exc:
                errors.append(ScanError(rel_path=entry.rel_path, message=exc.strerror or str(exc)))
                content = None

            links: Dict[str, ResolvedLink] = {}
            text = content.decode("utf-8", errors="replace") if content is not None else ""
            for target in extract_link_targets(text):
                if target in links:
                    continue
                resolved = resolve_target(entry.rel_path, target, outputs)
                if resolved is None:
                    continue
                target_path, link = resolved
                links[target] = link
                backlinks[target_path].add(entry.rel_path)
                if link.broken:
                    warning = LinkWarning(
                        rel_path=entry.rel_path,
                        target=target,
                        message=f"link target not found: {target_path}",
                    )
                    warnings.append(warning)
                    self.logger.warning("%s: broken link %s", entry.rel_path, target)

            pages[entry.rel_path] = Page(
                entry=entry,
                output_rel_path=output_rel_path,
                content=content,
                links=links,
            )

        return SiteGraph(
            source_root=scan.root,
            pages=pages,
            assets=assets,
            outputs=outputs,
            backlinks={target: frozenset(sources) for target, sources in backlinks.items()},
            warnings=tuple(warnings),
            errors=tuple(errors),
        )

    @staticmethod
    def collect_paths(scan: ScanResult) -> Dict[str, str]:
        """Phase 1: the source to output mapping for every scanned entry."""
        return {entry.rel_path: output_path_for(entry.rel_path) for entry in scan.entries}

    @staticmethod
    def affected_by(graph: SiteGraph, rel_paths: Set[str]) -> Set[str]:
        """Pages linking to any of ``rel_paths``, including through broken links."""
        result: Set[str] = set()
        for rel_path in rel_paths:
            result.update(graph.backlinks.get(rel_path, ()))
        return result


__all__ = ["SiteGraphBuilder"]
