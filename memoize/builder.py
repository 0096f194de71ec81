"""Build pass orchestration: scan, graph, schedule."""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import List, Optional, Set

from .adapters.base import MarkdownRenderer, MetadataProvider, TemplateRenderer
from .adapters.markdown import PythonMarkdownRenderer
from .adapters.stub import NullMetadataProvider
from .adapters.templating import JinjaTemplateRenderer
from .config import MemoizeConfig
from .errors import BuildAbortedError
from .git.metadata import GitMetadataProvider
from .graph import SiteGraphBuilder
from .logging import get_logger
from .models import AffectedSet, BuildReport, SiteGraph
from .paths import is_excluded, output_path_for, relative_to_root
from .scanner import SourceScanner
from .scheduler import BuildScheduler, jobs_for


class SiteBuilder:
    """Coordinates one build pass over the source tree."""

    def __init__(
        self,
        source_root: Path | str,
        output_root: Path | str,
        *,
        renderer: MarkdownRenderer | None = None,
        metadata: MetadataProvider | None = None,
        templates: TemplateRenderer | None = None,
        jobs: int | None = None,
        scanner: SourceScanner | None = None,
        graph_builder: SiteGraphBuilder | None = None,
    ) -> None:
        self.source_root = Path(source_root).expanduser().resolve()
        self.output_root = Path(output_root).expanduser().resolve()
        self.scanner = scanner or SourceScanner()
        self.graph_builder = graph_builder or SiteGraphBuilder()
        self.scheduler = BuildScheduler(
            renderer or PythonMarkdownRenderer(),
            metadata or GitMetadataProvider(self.source_root),
            templates or JinjaTemplateRenderer(),
            jobs=jobs,
        )
        self.logger = get_logger("builder")
        self.last_graph: Optional[SiteGraph] = None

    @classmethod
    def from_config(
        cls,
        config: MemoizeConfig,
        *,
        output_root: Path | None = None,
        jobs: int | None = None,
    ) -> "SiteBuilder":
        """Wire production adapters according to ``config``; explicit arguments win."""
        metadata: MetadataProvider
        if config.git.enabled:
            metadata = GitMetadataProvider(
                config.root,
                timeout=config.git.timeout,
                web_url_template=config.git.web_url,
            )
        else:
            metadata = NullMetadataProvider()
        return cls(
            config.root,
            output_root or config.output_dir,
            metadata=metadata,
            templates=JinjaTemplateRenderer(config.build.templates_dir),
            jobs=jobs or config.build.jobs,
        )

    def build(self, affected: AffectedSet | None = None, *, clean: bool = True) -> BuildReport:
        """Materialize the output tree.

        ``clean`` wipes the output root first. Without it, files are replaced in
        place and outputs whose source disappeared are pruned, so a page that
        fails to re-render keeps its previous version. A non-full
        ``affected`` set limits the pass to the listed paths.
        """
        self._check_roots()
        full = affected is None or affected.full

        try:
            scan = self.scanner.scan(self.source_root)
        except (FileNotFoundError, NotADirectoryError) as exc:
            raise BuildAbortedError(str(exc)) from exc
        graph = self.graph_builder.build(scan)
        self.last_graph = graph

        self._prepare_output(clean=clean and full)

        if affected is not None and not affected.full:
            self._remove_outputs(affected.removed)
            jobs = jobs_for(graph, affected.paths)
        else:
            jobs = jobs_for(graph)

        result = self.scheduler.run(graph, self.output_root, jobs)
        if full and not clean:
            self._prune_stale(graph)

        in_scope: Optional[Set[str]] = None if full else {job.rel_path for job in jobs}
        report = BuildReport(
            pages_rendered=result.pages_rendered,
            assets_copied=result.assets_copied,
            failures=result.failures,
            warnings=[w for w in graph.warnings if in_scope is None or w.rel_path in in_scope],
            scan_errors=list(graph.errors),
        )
        self.logger.info(
            "Built %d pages and %d assets (%d failed, %d warnings)",
            len(report.pages_rendered),
            len(report.assets_copied),
            len(report.failures),
            len(report.warnings),
        )
        return report

    def _check_roots(self) -> None:
        if not self.source_root.is_dir():
            raise BuildAbortedError(f"Source directory not found: {self.source_root}")
        if relative_to_root(self.output_root, self.source_root) is not None:
            raise BuildAbortedError(
                f"Output directory {self.output_root} must not contain the source directory"
            )
        rel = relative_to_root(self.source_root, self.output_root)
        if rel is not None and not is_excluded(rel):
            raise BuildAbortedError(
                f"Output directory {rel!r} lies inside the source tree; "
                "name it with a leading '_' or '.' so it is not scanned"
            )

    def _prepare_output(self, *, clean: bool) -> None:
        try:
            if clean and self.output_root.exists():
                shutil.rmtree(self.output_root)
            self.output_root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise BuildAbortedError(f"Cannot prepare output directory {self.output_root}: {exc}") from exc
        if not os.access(self.output_root, os.W_OK):
            raise BuildAbortedError(f"Output directory is not writable: {self.output_root}")

    def _remove_outputs(self, rel_paths: Set[str] | frozenset[str]) -> None:
        for rel_path in sorted(rel_paths):
            target = self.output_root / output_path_for(rel_path)
            try:
                target.unlink()
                self.logger.debug("Removed %s", target)
            except FileNotFoundError:
                continue
            except IsADirectoryError:
                shutil.rmtree(target, ignore_errors=True)
            self._remove_empty_parents(target.parent)

    def _prune_stale(self, graph: SiteGraph) -> None:
        expected = set(graph.outputs.values())
        stale: List[Path] = []
        for dirpath, _, filenames in os.walk(self.output_root):
            for name in filenames:
                path = Path(dirpath) / name
                rel = relative_to_root(self.output_root, path)
                if rel not in expected:
                    stale.append(path)
        for path in stale:
            path.unlink(missing_ok=True)
            self.logger.debug("Pruned stale output %s", path)
            self._remove_empty_parents(path.parent)

    def _remove_empty_parents(self, directory: Path) -> None:
        while directory != self.output_root and self.output_root in directory.parents:
            try:
                directory.rmdir()
            except OSError:
                return
            directory = directory.parent


__all__ = ["SiteBuilder"]
