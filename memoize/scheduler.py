"""Parallel execution of page render and asset copy jobs."""

from __future__ import annotations

import os
import shutil
import tempfile
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .adapters.base import MarkdownRenderer, MetadataProvider, TemplateRenderer
from .errors import RenderError
from .logging import get_logger
from .models import (
    Asset,
    BuildJob,
    CopyAsset,
    GitInfo,
    JobFailure,
    Page,
    PageContext,
    RenderPage,
    SiteGraph,
)


def default_jobs() -> int:
    return os.cpu_count() or 1


def jobs_for(graph: SiteGraph, scope: Optional[Iterable[str]] = None) -> List[BuildJob]:
    """Build jobs for every graph entry, or only for the rel paths in ``scope``."""
    selected = None if scope is None else set(scope)
    jobs: List[BuildJob] = []
    for rel_path, page in sorted(graph.pages.items()):
        if selected is None or rel_path in selected:
            jobs.append(RenderPage(page))
    for rel_path, asset in sorted(graph.assets.items()):
        if selected is None or rel_path in selected:
            jobs.append(CopyAsset(asset))
    return jobs


@dataclass
class SchedulerResult:
    """Outcome of one scheduler run, sorted by source path."""

    pages_rendered: List[str] = field(default_factory=list)
    assets_copied: List[str] = field(default_factory=list)
    failures: List[JobFailure] = field(default_factory=list)


class BuildScheduler:
    """Runs build jobs on a bounded thread pool.

    Jobs only read the frozen site graph and each one writes a distinct output
    path, so no locking is needed. A failing job is recorded and never cancels
    its siblings.
    """

    def __init__(
        self,
        renderer: MarkdownRenderer,
        metadata: MetadataProvider,
        templates: TemplateRenderer,
        *,
        jobs: int | None = None,
    ) -> None:
        if jobs is not None and jobs < 1:
            raise ValueError("jobs must be at least 1")
        self.renderer = renderer
        self.metadata = metadata
        self.templates = templates
        self.jobs = jobs
        self.logger = get_logger("scheduler")

    def run(
        self,
        graph: SiteGraph,
        output_root: Path,
        jobs: Iterable[BuildJob] | None = None,
    ) -> SchedulerResult:
        job_list = list(jobs) if jobs is not None else jobs_for(graph)
        workers = self.jobs or default_jobs()
        result = SchedulerResult()
        if not job_list:
            return result

        self.logger.debug("Running %d jobs on %d workers", len(job_list), workers)
        futures: Dict[Future[None], BuildJob] = {}
        # Leaving the context waits for every submitted job, even on interrupt.
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="memoize-build") as pool:
            for job in job_list:
                futures[pool.submit(self._execute, job, graph, output_root)] = job

        for future, job in futures.items():
            exc = future.exception()
            if exc is not None:
                message = str(exc) or exc.__class__.__name__
                self.logger.error("Failed to build %s: %s", job.rel_path, message)
                result.failures.append(JobFailure(rel_path=job.rel_path, message=message))
            elif isinstance(job, RenderPage):
                result.pages_rendered.append(job.rel_path)
            else:
                result.assets_copied.append(job.rel_path)

        result.pages_rendered.sort()
        result.assets_copied.sort()
        result.failures.sort(key=lambda failure: failure.rel_path)
        return result

    def _execute(self, job: BuildJob, graph: SiteGraph, output_root: Path) -> None:
        destination = output_root / job.output_rel_path
        destination.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(job, RenderPage):
            self.render_page(job.page, destination)
        else:
            copy_asset(job.asset, destination)

    def render_page(self, page: Page, destination: Path) -> None:
        if page.content is None:
            raise RenderError("source file could not be read")
        text = page.content.decode("utf-8", errors="replace")
        fragment = self.renderer.render(text, page.links)
        document = self.templates.apply(
            fragment,
            PageContext(
                rel_path=page.rel_path,
                output_rel_path=page.output_rel_path,
                git=self._lookup_metadata(page),
            ),
        )
        write_atomic(destination, document.encode("utf-8"))
        self.logger.debug("Rendered %s -> %s", page.rel_path, page.output_rel_path)

    def _lookup_metadata(self, page: Page) -> Optional[GitInfo]:
        try:
            return self.metadata.lookup(page.entry.path)
        except Exception as exc:  # metadata never fails a page
            self.logger.warning("Metadata lookup failed for %s: %s", page.rel_path, exc)
            return None


def write_atomic(destination: Path, data: bytes) -> None:
    """Replace ``destination`` in one step so readers never see a partial file."""
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{destination.name}.", suffix=".tmp", dir=str(destination.parent)
    )
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
        os.chmod(tmp_name, 0o644)
        os.replace(tmp_name, destination)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


def copy_asset(asset: Asset, destination: Path) -> bool:
    """Hard-link the asset into place, copying when linking is not possible.

    Returns True when a hard link was created.
    """
    source = asset.entry.path
    if destination.exists() or destination.is_symlink():
        if destination.is_file() and os.path.samefile(source, destination):
            return True
        destination.unlink()
    try:
        os.link(source, destination)
        return True
    except OSError:
        shutil.copyfile(source, destination)
        return False


__all__ = [
    "BuildScheduler",
    "SchedulerResult",
    "copy_asset",
    "default_jobs",
    "jobs_for",
    "write_atomic",
]
