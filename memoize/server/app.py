"""FastAPI preview server with live reload over server-sent events."""

from __future__ import annotations

import html
from pathlib import Path
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import FileResponse, HTMLResponse, RedirectResponse, Response, StreamingResponse
from pydantic import BaseModel

from .. import __version__
from ..builder import SiteBuilder
from ..config import MemoizeConfig
from ..logging import get_logger
from ..models import AffectedSet, BuildReport
from ..notify import ReloadBroadcaster
from ..paths import HTML_SUFFIX, is_excluded_name, sanitize_request_path
from ..watch import WatchSession

EVENTS_PATH = "/__memoize/events"
KEEPALIVE_SECONDS = 15.0

RELOAD_SCRIPT = (
    "<script>\n"
    "(function () {\n"
    f'  var source = new EventSource("{EVENTS_PATH}");\n'
    '  source.addEventListener("reload", function () { window.location.reload(); });\n'
    "})();\n"
    "</script>\n"
)

logger = get_logger("server")


class HealthResponse(BaseModel):
    status: str


def inject_reload_script(document: str) -> str:
    """Insert the live-reload client before ``</body>``, or append it."""
    index = document.lower().rfind("</body>")
    if index == -1:
        return document + RELOAD_SCRIPT
    return document[:index] + RELOAD_SCRIPT + document[index:]


def create_app(
    output_root: Path,
    broadcaster: ReloadBroadcaster,
    *,
    keepalive: float = KEEPALIVE_SECONDS,
) -> FastAPI:
    """Create the preview application serving ``output_root``."""

    root = Path(output_root).resolve()
    app = FastAPI(title="memoize preview", version=__version__)

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.get(EVENTS_PATH)
    async def events(request: Request) -> StreamingResponse:
        subscription = broadcaster.subscribe()

        async def stream() -> AsyncIterator[str]:
            try:
                yield "retry: 1000\n\n"
                while not await request.is_disconnected():
                    number = await subscription.next(keepalive)
                    if number is None:
                        yield ": keep-alive\n\n"
                        continue
                    yield f"event: reload\ndata: {number}\n\n"
            finally:
                broadcaster.unsubscribe(subscription)

        return StreamingResponse(
            stream(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache"},
        )

    @app.get("/{request_path:path}")
    async def serve_output(request_path: str) -> Response:
        rel_path = sanitize_request_path(request_path)
        if rel_path is None:
            raise HTTPException(status_code=404, detail="Not found")

        target = root / rel_path if rel_path else root
        if target.is_dir():
            if rel_path and not request_path.endswith("/"):
                return RedirectResponse(url=f"/{rel_path}/")
            index = target / "index.html"
            if not index.is_file():
                return HTMLResponse(inject_reload_script(_directory_listing(target, rel_path)))
            target = index
        elif not target.is_file() and (root / f"{rel_path}{HTML_SUFFIX}").is_file():
            target = root / f"{rel_path}{HTML_SUFFIX}"

        if not target.is_file():
            raise HTTPException(status_code=404, detail="Not found")
        if target.suffix == HTML_SUFFIX:
            document = target.read_text(encoding="utf-8", errors="replace")
            return HTMLResponse(inject_reload_script(document), headers={"Cache-Control": "no-cache"})
        return FileResponse(target)

    return app


def _directory_listing(directory: Path, rel_path: str) -> str:
    title = html.escape(f"/{rel_path}")
    items = []
    for child in sorted(directory.iterdir(), key=lambda path: path.name):
        if is_excluded_name(child.name):
            continue
        name = child.name + ("/" if child.is_dir() else "")
        escaped = html.escape(name)
        items.append(f'<li><a href="{escaped}">{escaped}</a></li>')
    return (
        "<!DOCTYPE html>\n<html><head><meta charset=\"utf-8\">"
        f"<title>{title}</title></head><body>\n<h1>{title}</h1>\n<ul>\n"
        + "\n".join(items)
        + "\n</ul>\n</body></html>\n"
    )


def log_report(report: BuildReport) -> None:
    """Log per-cycle outcomes; failures never end the session."""
    for failure in report.failures:
        logger.error("Failed: %s (%s)", failure.rel_path, failure.message)
    for warning in report.warnings:
        logger.warning("Broken link in %s: %s", warning.rel_path, warning.target)


def run_server(
    config: MemoizeConfig,
    *,
    output_root: Path | None = None,
    host: str | None = None,
    port: int | None = None,
    debounce: float | None = None,
    incremental: bool | None = None,
    jobs: int | None = None,
) -> None:  # pragma: no cover - integration path
    """Build once, then watch the source tree and serve the output until interrupted."""
    builder = SiteBuilder.from_config(config, output_root=output_root, jobs=jobs)
    broadcaster = ReloadBroadcaster()

    log_report(builder.build(clean=True))

    def _rebuild(affected: AffectedSet) -> BuildReport:
        report = builder.build(affected, clean=False)
        log_report(report)
        return report

    session = WatchSession(
        builder.source_root,
        _rebuild,
        broadcaster,
        debounce=config.serve.debounce if debounce is None else debounce,
        incremental=config.serve.incremental if incremental is None else incremental,
        graph_provider=lambda: builder.last_graph,
    )
    session.start()
    bind_host = host or config.serve.host
    bind_port = port or config.serve.port
    logger.info("Serving %s at http://%s:%d/", builder.output_root, bind_host, bind_port)
    try:
        uvicorn.run(
            create_app(builder.output_root, broadcaster),
            host=bind_host,
            port=bind_port,
            log_level="warning",
            timeout_graceful_shutdown=1,
        )
    finally:
        session.stop()
        logger.info("Watch session stopped")


__all__ = ["EVENTS_PATH", "create_app", "inject_reload_script", "log_report", "run_server"]
