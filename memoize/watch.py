"""Debounced, single-flight rebuild loop for live preview."""

from __future__ import annotations

import enum
import os
import queue
import threading
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Set

from watchdog.events import FileSystemEvent, FileSystemEventHandler, FileSystemMovedEvent
from watchdog.observers import Observer

from .graph import SiteGraphBuilder
from .logging import get_logger
from .models import AffectedSet, SiteGraph, WatchEvent, WatchEventKind
from .notify import ReloadBroadcaster
from .paths import is_excluded, relative_to_root

DEFAULT_DEBOUNCE = 0.2

_STOP = object()


class WatchState(enum.Enum):
    IDLE = "idle"
    DEBOUNCING = "debouncing"
    REBUILDING = "rebuilding"
    NOTIFYING = "notifying"


def compute_affected(
    batch: Iterable[WatchEvent],
    graph: Optional[SiteGraph],
    *,
    source_root: Path,
    incremental: bool = False,
) -> AffectedSet:
    """Decide what a coalesced batch of events requires rebuilding.

    Without ``incremental`` (or without a previous graph) every batch is a full
    rebuild. Otherwise the changed files plus every page linking to a changed,
    created or removed file are rebuilt; directory events still force a full
    rebuild because they can move whole subtrees.
    """
    if not incremental or graph is None:
        return AffectedSet(full=True)

    changed: Set[str] = set()
    removed: Set[str] = set()
    for event in batch:
        rel_path = relative_to_root(source_root, event.path)
        if not rel_path or event.is_directory:
            return AffectedSet(full=True)
        if event.kind is WatchEventKind.REMOVED:
            removed.add(rel_path)
            changed.discard(rel_path)
        else:
            changed.add(rel_path)
            removed.discard(rel_path)

    paths = set(changed)
    paths.update(SiteGraphBuilder.affected_by(graph, changed | removed))
    paths.difference_update(removed)
    return AffectedSet(full=False, paths=frozenset(paths), removed=frozenset(removed))


class _SessionEventHandler(FileSystemEventHandler):
    """Translates watchdog callbacks into ``WatchEvent`` submissions."""

    def __init__(self, session: "WatchSession") -> None:
        super().__init__()
        self._session = session

    def on_created(self, event: FileSystemEvent) -> None:
        self._submit(event.src_path, WatchEventKind.CREATED, event.is_directory)

    def on_modified(self, event: FileSystemEvent) -> None:
        # Directory mtime changes accompany every child event.
        if not event.is_directory:
            self._submit(event.src_path, WatchEventKind.MODIFIED, False)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._submit(event.src_path, WatchEventKind.REMOVED, event.is_directory)

    def on_moved(self, event: FileSystemEvent) -> None:
        self._submit(event.src_path, WatchEventKind.REMOVED, event.is_directory)
        if isinstance(event, FileSystemMovedEvent):
            self._submit(event.dest_path, WatchEventKind.CREATED, event.is_directory)

    def _submit(self, raw_path: str | bytes, kind: WatchEventKind, is_directory: bool) -> None:
        self._session.submit(WatchEvent(path=Path(os.fsdecode(raw_path)), kind=kind, is_directory=is_directory))


class WatchSession:
    """Idle -> Debouncing -> Rebuilding -> Notifying -> Idle, one cycle at a time.

    Events are queued by the watchdog thread and consumed by a single session
    thread, so two rebuilds can never overlap; events that arrive while a
    rebuild runs wait in the queue and start the next cycle.
    """

    def __init__(
        self,
        source_root: Path | str,
        rebuild: Callable[[AffectedSet], object],
        broadcaster: ReloadBroadcaster,
        *,
        debounce: float = DEFAULT_DEBOUNCE,
        incremental: bool = False,
        graph_provider: Callable[[], Optional[SiteGraph]] | None = None,
        observer_factory: Callable[[], Observer] = Observer,
    ) -> None:
        if debounce < 0:
            raise ValueError("debounce must not be negative")
        self.source_root = Path(source_root).expanduser().resolve()
        self.rebuild = rebuild
        self.broadcaster = broadcaster
        self.debounce = debounce
        self.incremental = incremental
        self._graph_provider = graph_provider or (lambda: None)
        self._observer_factory = observer_factory
        self._events: "queue.Queue[object]" = queue.Queue()
        self._stop = threading.Event()
        self._state = WatchState.IDLE
        self._state_lock = threading.Lock()
        self._observer: Optional[Observer] = None
        self._thread: Optional[threading.Thread] = None
        self.cycles = 0
        self.logger = get_logger("watch")

    @property
    def state(self) -> WatchState:
        with self._state_lock:
            return self._state

    def _set_state(self, state: WatchState) -> None:
        with self._state_lock:
            self._state = state

    def submit(self, event: WatchEvent) -> bool:
        """Queue ``event`` unless it lies outside the source tree or is excluded."""
        rel_path = relative_to_root(self.source_root, Path(os.path.abspath(event.path)))
        if not rel_path or is_excluded(rel_path):
            return False
        self._events.put(event)
        return True

    def run_cycle(self, timeout: Optional[float] = None) -> Optional[AffectedSet]:
        """Wait for events, coalesce them, rebuild once and notify once.

        Returns None when no event arrived within ``timeout`` or the session
        was stopped before the batch settled.
        """
        try:
            first = self._events.get(timeout=timeout)
        except queue.Empty:
            return None
        if first is _STOP:
            return None

        self._set_state(WatchState.DEBOUNCING)
        batch = self._coalesce(first)
        if batch is None:
            self._set_state(WatchState.IDLE)
            return None

        self._set_state(WatchState.REBUILDING)
        affected = compute_affected(
            batch,
            self._graph_provider(),
            source_root=self.source_root,
            incremental=self.incremental,
        )
        self.logger.info(
            "Rebuilding after %d change(s) (%s)",
            len(batch),
            "full" if affected.full else f"{len(affected.paths)} paths",
        )
        try:
            self.rebuild(affected)
        except Exception:
            self.logger.exception("Rebuild failed; keeping previous output")

        self._set_state(WatchState.NOTIFYING)
        self.broadcaster.publish()
        self.cycles += 1
        self._set_state(WatchState.IDLE)
        return affected

    def _coalesce(self, first: object) -> Optional[List[WatchEvent]]:
        batch = [first]
        while True:
            try:
                event = self._events.get(timeout=self.debounce)
            except queue.Empty:
                break
            if event is _STOP:
                return None
            batch.append(event)
        return [event for event in batch if isinstance(event, WatchEvent)]

    def run(self) -> None:
        """Process cycles until ``stop`` is called."""
        while not self._stop.is_set():
            self.run_cycle()

    def start(self) -> None:
        """Attach the filesystem observer and start the session thread."""
        handler = _SessionEventHandler(self)
        observer = self._observer_factory()
        observer.schedule(handler, str(self.source_root), recursive=True)
        observer.start()
        self._observer = observer
        self._thread = threading.Thread(target=self.run, name="memoize-watch", daemon=True)
        self._thread.start()
        self.logger.info("Watching %s", self.source_root)

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop watching; an in-flight rebuild is allowed to finish first."""
        self._stop.set()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout)
            self._observer = None
        self._events.put(_STOP)
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        self._set_state(WatchState.IDLE)


__all__ = ["DEFAULT_DEBOUNCE", "WatchSession", "WatchState", "compute_affected"]
