"""Tests for the debounced watch session."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import List, Optional

import pytest
from watchdog.events import FileModifiedEvent, FileMovedEvent

from memoize.models import AffectedSet, WatchEvent, WatchEventKind
from memoize.notify import ReloadBroadcaster
from memoize.watch import WatchSession, WatchState, compute_affected
from tests._fixtures.notes_tree import NotesTree


class FakeObserver:
    """Records the scheduled handler instead of watching the filesystem."""

    def __init__(self) -> None:
        self.handler = None
        self.path: Optional[str] = None
        self.started = False
        self.stopped = False

    def schedule(self, handler, path, recursive=False):  # type: ignore[no-untyped-def]
        self.handler = handler
        self.path = path
        assert recursive

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def join(self, timeout=None) -> None:  # type: ignore[no-untyped-def]
        return None


class RecordingRebuild:
    def __init__(self) -> None:
        self.calls: List[AffectedSet] = []
        self.done = threading.Event()

    def __call__(self, affected: AffectedSet) -> None:
        self.calls.append(affected)
        self.done.set()


def _modified(root: Path, rel_path: str) -> WatchEvent:
    return WatchEvent(path=root / rel_path, kind=WatchEventKind.MODIFIED)


def _session(root: Path, rebuild, **kwargs) -> WatchSession:  # type: ignore[no-untyped-def]
    kwargs.setdefault("debounce", 0.05)
    return WatchSession(root, rebuild, ReloadBroadcaster(), **kwargs)


def test_burst_of_events_triggers_one_rebuild_and_one_reload(notes: NotesTree) -> None:
    rebuild = RecordingRebuild()
    session = _session(notes.root, rebuild)

    for _ in range(3):
        assert session.submit(_modified(notes.root, "a.md"))
    affected = session.run_cycle(timeout=1.0)

    assert affected == AffectedSet(full=True)
    assert rebuild.calls == [AffectedSet(full=True)]
    assert session.broadcaster.published == 1
    assert session.cycles == 1
    assert session.state is WatchState.IDLE


def test_excluded_and_foreign_events_are_ignored(notes: NotesTree, tmp_path: Path) -> None:
    rebuild = RecordingRebuild()
    session = _session(notes.root, rebuild)

    assert not session.submit(_modified(notes.root, "_drafts/idea.md"))
    assert not session.submit(_modified(notes.root, ".git/index"))
    assert not session.submit(_modified(notes.root, "notes/.swp"))
    assert not session.submit(WatchEvent(path=tmp_path / "elsewhere.md", kind=WatchEventKind.CREATED))
    assert not session.submit(WatchEvent(path=notes.root, kind=WatchEventKind.MODIFIED, is_directory=True))

    assert session.run_cycle(timeout=0.1) is None
    assert rebuild.calls == []
    assert session.broadcaster.published == 0


def test_events_during_rebuild_start_the_next_cycle(notes: NotesTree) -> None:
    states: List[WatchState] = []
    calls: List[AffectedSet] = []

    def rebuild(affected: AffectedSet) -> None:
        states.append(session.state)
        calls.append(affected)
        if len(calls) == 1:
            session.submit(_modified(notes.root, "late.md"))

    session = _session(notes.root, rebuild)
    session.submit(_modified(notes.root, "a.md"))

    session.run_cycle(timeout=1.0)
    assert len(calls) == 1
    session.run_cycle(timeout=1.0)

    assert len(calls) == 2
    assert states == [WatchState.REBUILDING, WatchState.REBUILDING]
    assert session.broadcaster.published == 2


def test_rebuild_errors_are_logged_and_session_continues(notes: NotesTree) -> None:
    def rebuild(affected: AffectedSet) -> None:
        raise RuntimeError("disk full")

    session = _session(notes.root, rebuild)
    session.submit(_modified(notes.root, "a.md"))

    assert session.run_cycle(timeout=1.0) == AffectedSet(full=True)
    assert session.broadcaster.published == 1
    assert session.state is WatchState.IDLE


def test_negative_debounce_is_rejected(notes: NotesTree) -> None:
    with pytest.raises(ValueError):
        _session(notes.root, RecordingRebuild(), debounce=-1)


@pytest.fixture
def linked_notes(notes: NotesTree) -> NotesTree:
    notes.write(
        {
            "x.md": "x\n",
            "dir/y.md": "[x](../x.md)\n",
            "z.md": "[x](x.md) [new](new.md)\n",
            "lonely.md": "alone\n",
        }
    )
    return notes


def test_compute_affected_is_full_by_default(linked_notes: NotesTree) -> None:
    graph = linked_notes.graph()
    batch = [_modified(linked_notes.root, "x.md")]

    assert compute_affected(batch, graph, source_root=linked_notes.root) == AffectedSet(full=True)
    assert compute_affected(batch, None, source_root=linked_notes.root, incremental=True).full


def test_compute_affected_includes_backlinks(linked_notes: NotesTree) -> None:
    graph = linked_notes.graph()
    batch = [_modified(linked_notes.root, "x.md")]

    affected = compute_affected(batch, graph, source_root=linked_notes.root, incremental=True)

    assert not affected.full
    assert affected.paths == frozenset({"x.md", "dir/y.md", "z.md"})
    assert affected.removed == frozenset()


def test_compute_affected_for_created_and_removed_pages(linked_notes: NotesTree) -> None:
    graph = linked_notes.graph()
    root = linked_notes.root
    batch = [
        WatchEvent(path=root / "new.md", kind=WatchEventKind.CREATED),
        WatchEvent(path=root / "x.md", kind=WatchEventKind.REMOVED),
    ]

    affected = compute_affected(batch, graph, source_root=root, incremental=True)

    assert affected.paths == frozenset({"new.md", "dir/y.md", "z.md"})
    assert affected.removed == frozenset({"x.md"})


def test_compute_affected_directory_events_force_full(linked_notes: NotesTree) -> None:
    graph = linked_notes.graph()
    batch = [WatchEvent(path=linked_notes.root / "dir", kind=WatchEventKind.REMOVED, is_directory=True)]

    assert compute_affected(batch, graph, source_root=linked_notes.root, incremental=True).full


def test_started_session_reacts_to_watchdog_events(linked_notes: NotesTree) -> None:
    observer = FakeObserver()
    rebuild = RecordingRebuild()
    graph = linked_notes.graph()
    root = linked_notes.root
    session = _session(
        root,
        rebuild,
        incremental=True,
        graph_provider=lambda: graph,
        observer_factory=lambda: observer,
    )

    session.start()
    try:
        assert observer.started
        assert observer.path == str(root.resolve())
        observer.handler.dispatch(FileMovedEvent(str(root / "x.md"), str(root / "w.md")))
        observer.handler.dispatch(FileModifiedEvent(str(root / "_drafts" / "skip.md")))
        assert rebuild.done.wait(5.0)
    finally:
        session.stop(timeout=5.0)

    assert observer.stopped
    assert len(rebuild.calls) == 1
    affected = rebuild.calls[0]
    assert affected.paths == frozenset({"w.md", "dir/y.md", "z.md"})
    assert affected.removed == frozenset({"x.md"})
