"""Source tree scanning and classification."""

from __future__ import annotations

import os
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, List, Tuple

from .errors import BuildAbortedError
from .logging import get_logger
from .models import EntryKind, ScanError, SourceEntry
from .paths import is_excluded_name, is_page_name


@dataclass
class ScanResult:
    """Entries reachable under the source root plus per-entry errors."""

    root: Path
    entries: List[SourceEntry] = field(default_factory=list)
    errors: List[ScanError] = field(default_factory=list)

    @property
    def pages(self) -> List[SourceEntry]:
        return [entry for entry in self.entries if entry.kind is EntryKind.PAGE]

    @property
    def assets(self) -> List[SourceEntry]:
        return [entry for entry in self.entries if entry.kind is EntryKind.ASSET]


def classify(name: str) -> EntryKind:
    """Classify a file name as a page, an asset, or excluded."""
    if is_excluded_name(name):
        return EntryKind.EXCLUDED
    if is_page_name(name):
        return EntryKind.PAGE
    return EntryKind.ASSET


def _dir_key(path: str) -> Tuple[int, int]:
    info = os.stat(path)
    return info.st_dev, info.st_ino


class SourceScanner:
    """Walks the source tree, pruning excluded subtrees before descending."""

    def __init__(self) -> None:
        self.logger = get_logger("scanner")

    def scan(self, root: Path | str) -> ScanResult:
        """Return every page and asset under ``root``; unreadable entries become ScanErrors."""
        root_path = Path(root).expanduser().resolve()
        if not root_path.exists():
            raise FileNotFoundError(f"Source path not found: {root}")
        if not root_path.is_dir():
            raise NotADirectoryError(f"Source path is not a directory: {root}")
        try:
            root_key = _dir_key(str(root_path))
            with os.scandir(root_path):
                pass
        except OSError as exc:
            raise BuildAbortedError(f"Cannot read source directory {root_path}: {exc}") from exc

        result = ScanResult(root=root_path)
        ancestors: Dict[str, FrozenSet[Tuple[int, int]]] = {str(root_path): frozenset({root_key})}

        def _on_error(exc: OSError) -> None:
            rel = self._rel(root_path, exc.filename) if exc.filename else ""
            result.errors.append(ScanError(rel_path=rel, message=exc.strerror or str(exc)))

        for dirpath, dirnames, filenames in os.walk(root_path, onerror=_on_error, followlinks=True):
            seen = ancestors.get(dirpath, frozenset())

            kept_dirs = []
            for name in sorted(dirnames):
                if is_excluded_name(name):
                    continue
                child = os.path.join(dirpath, name)
                try:
                    key = _dir_key(child)
                except OSError as exc:
                    result.errors.append(
                        ScanError(rel_path=self._rel(root_path, child), message=exc.strerror or str(exc))
                    )
                    continue
                if key in seen:
                    result.errors.append(
                        ScanError(rel_path=self._rel(root_path, child), message="symlink cycle detected")
                    )
                    continue
                ancestors[child] = seen | {key}
                kept_dirs.append(name)
            dirnames[:] = kept_dirs

            for name in sorted(filenames):
                kind = classify(name)
                if kind is EntryKind.EXCLUDED:
                    continue
                path = os.path.join(dirpath, name)
                rel_path = self._rel(root_path, path)
                error = self._check_file(path)
                if error is not None:
                    result.errors.append(ScanError(rel_path=rel_path, message=error))
                    continue
                result.entries.append(SourceEntry(path=Path(path), kind=kind, rel_path=rel_path))

        result.entries.sort(key=lambda entry: entry.rel_path)
        for error in result.errors:
            self.logger.warning("Skipped %s: %s", error.rel_path or ".", error.message)
        self.logger.debug(
            "Scanned %s: %d pages, %d assets", root_path, len(result.pages), len(result.assets)
        )
        return result

    @staticmethod
    def _check_file(path: str) -> str | None:
        try:
            info = os.stat(path)
        except OSError as exc:
            return exc.strerror or str(exc)
        if not stat.S_ISREG(info.st_mode):
            return "not a regular file"
        if not os.access(path, os.R_OK):
            return "permission denied"
        return None

    @staticmethod
    def _rel(root: Path, path: str) -> str:
        return Path(os.path.relpath(path, root)).as_posix()


__all__ = ["ScanResult", "SourceScanner", "classify"]
