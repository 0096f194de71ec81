"""Tests for git last-commit lookups."""

from __future__ import annotations

import subprocess
from pathlib import Path

from memoize.git import GitMetadataProvider


def test_lookup_parses_last_commit(tmp_path: Path) -> None:
    calls: list[tuple[list[str], Path, float]] = []

    def runner(args, cwd, timeout=None):  # type: ignore[no-untyped-def]
        calls.append((list(args), Path(cwd), timeout))
        return "4f2a9c1d 2024-05-06 ada@example.com Ada King Lovelace\n"

    provider = GitMetadataProvider(tmp_path, timeout=2.0, runner=runner)
    info = provider.lookup(tmp_path / "notes" / "a.md")

    assert info is not None
    assert info.commit == "4f2a9c1d"
    assert info.date == "2024-05-06"
    assert info.author_email == "ada@example.com"
    assert info.author_name == "Ada King Lovelace"
    assert info.web_url is None
    assert calls == [
        (
            ["git", "log", "-1", "--format=%H %cs %ce %cn", "--", str(tmp_path / "notes" / "a.md")],
            tmp_path,
            2.0,
        )
    ]


def test_lookup_builds_web_url(tmp_path: Path) -> None:
    provider = GitMetadataProvider(
        tmp_path,
        web_url_template="https://git.example.com/notes/commit/{commit}",
        runner=lambda args, cwd, timeout=None: "abc 2024-01-01 a@b.c A\n",
    )

    info = provider.lookup(tmp_path / "a.md")

    assert info is not None
    assert info.web_url == "https://git.example.com/notes/commit/abc"


def test_lookup_returns_none_for_uncommitted_file(tmp_path: Path) -> None:
    provider = GitMetadataProvider(tmp_path, runner=lambda args, cwd, timeout=None: "")

    assert provider.lookup(tmp_path / "new.md") is None


def test_lookup_returns_none_for_malformed_output(tmp_path: Path) -> None:
    provider = GitMetadataProvider(tmp_path, runner=lambda args, cwd, timeout=None: "garbage\n")

    assert provider.lookup(tmp_path / "a.md") is None


def test_lookup_tolerates_git_failures(tmp_path: Path) -> None:
    def not_a_repo(args, cwd, timeout=None):  # type: ignore[no-untyped-def]
        raise subprocess.CalledProcessError(128, args, stderr="fatal: not a git repository")

    def missing_git(args, cwd, timeout=None):  # type: ignore[no-untyped-def]
        raise FileNotFoundError(2, "No such file or directory", "git")

    def hung(args, cwd, timeout=None):  # type: ignore[no-untyped-def]
        raise subprocess.TimeoutExpired(args, timeout)

    for runner in (not_a_repo, missing_git, hung):
        provider = GitMetadataProvider(tmp_path, runner=runner)
        assert provider.lookup(tmp_path / "a.md") is None
