"""Last-commit lookups for source files."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Callable, Iterable, Optional

from ..logging import get_logger
from ..models import GitInfo

_LOG_FORMAT = "%H %cs %ce %cn"


class GitMetadataProvider:
    """Reads the most recent commit touching a file via ``git log``.

    Anything short of a well-formed answer (not a repository, file never
    committed, git missing, timeout) yields None so the page renders without
    a history block.
    """

    def __init__(
        self,
        repo_root: Path,
        *,
        timeout: float = 5.0,
        web_url_template: str | None = None,
        runner: Callable[..., str] | None = None,
    ) -> None:
        self.repo_root = Path(repo_root)
        self.timeout = timeout
        self.web_url_template = web_url_template
        self._runner = runner or self._default_runner
        self.logger = get_logger("git")

    def lookup(self, source_path: Path) -> Optional[GitInfo]:
        args = ["git", "log", "-1", f"--format={_LOG_FORMAT}", "--", str(source_path)]
        try:
            output = self._runner(args, cwd=self.repo_root, timeout=self.timeout)
        except subprocess.TimeoutExpired:
            self.logger.warning("git log timed out after %.1fs for %s", self.timeout, source_path)
            return None
        except (OSError, subprocess.CalledProcessError) as exc:
            self.logger.debug("git metadata unavailable for %s: %s", source_path, exc)
            return None
        return self._parse(output)

    def _parse(self, output: str) -> Optional[GitInfo]:
        line = output.strip()
        if not line:
            return None
        parts = line.split(" ", 3)
        if len(parts) != 4:
            return None
        commit, date, email, name = parts
        web_url = self.web_url_template.format(commit=commit) if self.web_url_template else None
        return GitInfo(
            commit=commit,
            date=date,
            author_name=name,
            author_email=email,
            web_url=web_url,
        )

    @staticmethod
    def _default_runner(
        args: Iterable[str],
        *,
        cwd: Path,
        timeout: float | None = None,
    ) -> str:
        completed = subprocess.run(
            list(args),
            cwd=str(cwd),
            check=True,
            text=True,
            capture_output=True,
            timeout=timeout,
        )
        return completed.stdout


__all__ = ["GitMetadataProvider"]
