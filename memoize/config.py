"""Configuration loading for memoize (.memoize.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigError

CONFIG_FILENAME = ".memoize.yml"
DEFAULT_OUTPUT_DIR = "_public"


@dataclass
class BuildConfig:
    """Settings for one-shot builds."""

    output: Optional[Path] = None
    jobs: Optional[int] = None
    templates_dir: Optional[Path] = None


@dataclass
class ServeConfig:
    """Settings for the live preview server."""

    host: str = "127.0.0.1"
    port: int = 3000
    debounce: float = 0.2
    incremental: bool = False


@dataclass
class GitConfig:
    """Settings for git history lookups."""

    enabled: bool = True
    timeout: float = 5.0
    web_url: Optional[str] = None


@dataclass
class MemoizeConfig:
    """Represents the settings defined in .memoize.yml."""

    root: Path
    build: BuildConfig = field(default_factory=BuildConfig)
    serve: ServeConfig = field(default_factory=ServeConfig)
    git: GitConfig = field(default_factory=GitConfig)

    @property
    def output_dir(self) -> Path:
        return self.build.output or (self.root / DEFAULT_OUTPUT_DIR)


def load_config(config_path: Path) -> MemoizeConfig:
    """Load configuration from disk, falling back to defaults when absent."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return MemoizeConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    build = BuildConfig()
    build_data = _as_dict(data.get("build"))
    if build_data:
        output = _as_str(build_data.get("output"))
        build.output = (root / output).resolve() if output else None
        build.jobs = _as_int(build_data.get("jobs"))
        if build.jobs is not None and build.jobs < 1:
            raise ConfigError("build.jobs must be a positive integer")
        templates_dir = _as_str(build_data.get("templates_dir"))
        build.templates_dir = (root / templates_dir).resolve() if templates_dir else None

    serve = ServeConfig()
    serve_data = _as_dict(data.get("serve"))
    if serve_data:
        serve.host = _as_str(serve_data.get("host")) or serve.host
        port = _as_int(serve_data.get("port"))
        if port is not None:
            serve.port = port
        debounce = _as_float(serve_data.get("debounce"))
        if debounce is not None:
            if debounce < 0:
                raise ConfigError("serve.debounce must not be negative")
            serve.debounce = debounce
        incremental = _as_bool(serve_data.get("incremental"))
        if incremental is not None:
            serve.incremental = incremental

    git = GitConfig()
    git_data = _as_dict(data.get("git"))
    if git_data:
        enabled = _as_bool(git_data.get("enabled"))
        if enabled is not None:
            git.enabled = enabled
        timeout = _as_float(git_data.get("timeout"))
        if timeout is not None:
            git.timeout = timeout
        git.web_url = _as_str(git_data.get("web_url"))

    return MemoizeConfig(root=root, build=build, serve=serve, git=git)


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read {path.name}: {exc}") from exc
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return {} if loaded is None else loaded


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None
