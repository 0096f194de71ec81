"""Exception hierarchy for memoize builds."""

from __future__ import annotations


class MemoizeError(RuntimeError):
    """Base class for memoize failures."""


class ConfigError(MemoizeError):
    """Raised when the configuration file cannot be parsed."""


class BuildAbortedError(MemoizeError):
    """Raised when a build cannot proceed at all (unreadable source, unwritable output)."""


class AdapterError(MemoizeError):
    """Raised by a rendering or templating adapter for a single page."""


class RenderError(AdapterError):
    """Raised when Markdown rendering or template application fails."""


__all__ = [
    "AdapterError",
    "BuildAbortedError",
    "ConfigError",
    "MemoizeError",
    "RenderError",
]
