"""Live preview server."""

from .app import EVENTS_PATH, create_app, inject_reload_script, run_server

__all__ = ["EVENTS_PATH", "create_app", "inject_reload_script", "run_server"]
