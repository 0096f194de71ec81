"""Jinja2 templating for complete note documents."""

from __future__ import annotations

import posixpath
from pathlib import Path

from jinja2 import ChoiceLoader, Environment, FileSystemLoader, TemplateError, select_autoescape
from markupsafe import Markup

from ..errors import RenderError
from ..models import PageContext, RenderedPage

DEFAULT_TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"


class JinjaTemplateRenderer:
    """Renders ``note.html`` from the bundled templates or a user override directory."""

    TEMPLATE_NAME = "note.html"

    def __init__(self, templates_dir: Path | None = None) -> None:
        self.templates_dir = templates_dir
        loaders = [FileSystemLoader(str(DEFAULT_TEMPLATES_DIR))]
        if templates_dir is not None:
            loaders.insert(0, FileSystemLoader(str(templates_dir)))
        self._env = Environment(
            loader=ChoiceLoader(loaders),
            autoescape=select_autoescape(["html"]),
            keep_trailing_newline=True,
        )

    def apply(self, page: RenderedPage, context: PageContext) -> str:
        stem = posixpath.splitext(posixpath.basename(context.rel_path))[0]
        depth = context.output_rel_path.count("/")
        try:
            template = self._env.get_template(self.TEMPLATE_NAME)
            return template.render(
                title=page.title or stem,
                body=Markup(page.html),
                toc=page.toc,
                git=context.git,
                source_path=context.rel_path,
                root="../" * depth or "./",
            )
        except TemplateError as exc:
            raise RenderError(f"Template {self.TEMPLATE_NAME} failed: {exc}") from exc


__all__ = ["JinjaTemplateRenderer"]
