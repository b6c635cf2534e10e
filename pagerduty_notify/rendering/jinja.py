"""Jinja2 backed renderer."""

import logging
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence, Union

from jinja2 import (
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    PackageLoader,
    StrictUndefined,
    TemplateError,
    TemplateNotFound,
    TemplateSyntaxError,
    UndefinedError,
)

from ..exceptions import RenderError
from .base import Renderer


logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_ID = "pagerduty-template"
TEMPLATE_SUFFIX = ".json.j2"

# Text without any of these is returned untouched
_TEMPLATE_MARKERS = ("{{", "{%", "{#")


class JinjaRenderer(Renderer):
    """Renders built-in and user templates with Jinja2.

    Undefined variables raise instead of rendering as empty strings, so a
    template that references a missing field fails loudly.
    """

    def __init__(self, template_dirs: Optional[Sequence[Union[str, Path]]] = None):
        loaders: List[Any] = [FileSystemLoader([str(d) for d in template_dirs])] if template_dirs else []
        loaders.append(PackageLoader("pagerduty_notify", "rendering/templates"))

        self.env = Environment(
            loader=ChoiceLoader(loaders),
            undefined=StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
        )

    def list_templates(self) -> List[str]:
        """List template ids available to ``render_template``."""
        return sorted(
            name[:-len(TEMPLATE_SUFFIX)]
            for name in self.env.list_templates()
            if name.endswith(TEMPLATE_SUFFIX)
        )

    def render_template(self, template_id: str, context: Mapping[str, Any]) -> str:
        try:
            template = self.env.get_template(f"{template_id}{TEMPLATE_SUFFIX}")
        except TemplateNotFound as e:
            raise RenderError(f"Template not found: {template_id}", template_id=template_id) from e
        except TemplateSyntaxError as e:
            raise RenderError(
                f"Invalid template {template_id} (line {e.lineno}): {e.message}",
                template_id=template_id
            ) from e

        logger.debug("Rendering template %s", template_id)
        return self._render(template, context, template_id)

    def render_string(self, source: str, context: Mapping[str, Any]) -> str:
        if not any(marker in source for marker in _TEMPLATE_MARKERS):
            return source

        try:
            template = self.env.from_string(source)
        except TemplateSyntaxError as e:
            raise RenderError(f"Invalid inline template (line {e.lineno}): {e.message}") from e

        return self._render(template, context, None)

    def _render(self, template, context: Mapping[str, Any], template_id: Optional[str]) -> str:
        try:
            return template.render(dict(context))
        except UndefinedError as e:
            raise RenderError(f"Unresolved placeholder: {e.message}", template_id=template_id) from e
        except TemplateError as e:
            raise RenderError(f"Template rendering failed: {e}", template_id=template_id) from e
        except (TypeError, ValueError) as e:
            # tojson on values that are not JSON serializable
            raise RenderError(f"Template rendering failed: {e}", template_id=template_id) from e
