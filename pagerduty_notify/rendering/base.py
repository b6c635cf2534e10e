"""Template engine interface."""

from abc import ABC, abstractmethod
from typing import Any, Mapping


class Renderer(ABC):
    """Capability to resolve templates against a context.

    Implementations raise ``RenderError`` for unknown templates and for
    placeholders the context cannot resolve.
    """

    @abstractmethod
    def render_template(self, template_id: str, context: Mapping[str, Any]) -> str:
        """Render a named template.

        Args:
            template_id: Identifier of a registered template
            context: Template variables

        Returns:
            Rendered text
        """
        pass

    @abstractmethod
    def render_string(self, source: str, context: Mapping[str, Any]) -> str:
        """Render an inline template string.

        Args:
            source: Template text
            context: Template variables

        Returns:
            Rendered text
        """
        pass
