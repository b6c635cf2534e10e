"""Payload rendering for outbound alerts.

The template engine sits behind the ``Renderer`` interface; ``JinjaRenderer``
is the default implementation and ``PayloadRenderer`` turns an alert source
into the final request body.
"""

from .base import Renderer
from .jinja import JinjaRenderer, DEFAULT_TEMPLATE_ID
from .payload import PayloadRenderer

__all__ = [
    'Renderer',
    'JinjaRenderer',
    'DEFAULT_TEMPLATE_ID',
    'PayloadRenderer',
]
