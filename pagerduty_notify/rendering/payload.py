"""Turns an alert source into the final request body."""

import json
import logging
from typing import Any, Dict, Optional

from ..exceptions import RenderError
from ..execution import RunContext, execution_map
from ..models import AlertSource, ExecutionSource, RawSource
from .base import Renderer


logger = logging.getLogger(__name__)


class PayloadRenderer:
    """Renders raw payloads and execution alerts.

    Raw payloads go through the host expression pass and are otherwise sent
    verbatim. Execution alerts render a built-in template, then get the
    routing fields of the source merged in.
    """

    def __init__(self, renderer: Renderer):
        self.renderer = renderer

    def render(self, source: AlertSource, run_context: RunContext) -> Optional[str]:
        """Render the body for an alert source.

        Args:
            source: ``RawSource`` or ``ExecutionSource``
            run_context: Context of the invoking run

        Returns:
            Body text, or None when a raw payload resolves to nothing
        """
        if source.kind == "raw":
            return self._render_raw(source, run_context)
        if source.kind == "execution":
            return self._render_execution(source, run_context)
        raise RenderError(f"Unsupported alert source: {source.kind}")

    def _render_raw(self, source: RawSource, run_context: RunContext) -> Optional[str]:
        if source.payload is None:
            return None

        rendered = self.renderer.render_string(source.payload, run_context.variables)
        if not rendered.strip():
            return None
        return rendered

    def _render_execution(self, source: ExecutionSource, run_context: RunContext) -> str:
        context = execution_map(
            run_context,
            execution_id=source.execution_id,
            custom_fields=source.custom_fields,
            custom_message=source.custom_message,
        )
        context.update({
            "routingKey": source.routing_key,
            "eventAction": source.event_action,
            "payloadSummary": source.payload_summary,
            "dedupKey": source.dedup_key,
        })

        text = self.renderer.render_template(source.template_id, context)

        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            raise RenderError(
                f"Template {source.template_id} did not produce valid JSON: {e}",
                template_id=source.template_id
            ) from e

        if not isinstance(document, dict):
            raise RenderError(
                f"Template {source.template_id} must produce a JSON object",
                template_id=source.template_id
            )

        return json.dumps(self._merge_routing(document, source))

    def _merge_routing(self, document: Dict[str, Any], source: ExecutionSource) -> Dict[str, Any]:
        merged: Dict[str, Any] = {}
        if source.routing_key is not None:
            merged["routing_key"] = source.routing_key
        if source.event_action is not None:
            merged["event_action"] = source.event_action
        if source.dedup_key is not None:
            merged["dedup_key"] = source.dedup_key

        for key, value in document.items():
            merged.setdefault(key, value)

        if source.payload_summary is not None:
            payload = merged.get("payload")
            payload = dict(payload) if isinstance(payload, dict) else {}
            payload["summary"] = source.payload_summary
            merged["payload"] = payload

        return merged
