"""Entry points invoked by the host workflow engine.

``PagerDutyAlert`` posts a raw Events API v2 payload, typically from an
``errors`` handler. ``PagerDutyExecution`` describes a whole execution with
the built-in template and is meant for flows started by a flow trigger.
Both return None; only fatal errors propagate.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel, Field, field_validator

from .config import NotifierSettings
from .execution import RunContext
from .models import EVENT_ACTIONS, AlertSource, ExecutionSource, RawSource
from .pipeline import AlertPipeline, PipelineRun
from .rendering import DEFAULT_TEMPLATE_ID


class PagerDutyTask(BaseModel, ABC):
    """Properties shared by both tasks."""

    url: str = Field(
        description="Events API endpoint such as https://events.pagerduty.com/v2/enqueue; supports templating"
    )
    options: Dict[str, Any] = Field(
        default_factory=dict,
        description="Connection option overrides (timeouts, proxy, basic_auth, headers)"
    )
    strict: Optional[bool] = Field(
        default=None,
        description="Fail the task on non-success responses; defaults to the settings value"
    )

    @abstractmethod
    def source(self) -> AlertSource:
        """Alert source rendered by the pipeline."""
        pass

    async def run(
        self,
        run_context: RunContext,
        settings: Optional[NotifierSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        trace: Optional[PipelineRun] = None
    ) -> None:
        pipeline = AlertPipeline(settings, transport=transport)
        await pipeline.run(
            self.url,
            self.source(),
            run_context,
            options=self.options,
            strict=self.strict,
            trace=trace,
        )

    def run_sync(self, run_context: RunContext, **kwargs) -> None:
        asyncio.run(self.run(run_context, **kwargs))


class PagerDutyAlert(PagerDutyTask):
    """Send a raw PagerDuty payload."""

    payload: Optional[str] = Field(
        default=None,
        description="Raw JSON string; must include routing_key and event_action. Supports templating."
    )

    def source(self) -> RawSource:
        return RawSource(payload=self.payload)


class PagerDutyExecution(PagerDutyTask):
    """Send a PagerDuty alert describing a flow execution.

    The alert lists the UI link, IDs, namespace, flow name, start date,
    duration and final status, plus the failing task when there is one.
    ``execution_id`` defaults to the current run.
    """

    routing_key: Optional[str] = Field(default=None, description="PagerDuty integration key")
    event_action: Optional[str] = Field(default=None, description="trigger, acknowledge or resolve")
    payload_summary: Optional[str] = Field(default=None, description="Alert summary line")
    dedup_key: Optional[str] = Field(default=None, description="Deduplication key")
    execution_id: Optional[str] = Field(default=None, description="Execution to report")
    custom_fields: Dict[str, Any] = Field(default_factory=dict, description="Extra alert details")
    custom_message: Optional[str] = Field(default=None, description="Free text message")
    template_id: str = Field(default=DEFAULT_TEMPLATE_ID, description="Template used for the body")

    @field_validator('event_action')
    @classmethod
    def validate_event_action(cls, v):
        if v is not None and v not in EVENT_ACTIONS:
            raise ValueError(f"event_action must be one of: {', '.join(EVENT_ACTIONS)}")
        return v

    def source(self) -> ExecutionSource:
        return ExecutionSource(
            execution_id=self.execution_id,
            routing_key=self.routing_key,
            event_action=self.event_action,
            payload_summary=self.payload_summary,
            dedup_key=self.dedup_key,
            custom_fields=self.custom_fields,
            custom_message=self.custom_message,
            template_id=self.template_id,
        )
