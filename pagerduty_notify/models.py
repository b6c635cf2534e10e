"""Data models for the alert pipeline.

Requests and responses are frozen once built; an invocation creates exactly
one of each and never shares them with another invocation.
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from typing_extensions import Annotated


class AlertRequest(BaseModel):
    """Fully built outbound request."""

    model_config = ConfigDict(frozen=True)

    url: str = Field(description="Absolute target URL")
    headers: Dict[str, str] = Field(
        default_factory=dict,
        description="HTTP headers in insertion order"
    )
    body: str = Field(default="", description="Rendered request body, sent verbatim")
    method: Literal["POST"] = Field(default="POST", description="HTTP method")


class AlertResponse(BaseModel):
    """Status and body returned by the remote API."""

    model_config = ConfigDict(frozen=True)

    status_code: int = Field(description="HTTP status code")
    body: str = Field(default="", description="Response body text")


class OutcomeStatus(str, Enum):
    """Result of classifying a response."""
    SUCCESS = "success"
    FAILURE = "failure"


class DispatchOutcome(BaseModel):
    """Classified result of one dispatch."""

    model_config = ConfigDict(frozen=True)

    status: OutcomeStatus
    status_code: Optional[int] = Field(default=None, description="HTTP status code")
    reason: Optional[str] = Field(default=None, description="Why the dispatch failed")
    response_body: Optional[str] = Field(
        default=None,
        description="Response body kept for diagnostics"
    )

    @property
    def success(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS

    @classmethod
    def succeeded(cls, response: AlertResponse) -> "DispatchOutcome":
        return cls(
            status=OutcomeStatus.SUCCESS,
            status_code=response.status_code,
            response_body=response.body
        )

    @classmethod
    def failed(cls, reason: str, response: Optional[AlertResponse] = None) -> "DispatchOutcome":
        return cls(
            status=OutcomeStatus.FAILURE,
            status_code=response.status_code if response else None,
            reason=reason,
            response_body=response.body if response else None
        )


class RawSource(BaseModel):
    """Caller supplied payload, rendered as an inline template."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["raw"] = "raw"
    payload: Optional[str] = Field(
        default=None,
        description="Events API JSON text; must include routing_key and event_action"
    )


class ExecutionSource(BaseModel):
    """Alert built from a workflow execution and the built-in template."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["execution"] = "execution"
    execution_id: Optional[str] = Field(
        default=None,
        description="Execution to report; defaults to the current run"
    )
    routing_key: Optional[str] = Field(default=None, description="PagerDuty integration key")
    event_action: Optional[str] = Field(
        default=None,
        description="Event action: trigger, acknowledge or resolve"
    )
    payload_summary: Optional[str] = Field(default=None, description="Alert summary line")
    dedup_key: Optional[str] = Field(default=None, description="Deduplication key")
    custom_fields: Dict[str, Any] = Field(
        default_factory=dict,
        description="Extra fields added to the alert details"
    )
    custom_message: Optional[str] = Field(default=None, description="Free text message")
    template_id: str = Field(
        default="pagerduty-template",
        description="Built-in template used to render the body"
    )


AlertSource = Annotated[Union[RawSource, ExecutionSource], Field(discriminator="kind")]


EVENT_ACTIONS: List[str] = ["trigger", "acknowledge", "resolve"]
