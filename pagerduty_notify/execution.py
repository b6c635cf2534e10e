"""Workflow execution metadata supplied by the host engine.

The host hands every invocation a ``RunContext`` describing the current
execution, a lookup for other executions and the variables its expression
engine exposes. ``execution_map`` turns an execution into the template
context used by the built-in PagerDuty template.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field

from .exceptions import ConfigurationError


logger = logging.getLogger(__name__)


class ExecutionState(str, Enum):
    """Execution and task run states reported by the host."""
    CREATED = "CREATED"
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    FAILED = "FAILED"
    KILLED = "KILLED"
    CANCELLED = "CANCELLED"

    @property
    def is_failure(self) -> bool:
        return self in (ExecutionState.FAILED, ExecutionState.WARNING, ExecutionState.KILLED)


class TaskRun(BaseModel):
    """One task attempt inside an execution."""
    id: str
    task_id: str = Field(description="Task identifier in the flow")
    state: ExecutionState = ExecutionState.CREATED
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class Execution(BaseModel):
    """Execution metadata needed to describe a run in an alert."""
    id: str
    namespace: str
    flow_id: str
    state: ExecutionState = ExecutionState.RUNNING
    start_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    end_date: Optional[datetime] = None
    task_runs: List[TaskRun] = Field(default_factory=list)
    labels: Dict[str, str] = Field(default_factory=dict)

    def duration(self, now: Optional[datetime] = None) -> timedelta:
        end = self.end_date or now or datetime.now(timezone.utc)
        return end - self.start_date

    def first_failed(self) -> Optional[TaskRun]:
        """First task run in a failed or warning state, if any."""
        for task_run in self.task_runs:
            if task_run.state.is_failure:
                return task_run
        return None


ExecutionLookup = Callable[[str], Optional[Execution]]


@dataclass
class RunContext:
    """Host provided context for a single invocation."""

    execution: Execution
    variables: Dict[str, Any] = field(default_factory=dict)
    ui_base_url: str = "http://localhost:8080"
    lookup: Optional[ExecutionLookup] = None

    @property
    def execution_id(self) -> str:
        return self.execution.id

    def find_execution(self, execution_id: str) -> Execution:
        """Resolve an execution id, the current run included."""
        if execution_id == self.execution.id:
            return self.execution

        found = self.lookup(execution_id) if self.lookup else None
        if found is None:
            raise ConfigurationError(
                f"Execution not found: {execution_id}",
                field="execution_id",
                value=execution_id
            )
        return found

    def execution_link(self, execution: Execution) -> str:
        base = self.ui_base_url.rstrip("/")
        return f"{base}/ui/executions/{execution.namespace}/{execution.flow_id}/{execution.id}"


def format_duration(duration: timedelta) -> str:
    """Format a duration as ISO-8601, e.g. ``PT1M30.5S``."""
    total = duration.total_seconds()
    sign = "-" if total < 0 else ""
    total = abs(total)

    hours, remainder = divmod(total, 3600)
    minutes, seconds = divmod(remainder, 60)

    parts = [f"{sign}PT"]
    if hours:
        parts.append(f"{int(hours)}H")
    if minutes:
        parts.append(f"{int(minutes)}M")
    if seconds or (not hours and not minutes):
        parts.append(f"{seconds:g}S")
    return "".join(parts)


def execution_map(
    run_context: RunContext,
    execution_id: Optional[str] = None,
    custom_fields: Optional[Mapping[str, Any]] = None,
    custom_message: Optional[str] = None,
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """Build the template context describing an execution.

    Args:
        run_context: Context of the invoking run
        execution_id: Execution to describe, defaults to the current run
        custom_fields: Extra fields to list in the alert details
        custom_message: Optional free text message
        now: Reference time for running executions

    Returns:
        Template context mapping
    """
    execution = run_context.find_execution(execution_id or run_context.execution_id)

    context: Dict[str, Any] = {
        "execution": {
            "id": execution.id,
            "namespace": execution.namespace,
            "flowId": execution.flow_id,
            "state": execution.state.value,
            "labels": dict(execution.labels),
        },
        "link": run_context.execution_link(execution),
        "startDate": execution.start_date.isoformat(),
        "duration": format_duration(execution.duration(now)),
        "state": execution.state.value,
    }

    # Only failed or warning runs name the task that broke them
    if execution.state.is_failure:
        failed = execution.first_failed()
        if failed is not None:
            context["firstFailed"] = {
                "id": failed.id,
                "taskId": failed.task_id,
                "state": failed.state.value,
            }

    if custom_fields:
        context["customFields"] = dict(custom_fields)
    if custom_message:
        context["customMessage"] = custom_message

    logger.debug("Built execution map for %s (state=%s)", execution.id, execution.state.value)
    return context
