"""Render -> build -> dispatch -> classify pipeline.

One pipeline serves both raw and execution alerts; the alert source tag
decides how the body is rendered. Each invocation walks

    IDLE -> RENDERING -> BUILDING -> DISPATCHING -> CLASSIFYING -> DONE

and never steps back. A fatal error ends the run in DONE with the error
recorded on the ``PipelineRun``.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, List, Mapping, Optional

import httpx

from .classifier import classify
from .config import NotifierSettings, build_options
from .dispatcher import Dispatcher
from .exceptions import NotifyError, RemoteRejection
from .execution import RunContext
from .models import AlertRequest, AlertResponse, AlertSource, DispatchOutcome
from .rendering import JinjaRenderer, PayloadRenderer, Renderer
from .request_builder import build_request, validate_url


logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    """Stage of a single invocation."""
    IDLE = "idle"
    RENDERING = "rendering"
    BUILDING = "building"
    DISPATCHING = "dispatching"
    CLASSIFYING = "classifying"
    DONE = "done"


@dataclass
class PipelineRun:
    """Trace of one invocation."""

    state: PipelineState = PipelineState.IDLE
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None
    request: Optional[AlertRequest] = None
    response: Optional[AlertResponse] = None
    outcome: Optional[DispatchOutcome] = None
    error: Optional[Exception] = None
    transitions: List[PipelineState] = field(default_factory=lambda: [PipelineState.IDLE])

    def advance(self, state: PipelineState) -> None:
        logger.debug("Pipeline %s -> %s", self.state.value, state.value)
        self.state = state
        self.transitions.append(state)

    def finish(self, error: Optional[Exception] = None) -> None:
        self.error = error
        self.completed_at = datetime.now(timezone.utc)
        self.advance(PipelineState.DONE)


DispatcherFactory = Callable[..., Dispatcher]


class AlertPipeline:
    """Delivers one alert per ``run`` call.

    Args:
        settings: Process settings, shared read-only between invocations
        renderer: Template engine, defaults to Jinja2 with the settings' template dirs
        dispatcher_factory: Builds the dispatcher for a call; receives the merged
            ConnectionOptions
    """

    def __init__(
        self,
        settings: Optional[NotifierSettings] = None,
        renderer: Optional[Renderer] = None,
        dispatcher_factory: Optional[DispatcherFactory] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.settings = settings or NotifierSettings()
        self.renderer = renderer or JinjaRenderer(self.settings.template_dirs)
        self.payload_renderer = PayloadRenderer(self.renderer)
        self.transport = transport
        self.dispatcher_factory = dispatcher_factory or self._default_dispatcher

    def _default_dispatcher(self, options) -> Dispatcher:
        return Dispatcher(options, transport=self.transport)

    async def run(
        self,
        url: Optional[str],
        source: AlertSource,
        run_context: RunContext,
        options: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        strict: Optional[bool] = None,
        trace: Optional[PipelineRun] = None
    ) -> DispatchOutcome:
        """Render, build, send and classify one alert.

        Args:
            url: Target endpoint, e.g. https://events.pagerduty.com/v2/enqueue
            source: ``RawSource`` or ``ExecutionSource``
            run_context: Context of the invoking run
            options: Connection overrides merged over the settings defaults
            headers: Extra request headers
            strict: Overrides ``settings.strict`` for this call
            trace: Optional record filled in with states, request and response

        Returns:
            Classified outcome

        Raises:
            ConfigurationError: Blank or malformed URL, invalid options
            RenderError: Template failure
            TransportError: Network failure
            RemoteRejection: Non-success status while strict
        """
        run = trace if trace is not None else PipelineRun()
        strict = self.settings.strict if strict is None else strict

        try:
            # Fail fast before any payload rendering or network work
            if url and url.strip():
                url = self.renderer.render_string(url, run_context.variables)
            url = validate_url(url)
            connection = build_options(self.settings.connection, options)

            run.advance(PipelineState.RENDERING)
            body = self.payload_renderer.render(source, run_context)
            if body is None:
                logger.warning(
                    "Alert payload rendered empty for %s; sending an empty body, check the payload property",
                    url
                )
            else:
                logger.debug("Send PagerDuty alert: %s", body)

            run.advance(PipelineState.BUILDING)
            request = build_request(url, headers, body, connection)

            run.advance(PipelineState.DISPATCHING)
            dispatcher = self.dispatcher_factory(connection)
            response = await dispatcher.send(request)
            run.request = request
            run.response = response

            run.advance(PipelineState.CLASSIFYING)
            outcome = classify(response, self.settings.success_status_codes)
            run.outcome = outcome

            if not outcome.success and strict:
                raise RemoteRejection(outcome)

        except NotifyError as e:
            logger.error("Alert dispatch failed during %s: %s", run.state.value, e.message)
            run.finish(e)
            raise
        except Exception as e:
            logger.exception("Unexpected error during %s", run.state.value)
            run.finish(e)
            raise

        run.finish()
        return outcome

    def run_sync(self, url: Optional[str], source: AlertSource, run_context: RunContext, **kwargs) -> DispatchOutcome:
        """Blocking variant of ``run`` for callers without an event loop."""
        return asyncio.run(self.run(url, source, run_context, **kwargs))
