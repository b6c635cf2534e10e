"""PagerDuty alert dispatch for workflow executions.

Renders an Events API v2 payload, posts it once and classifies the response.
"""

from .config import ConnectionOptions, NotifierSettings, build_options, load_settings
from .exceptions import (
    ConfigurationError,
    NotifyError,
    RemoteRejection,
    RenderError,
    TransportError,
)
from .execution import Execution, ExecutionState, RunContext, TaskRun
from .models import (
    AlertRequest,
    AlertResponse,
    DispatchOutcome,
    ExecutionSource,
    OutcomeStatus,
    RawSource,
)
from .pipeline import AlertPipeline, PipelineRun, PipelineState
from .tasks import PagerDutyAlert, PagerDutyExecution

__version__ = "1.0.0"

__all__ = [
    # Settings
    'ConnectionOptions',
    'NotifierSettings',
    'build_options',
    'load_settings',

    # Errors
    'NotifyError',
    'ConfigurationError',
    'RenderError',
    'TransportError',
    'RemoteRejection',

    # Host context
    'Execution',
    'ExecutionState',
    'RunContext',
    'TaskRun',

    # Models
    'AlertRequest',
    'AlertResponse',
    'DispatchOutcome',
    'OutcomeStatus',
    'RawSource',
    'ExecutionSource',

    # Pipeline and tasks
    'AlertPipeline',
    'PipelineRun',
    'PipelineState',
    'PagerDutyAlert',
    'PagerDutyExecution',
]
