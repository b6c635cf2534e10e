"""Command-line entry point for pagerduty-notify using Typer.

Lets operators send the same alerts the workflow tasks send, outside a
running flow: a raw payload, or an execution described in a YAML/JSON file.
"""

import json
import logging
import sys
from enum import IntEnum
from pathlib import Path
from typing import Dict, List, Optional

import typer
import yaml
from pydantic import ValidationError
from typing_extensions import Annotated

from .. import __version__
from ..config import NotifierSettings, load_settings, print_settings
from ..exceptions import (
    ConfigurationError,
    RemoteRejection,
    RenderError,
    TransportError,
)
from ..execution import Execution, RunContext
from ..rendering import JinjaRenderer
from ..tasks import PagerDutyAlert, PagerDutyExecution, PagerDutyTask


class ExitCode(IntEnum):
    """CLI exit codes."""
    SUCCESS = 0            # Alert sent, or rejected while not strict
    REMOTE_REJECTION = 1   # Non-success response in strict mode
    CONFIG_ERROR = 3       # Bad URL, settings or template
    TRANSPORT_ERROR = 4    # Network failure


app = typer.Typer(
    name="pagerduty-notify",
    help="Send PagerDuty Events API v2 alerts",
    add_completion=False,
)


ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Settings file (YAML or JSON)")
]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")]
StrictOption = Annotated[
    Optional[bool],
    typer.Option("--strict/--no-strict", help="Exit non-zero when PagerDuty rejects the alert")
]
VarOption = Annotated[
    Optional[List[str]],
    typer.Option("--var", help="Template variable as key=value (repeatable)")
]


def _setup(config: Optional[Path], verbose: bool) -> NotifierSettings:
    overrides = {"log_level": "DEBUG"} if verbose else None
    try:
        settings = load_settings(config_file=config, cli_overrides=overrides)
    except ConfigurationError as e:
        typer.echo(f"❌ {e.message}", err=True)
        raise typer.Exit(code=ExitCode.CONFIG_ERROR.value)

    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return settings


def _parse_vars(pairs: Optional[List[str]]) -> Dict[str, str]:
    variables = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            typer.echo(f"❌ Invalid --var '{pair}', expected key=value", err=True)
            raise typer.Exit(code=ExitCode.CONFIG_ERROR.value)
        variables[key] = value
    return variables


def _load_execution(path: Path) -> Execution:
    try:
        content = path.read_text(encoding="utf-8")
        data = yaml.safe_load(content) if path.suffix.lower() in (".yaml", ".yml") else json.loads(content)
        return Execution(**data)
    except (OSError, ValueError, TypeError, yaml.YAMLError, ValidationError) as e:
        typer.echo(f"❌ Cannot load execution from {path}: {e}", err=True)
        raise typer.Exit(code=ExitCode.CONFIG_ERROR.value)


def _run_task(task: PagerDutyTask, run_context: RunContext, settings: NotifierSettings) -> None:
    try:
        task.run_sync(run_context, settings=settings)
    except RemoteRejection as e:
        typer.echo(f"❌ {e.message}", err=True)
        raise typer.Exit(code=ExitCode.REMOTE_REJECTION.value)
    except (ConfigurationError, RenderError) as e:
        typer.echo(f"❌ {e.message}", err=True)
        raise typer.Exit(code=ExitCode.CONFIG_ERROR.value)
    except TransportError as e:
        typer.echo(f"❌ {e.message}", err=True)
        raise typer.Exit(code=ExitCode.TRANSPORT_ERROR.value)

    typer.echo("✅ Alert dispatched")


@app.command(name="version")
def show_version():
    """Show version information."""
    typer.echo(f"pagerduty-notify v{__version__}")


@app.command()
def alert(
    url: Annotated[str, typer.Option("--url", help="Events API URL")],
    payload: Annotated[
        Optional[str],
        typer.Option("--payload", help="Raw JSON payload, or @path to read it from a file")
    ] = None,
    var: VarOption = None,
    strict: StrictOption = None,
    config: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """
    Send a raw Events API payload.

    Example:

        pagerduty-notify alert --url https://events.pagerduty.com/v2/enqueue --payload @event.json
    """
    settings = _setup(config, verbose)

    if payload and payload.startswith("@"):
        try:
            payload = Path(payload[1:]).read_text(encoding="utf-8")
        except OSError as e:
            typer.echo(f"❌ Cannot read payload file: {e}", err=True)
            raise typer.Exit(code=ExitCode.CONFIG_ERROR.value)

    # Without a host run, a placeholder execution stands in for the current one
    run_context = RunContext(
        execution=Execution(id="cli", namespace="cli", flow_id="cli"),
        variables=_parse_vars(var),
        ui_base_url=settings.ui_base_url,
    )
    _run_task(PagerDutyAlert(url=url, payload=payload, strict=strict), run_context, settings)


@app.command()
def execution(
    url: Annotated[str, typer.Option("--url", help="Events API URL")],
    execution_file: Annotated[
        Path,
        typer.Option("--execution-file", "-e", help="Execution description (YAML or JSON)")
    ],
    routing_key: Annotated[Optional[str], typer.Option("--routing-key", help="Integration key")] = None,
    event_action: Annotated[
        str,
        typer.Option("--event-action", help="trigger, acknowledge or resolve")
    ] = "trigger",
    summary: Annotated[Optional[str], typer.Option("--summary", help="Alert summary")] = None,
    dedup_key: Annotated[Optional[str], typer.Option("--dedup-key", help="Deduplication key")] = None,
    message: Annotated[Optional[str], typer.Option("--message", help="Custom message")] = None,
    field: Annotated[
        Optional[List[str]],
        typer.Option("--field", help="Custom field as key=value (repeatable)")
    ] = None,
    template: Annotated[Optional[str], typer.Option("--template", help="Template id")] = None,
    strict: StrictOption = None,
    config: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """
    Send an alert describing an execution.

    Example:

        pagerduty-notify execution --url https://events.pagerduty.com/v2/enqueue \\
            --execution-file execution.yaml --routing-key R0UT1NGKEY --summary "Nightly ETL failed"
    """
    settings = _setup(config, verbose)
    run_context = RunContext(
        execution=_load_execution(execution_file),
        ui_base_url=settings.ui_base_url,
    )

    task_args = dict(
        url=url,
        routing_key=routing_key,
        event_action=event_action,
        payload_summary=summary,
        dedup_key=dedup_key,
        custom_message=message,
        custom_fields=_parse_vars(field),
        strict=strict,
    )
    if template:
        task_args["template_id"] = template

    try:
        task = PagerDutyExecution(**task_args)
    except ValidationError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(code=ExitCode.CONFIG_ERROR.value)

    _run_task(task, run_context, settings)


@app.command(name="config")
def show_config(
    config: ConfigOption = None,
    output_format: Annotated[str, typer.Option("--format", help="yaml or json")] = "yaml",
    templates: Annotated[bool, typer.Option("--templates", help="Also list available templates")] = False,
):
    """Print the effective settings, secrets masked."""
    try:
        settings = load_settings(config_file=config)
    except ConfigurationError as e:
        typer.echo(f"❌ {e.message}", err=True)
        raise typer.Exit(code=ExitCode.CONFIG_ERROR.value)

    typer.echo(print_settings(settings, output_format))
    typer.echo(f"# loaded from: {', '.join(settings.loaded_from)}")

    if templates:
        for template_id in JinjaRenderer(settings.template_dirs).list_templates():
            typer.echo(f"template: {template_id}")


def main():
    app()


if __name__ == "__main__":
    sys.exit(main())
