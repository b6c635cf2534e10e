"""Unit tests for the command-line interface."""

import os

import httpx
import pytest
import yaml
from typer.testing import CliRunner

from pagerduty_notify.cli import ExitCode, app
from pagerduty_notify.dispatcher import Dispatcher


runner = CliRunner()


@pytest.fixture
def mock_transport(monkeypatch):
    """Route every dispatcher built by the CLI through a mock transport."""

    def install(handler):
        original_init = Dispatcher.__init__

        def patched_init(self, options=None, transport=None):
            original_init(self, options, transport=httpx.MockTransport(handler))

        monkeypatch.setattr(Dispatcher, "__init__", patched_init)
        return handler

    return install


@pytest.fixture
def isolated_env(monkeypatch, tmp_path):
    """Run without picking up config files or environment settings."""
    monkeypatch.chdir(tmp_path)
    for name in list(os.environ):
        if name.startswith("PAGERDUTY_NOTIFY_"):
            monkeypatch.delenv(name)
    return tmp_path


@pytest.fixture
def execution_file(isolated_env, failed_execution):
    path = isolated_env / "execution.yaml"
    path.write_text(yaml.safe_dump(failed_execution.model_dump(mode="json")))
    return path


class TestAlertCommand:
    """Test `pagerduty-notify alert`."""

    def test_sends_payload(self, isolated_env, mock_transport, ok_handler, pagerduty_url, raw_payload):
        mock_transport(ok_handler)

        result = runner.invoke(app, ["alert", "--url", pagerduty_url, "--payload", raw_payload])

        assert result.exit_code == ExitCode.SUCCESS
        assert ok_handler.requests[0].content.decode("utf-8") == raw_payload

    def test_payload_from_file(self, isolated_env, mock_transport, ok_handler, pagerduty_url, raw_payload):
        mock_transport(ok_handler)
        (isolated_env / "event.json").write_text(raw_payload)

        result = runner.invoke(app, ["alert", "--url", pagerduty_url, "--payload", "@event.json"])

        assert result.exit_code == ExitCode.SUCCESS
        assert ok_handler.requests[0].content.decode("utf-8") == raw_payload

    def test_variables(self, isolated_env, mock_transport, ok_handler, pagerduty_url):
        mock_transport(ok_handler)

        result = runner.invoke(app, [
            "alert", "--url", pagerduty_url,
            "--payload", '{"routing_key": "{{ key }}", "event_action": "trigger"}',
            "--var", "key=R0UT1NG",
        ])

        assert result.exit_code == ExitCode.SUCCESS
        assert ok_handler.last_json()["routing_key"] == "R0UT1NG"

    def test_invalid_url(self, isolated_env, mock_transport, ok_handler, raw_payload):
        mock_transport(ok_handler)

        result = runner.invoke(app, ["alert", "--url", "not-a-url", "--payload", raw_payload])

        assert result.exit_code == ExitCode.CONFIG_ERROR
        assert ok_handler.call_count == 0

    def test_rejection_permissive_by_default(self, isolated_env, mock_transport, make_handler, pagerduty_url, raw_payload):
        mock_transport(make_handler(status_code=500, body="server error"))

        result = runner.invoke(app, ["alert", "--url", pagerduty_url, "--payload", raw_payload])

        assert result.exit_code == ExitCode.SUCCESS

    def test_rejection_strict(self, isolated_env, mock_transport, make_handler, pagerduty_url, raw_payload):
        mock_transport(make_handler(status_code=500, body="server error"))

        result = runner.invoke(app, ["alert", "--url", pagerduty_url, "--payload", raw_payload, "--strict"])

        assert result.exit_code == ExitCode.REMOTE_REJECTION

    def test_transport_error(self, isolated_env, mock_transport, make_handler, pagerduty_url, raw_payload):
        mock_transport(make_handler(error=httpx.ConnectError("Connection refused")))

        result = runner.invoke(app, ["alert", "--url", pagerduty_url, "--payload", raw_payload])

        assert result.exit_code == ExitCode.TRANSPORT_ERROR


class TestExecutionCommand:
    """Test `pagerduty-notify execution`."""

    def test_sends_execution_alert(self, execution_file, mock_transport, ok_handler, pagerduty_url):
        mock_transport(ok_handler)

        result = runner.invoke(app, [
            "execution", "--url", pagerduty_url,
            "--execution-file", str(execution_file),
            "--routing-key", "R0UT1NG",
            "--summary", "Nightly ETL failed",
            "--field", "team=data",
        ])

        assert result.exit_code == ExitCode.SUCCESS
        body = ok_handler.last_json()
        assert body["routing_key"] == "R0UT1NG"
        assert body["event_action"] == "trigger"
        assert body["payload"]["summary"] == "Nightly ETL failed"
        assert body["payload"]["custom_details"]["Failed task"] == "transform"
        assert body["payload"]["custom_details"]["Custom fields"] == {"team": "data"}

    def test_invalid_event_action(self, execution_file, mock_transport, ok_handler, pagerduty_url):
        mock_transport(ok_handler)

        result = runner.invoke(app, [
            "execution", "--url", pagerduty_url,
            "--execution-file", str(execution_file),
            "--event-action", "escalate",
        ])

        assert result.exit_code == ExitCode.CONFIG_ERROR
        assert ok_handler.call_count == 0

    def test_missing_execution_file(self, isolated_env, pagerduty_url):
        result = runner.invoke(app, [
            "execution", "--url", pagerduty_url,
            "--execution-file", str(isolated_env / "absent.yaml"),
        ])

        assert result.exit_code == ExitCode.CONFIG_ERROR


class TestConfigCommand:
    """Test `pagerduty-notify config`."""

    def test_prints_effective_settings(self, isolated_env):
        (isolated_env / "settings.yaml").write_text("strict: true\n")

        result = runner.invoke(app, ["config", "--config", "settings.yaml", "--format", "json", "--templates"])

        assert result.exit_code == ExitCode.SUCCESS
        assert '"strict": true' in result.output
        assert "template: pagerduty-template" in result.output

    def test_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "pagerduty-notify v" in result.output
