"""Settings and connection options with proper precedence handling.

Settings are loaded once at process start and passed explicitly into every
pipeline. Sources, lowest precedence first:
defaults < config file < environment variables < CLI flags

Per-call connection overrides are merged over the process defaults with
``build_options``.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import ConfigurationError


logger = logging.getLogger(__name__)


class ProxyOptions(BaseModel):
    """HTTP proxy used for outbound calls."""
    url: str = Field(description="Proxy URL, e.g. http://proxy:3128")
    username: Optional[str] = Field(default=None, description="Proxy user")
    password: Optional[str] = Field(default=None, description="Proxy password")


class BasicAuthOptions(BaseModel):
    """Basic auth credentials sent with each call."""
    username: str
    password: str = ""


class ConnectionOptions(BaseModel):
    """Transport options shared by every call."""
    connect_timeout: float = Field(default=10.0, gt=0, description="Connect timeout in seconds")
    read_timeout: float = Field(default=30.0, gt=0, description="Read timeout in seconds")
    proxy: Optional[ProxyOptions] = Field(default=None, description="Outbound proxy")
    basic_auth: Optional[BasicAuthOptions] = Field(default=None, description="Basic auth credentials")
    headers: Dict[str, str] = Field(default_factory=dict, description="Extra request headers")
    verify_ssl: bool = Field(default=True, description="Verify TLS certificates")
    follow_redirects: bool = Field(default=False, description="Follow HTTP redirects")


class NotifierSettings(BaseModel):
    """Process wide settings, read-only after load."""
    connection: ConnectionOptions = Field(default_factory=ConnectionOptions)
    strict: bool = Field(
        default=False,
        description="Raise RemoteRejection on non-success responses instead of logging"
    )
    success_status_codes: List[int] = Field(
        default_factory=lambda: [200],
        description="HTTP status codes considered successful"
    )
    template_dirs: List[Path] = Field(
        default_factory=list,
        description="Extra directories searched for templates"
    )
    ui_base_url: str = Field(default="http://localhost:8080", description="Workflow UI base URL")
    log_level: str = Field(default="INFO", description="Logging level")

    # Metadata
    loaded_from: List[str] = Field(default_factory=list, description="Configuration sources")

    @field_validator('success_status_codes')
    @classmethod
    def validate_status_codes(cls, v):
        if not v:
            raise ValueError("success_status_codes cannot be empty")
        for code in v:
            if not (100 <= code <= 599):
                raise ValueError(f"Invalid HTTP status code: {code}")
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        level = v.upper()
        if level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ValueError("log_level must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL")
        return level


def merge_config(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge configuration dictionaries, with override taking precedence."""
    if not override:
        return dict(base)

    result = dict(base)

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, Mapping):
            result[key] = merge_config(result[key], value)
        else:
            result[key] = value

    return result


def build_options(
    defaults: ConnectionOptions,
    overrides: Optional[Mapping[str, Any]] = None
) -> ConnectionOptions:
    """Merge caller connection overrides over the process defaults.

    Args:
        defaults: Process wide connection options
        overrides: Caller supplied options, same shape as ConnectionOptions

    Returns:
        New ConnectionOptions; the defaults are left untouched

    Raises:
        ConfigurationError: If the merged options are invalid
    """
    if not overrides:
        return defaults

    merged = merge_config(defaults.model_dump(), overrides)
    try:
        return ConnectionOptions(**merged)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid connection options: {e}", field="options") from e


class ConfigurationLoader:
    """Loads and merges settings from multiple sources."""

    ENV_PREFIX = "PAGERDUTY_NOTIFY_"

    # Default configuration file names (searched in order)
    DEFAULT_CONFIG_FILES = [
        "pagerduty-notify.yaml",
        "pagerduty-notify.yml",
        ".pagerduty-notify.yaml",
        "pagerduty-notify.json",
    ]

    def __init__(self):
        self.loaded_sources: List[str] = []

    def load(
        self,
        config_file: Optional[Path] = None,
        cli_overrides: Optional[Dict[str, Any]] = None,
        search_paths: Optional[List[Path]] = None,
        environ: Optional[Mapping[str, str]] = None
    ) -> NotifierSettings:
        """Load settings with proper precedence.

        Args:
            config_file: Explicitly specified config file
            cli_overrides: CLI flag overrides
            search_paths: Paths to search for config files
            environ: Environment mapping, defaults to os.environ

        Returns:
            Merged settings

        Raises:
            ConfigurationError: If a source cannot be read or the result is invalid
        """
        self.loaded_sources = ["defaults"]
        config_data: Dict[str, Any] = {}

        if config_file:
            if not config_file.exists():
                raise ConfigurationError(
                    f"Configuration file not found: {config_file}",
                    field="config_file",
                    value=str(config_file)
                )
            config_data = merge_config(config_data, self._load_config_file(config_file))
            self.loaded_sources.append(f"config file: {config_file}")
        else:
            discovered = self._discover_config_file(search_paths or [Path.cwd()])
            if discovered:
                path, data = discovered
                config_data = merge_config(config_data, data)
                self.loaded_sources.append(f"auto-discovered: {path}")

        env_config = self._load_environment_variables(os.environ if environ is None else environ)
        if env_config:
            config_data = merge_config(config_data, env_config)
            self.loaded_sources.append("environment variables")

        if cli_overrides:
            config_data = merge_config(config_data, cli_overrides)
            self.loaded_sources.append("CLI flags")

        config_data["loaded_from"] = self.loaded_sources

        try:
            settings = NotifierSettings(**config_data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid settings: {e}") from e

        logger.debug("Loaded settings from %s", ", ".join(self.loaded_sources))
        return settings

    def _discover_config_file(self, search_paths: List[Path]):
        for search_path in search_paths:
            for config_filename in self.DEFAULT_CONFIG_FILES:
                config_path = search_path / config_filename
                if config_path.is_file():
                    return config_path, self._load_config_file(config_path)
        return None

    def _load_config_file(self, config_path: Path) -> Dict[str, Any]:
        try:
            content = config_path.read_text(encoding='utf-8')

            if config_path.suffix.lower() in ['.yaml', '.yml']:
                data = yaml.safe_load(content) or {}
            elif config_path.suffix.lower() == '.json':
                data = json.loads(content)
            else:
                raise ConfigurationError(f"Unsupported config file format: {config_path.suffix}")

        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file {config_path}: {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in config file {config_path}: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Error loading config file {config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {config_path} must contain a mapping")
        return data

    def _load_environment_variables(self, environ: Mapping[str, str]) -> Dict[str, Any]:
        config: Dict[str, Any] = {}

        env_mapping = {
            f"{self.ENV_PREFIX}STRICT": "strict",
            f"{self.ENV_PREFIX}UI_BASE_URL": "ui_base_url",
            f"{self.ENV_PREFIX}LOG_LEVEL": "log_level",
            f"{self.ENV_PREFIX}SUCCESS_STATUS_CODES": "success_status_codes",
            f"{self.ENV_PREFIX}TEMPLATE_DIRS": "template_dirs",
            f"{self.ENV_PREFIX}CONNECT_TIMEOUT": "connection.connect_timeout",
            f"{self.ENV_PREFIX}READ_TIMEOUT": "connection.read_timeout",
            f"{self.ENV_PREFIX}VERIFY_SSL": "connection.verify_ssl",
            f"{self.ENV_PREFIX}FOLLOW_REDIRECTS": "connection.follow_redirects",
            f"{self.ENV_PREFIX}PROXY_URL": "connection.proxy.url",
        }

        for env_var, config_path in env_mapping.items():
            env_value = environ.get(env_var)
            if env_value is not None:
                self._set_nested_value(config, config_path, self._convert_env_value(env_value, config_path))

        return config

    def _convert_env_value(self, value: str, config_path: str) -> Any:
        if config_path.endswith(('strict', '.verify_ssl', '.follow_redirects')):
            return value.lower() in ('true', '1', 'yes', 'on')

        try:
            if config_path.endswith(('_timeout',)):
                return float(value)
            if config_path == 'success_status_codes':
                return [int(code) for code in value.split(',') if code.strip()]
        except ValueError as e:
            raise ConfigurationError(f"Invalid value for {config_path}: {value}") from e

        if config_path == 'template_dirs':
            return [Path(p) for p in value.split(os.pathsep) if p]

        return value

    def _set_nested_value(self, config: Dict[str, Any], path: str, value: Any):
        keys = path.split('.')
        current = config

        for key in keys[:-1]:
            current = current.setdefault(key, {})

        current[keys[-1]] = value


def load_settings(
    config_file: Optional[Path] = None,
    cli_overrides: Optional[Dict[str, Any]] = None,
    search_paths: Optional[List[Path]] = None,
    environ: Optional[Mapping[str, str]] = None
) -> NotifierSettings:
    """Convenience function to load settings."""
    return ConfigurationLoader().load(config_file, cli_overrides, search_paths, environ)


def print_settings(settings: NotifierSettings, format: str = "yaml") -> str:
    """Format settings for display, with secrets masked."""
    data = settings.model_dump(mode="json", exclude={'loaded_from'})

    for secret_path in (("connection", "basic_auth"), ("connection", "proxy")):
        section = data
        for key in secret_path:
            section = section.get(key) if isinstance(section, dict) else None
        if isinstance(section, dict) and section.get("password"):
            section["password"] = "********"

    if format.lower() == "json":
        return json.dumps(data, indent=2)
    return yaml.safe_dump(data, default_flow_style=False, sort_keys=True)
