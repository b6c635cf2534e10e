"""Command-line interface for pagerduty-notify."""

from .main import ExitCode, app, main

__all__ = [
    'ExitCode',
    'app',
    'main',
]
