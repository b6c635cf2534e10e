"""Exceptions raised by the alert pipeline.

Every error carries a human readable message, a stable error code and a
details mapping so hosts can report failures without parsing strings.
"""

from typing import Any, Dict, Optional


class NotifyError(Exception):
    """Base error for the alert pipeline."""

    def __init__(
        self,
        message: str = "Alert dispatch failed",
        error_code: str = "notify_error",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(NotifyError):
    """Raised when the target URL or settings are missing or malformed."""

    def __init__(
        self,
        message: str = "Invalid alert configuration",
        field: Optional[str] = None,
        value: Optional[Any] = None
    ):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = value
        super().__init__(
            message=message,
            error_code="configuration_error",
            details=details
        )


class RenderError(NotifyError):
    """Raised when a payload template cannot be resolved."""

    def __init__(
        self,
        message: str = "Failed to render alert payload",
        template_id: Optional[str] = None
    ):
        super().__init__(
            message=message,
            error_code="render_error",
            details={"template_id": template_id} if template_id else {}
        )


class TransportError(NotifyError):
    """Raised when the HTTP call itself fails (refused, timeout, TLS)."""

    def __init__(
        self,
        message: str = "Alert transport failed",
        url: Optional[str] = None
    ):
        super().__init__(
            message=message,
            error_code="transport_error",
            details={"url": url} if url else {}
        )


class RemoteRejection(NotifyError):
    """Raised in strict mode when the remote API answers with a non-success status."""

    def __init__(self, outcome):
        self.outcome = outcome
        super().__init__(
            message=f"Remote API rejected alert: {outcome.reason}",
            error_code="remote_rejection",
            details={
                "status_code": outcome.status_code,
                "response_body": outcome.response_body,
            }
        )
