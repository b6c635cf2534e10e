"""Builds the immutable outbound request."""

from typing import Mapping, Optional
from urllib.parse import urlparse

from .config import ConnectionOptions
from .exceptions import ConfigurationError
from .models import AlertRequest


CONTENT_TYPE = "application/json"


def validate_url(url: Optional[str]) -> str:
    """Check that ``url`` is an absolute http(s) URI.

    Raises:
        ConfigurationError: If the URL is blank or malformed
    """
    if url is None or not url.strip():
        raise ConfigurationError("Missing required field: url", field="url")

    url = url.strip()
    try:
        parsed = urlparse(url)
        # Raises ValueError for a non-numeric or out of range port
        parsed.port
    except ValueError as e:
        raise ConfigurationError(f"url is not a valid URL: {e}", field="url", value=url) from e

    if parsed.scheme not in ("http", "https"):
        raise ConfigurationError("url must use http or https protocol", field="url", value=url)
    if not parsed.hostname:
        raise ConfigurationError("url must include a host", field="url", value=url)
    if any(ch.isspace() for ch in parsed.netloc):
        raise ConfigurationError("url host must not contain whitespace", field="url", value=url)

    return url


def build_request(
    url: Optional[str],
    headers: Optional[Mapping[str, str]] = None,
    body: Optional[str] = None,
    options: Optional[ConnectionOptions] = None
) -> AlertRequest:
    """Combine target, headers and body into one request.

    Header precedence, lowest first: connection option headers, caller
    headers, then ``Content-Type: application/json``. The body is used as
    given; it is not parsed or re-encoded.

    Args:
        url: Absolute target URL
        headers: Caller headers
        body: Rendered body, None sends an empty body
        options: Connection options carrying default headers

    Returns:
        Frozen AlertRequest
    """
    target = validate_url(url)

    merged = {}
    if options is not None:
        merged.update(options.headers)
    if headers:
        merged.update(headers)

    # Content-Type is fixed regardless of how the caller spelled it
    for name in [name for name in merged if name.lower() == "content-type"]:
        del merged[name]
    merged["Content-Type"] = CONTENT_TYPE

    return AlertRequest(url=target, headers=merged, body=body or "")
