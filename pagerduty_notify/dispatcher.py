"""HTTP dispatch of a single alert request.

Each call opens its own client and closes it on every exit path. There is
exactly one POST per call, with no retry loop.
"""

import asyncio
import logging
import time
from typing import Any, Dict, Optional

import httpx

from .config import ConnectionOptions
from .exceptions import TransportError
from .models import AlertRequest, AlertResponse


logger = logging.getLogger(__name__)

USER_AGENT = "pagerduty-notify/1.0"


class Dispatcher:
    """Sends one request per call over a call-scoped httpx client."""

    def __init__(
        self,
        options: Optional[ConnectionOptions] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.options = options or ConnectionOptions()
        # Test hook; production traffic goes through httpx's default transport
        self.transport = transport

    def _client_kwargs(self) -> Dict[str, Any]:
        options = self.options
        kwargs: Dict[str, Any] = {
            "timeout": httpx.Timeout(
                timeout=options.read_timeout,
                connect=options.connect_timeout
            ),
            "verify": options.verify_ssl,
            "follow_redirects": options.follow_redirects,
            "headers": {"User-Agent": USER_AGENT},
        }

        if options.basic_auth is not None:
            kwargs["auth"] = httpx.BasicAuth(options.basic_auth.username, options.basic_auth.password)

        if options.proxy is not None:
            proxy_auth = None
            if options.proxy.username:
                proxy_auth = (options.proxy.username, options.proxy.password or "")
            kwargs["proxy"] = httpx.Proxy(options.proxy.url, auth=proxy_auth)

        if self.transport is not None:
            kwargs["transport"] = self.transport

        return kwargs

    def create_client(self) -> httpx.AsyncClient:
        """Create the client used for one call."""
        return httpx.AsyncClient(**self._client_kwargs())

    async def send(self, request: AlertRequest) -> AlertResponse:
        """POST the request and return the raw response.

        Args:
            request: Built alert request

        Returns:
            Status code and body of the remote response

        Raises:
            TransportError: On connection failure, timeout or protocol error
        """
        start_time = time.time()

        try:
            async with self.create_client() as client:
                response = await client.request(
                    method=request.method,
                    url=request.url,
                    headers=request.headers,
                    content=request.body.encode("utf-8"),
                )
                body = response.text
        except httpx.TimeoutException as e:
            raise TransportError(f"Request to {request.url} timed out: {e}", url=request.url) from e
        except httpx.RequestError as e:
            raise TransportError(f"Request to {request.url} failed: {e}", url=request.url) from e

        response_time_ms = (time.time() - start_time) * 1000
        logger.debug(
            "POST %s returned %s in %.1fms",
            request.url, response.status_code, response_time_ms
        )
        return AlertResponse(status_code=response.status_code, body=body)

    def send_sync(self, request: AlertRequest) -> AlertResponse:
        """Blocking variant of ``send``."""
        return asyncio.run(self.send(request))
