"""Unit tests for the HTTP dispatcher."""

import base64

import httpx
import pytest

from pagerduty_notify.config import ConnectionOptions
from pagerduty_notify.dispatcher import USER_AGENT, Dispatcher
from pagerduty_notify.exceptions import TransportError
from pagerduty_notify.request_builder import build_request


@pytest.fixture
def request_(pagerduty_url, raw_payload):
    return build_request(pagerduty_url, headers={"X-Team": "platform"}, body=raw_payload)


class TestDispatcher:
    """Test single-call dispatch."""

    @pytest.mark.asyncio
    async def test_sends_one_post(self, request_, ok_handler, ok_transport, raw_payload):
        response = await Dispatcher(transport=ok_transport).send(request_)

        assert response.status_code == 200
        assert response.body == '{"status":"success"}'
        assert ok_handler.call_count == 1

        sent = ok_handler.requests[0]
        assert sent.method == "POST"
        assert sent.content == raw_payload.encode("utf-8")
        assert sent.headers["Content-Type"] == "application/json"
        assert sent.headers["X-Team"] == "platform"
        assert sent.headers["User-Agent"] == USER_AGENT

    @pytest.mark.asyncio
    async def test_error_status_returned_not_raised(self, request_, make_handler):
        handler = make_handler(status_code=500, body="server error")

        response = await Dispatcher(transport=httpx.MockTransport(handler)).send(request_)

        assert response.status_code == 500
        assert response.body == "server error"
        assert handler.call_count == 1

    @pytest.mark.asyncio
    async def test_connection_refused_raises_transport_error(self, request_, make_handler):
        handler = make_handler(error=httpx.ConnectError("Connection refused"))

        with pytest.raises(TransportError) as exc_info:
            await Dispatcher(transport=httpx.MockTransport(handler)).send(request_)

        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
        assert exc_info.value.details["url"] == request_.url
        # No retry
        assert handler.call_count == 1

    @pytest.mark.asyncio
    async def test_timeout_raises_transport_error(self, request_, make_handler):
        handler = make_handler(error=httpx.ReadTimeout("timed out"))

        with pytest.raises(TransportError) as exc_info:
            await Dispatcher(transport=httpx.MockTransport(handler)).send(request_)

        assert "timed out" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_basic_auth_header(self, request_, ok_handler, ok_transport):
        options = ConnectionOptions(basic_auth={"username": "ops", "password": "s3cret"})

        await Dispatcher(options, transport=ok_transport).send(request_)

        expected = "Basic " + base64.b64encode(b"ops:s3cret").decode("ascii")
        assert ok_handler.requests[0].headers["Authorization"] == expected

    @pytest.mark.asyncio
    async def test_client_closed_after_failure(self, request_, make_handler, monkeypatch):
        handler = make_handler(error=httpx.ConnectError("Connection refused"))
        dispatcher = Dispatcher(transport=httpx.MockTransport(handler))
        clients = []

        original = dispatcher.create_client

        def tracking_client():
            client = original()
            clients.append(client)
            return client

        monkeypatch.setattr(dispatcher, "create_client", tracking_client)

        with pytest.raises(TransportError):
            await dispatcher.send(request_)

        assert len(clients) == 1
        assert clients[0].is_closed

    def test_client_options(self):
        options = ConnectionOptions(
            connect_timeout=2.0,
            read_timeout=9.0,
            follow_redirects=True,
            proxy={"url": "http://proxy:3128", "username": "p", "password": "q"},
        )

        kwargs = Dispatcher(options)._client_kwargs()

        assert kwargs["timeout"] == httpx.Timeout(9.0, connect=2.0)
        assert kwargs["follow_redirects"] is True
        assert kwargs["verify"] is True
        assert isinstance(kwargs["proxy"], httpx.Proxy)
        assert "transport" not in kwargs

    def test_send_sync(self, request_, ok_handler, ok_transport):
        response = Dispatcher(transport=ok_transport).send_sync(request_)

        assert response.status_code == 200
        assert ok_handler.call_count == 1
