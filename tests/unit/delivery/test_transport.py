"""
Module: test_transport.py
Description: Unit tests for the httpx-based transport.
"""

import json

import httpx
import pytest

from hookrelay.errors import TransportError


class TestHttpTransport:
    """Test cases for HttpTransport.send."""

    @pytest.mark.asyncio
    async def test_posts_body_and_headers(self, transport, endpoint):
        response = await transport.send(
            "https://example.com/hook",
            json.dumps({'a': 1}),
            {'Content-Type': 'application/json', 'X-Event-Id': 'e-1'},
            timeout=5.0,
            connect_timeout=2.0
        )

        assert response.status_code == 200
        assert response.body == "ok"
        request = endpoint.requests[0]
        assert request.method == "POST"
        assert json.loads(request.content) == {'a': 1}
        assert request.headers['X-Event-Id'] == 'e-1'

    @pytest.mark.asyncio
    async def test_error_statuses_are_returned(self, transport, endpoint):
        endpoint.responses = [503]

        response = await transport.send("https://example.com/hook", "{}", {}, timeout=5.0, connect_timeout=2.0)

        assert response.status_code == 503
        assert "503" in response.body

    @pytest.mark.asyncio
    @pytest.mark.parametrize("exc", [httpx.ConnectError, httpx.ReadTimeout, httpx.ConnectTimeout])
    async def test_network_failures_raise_transient_error(self, transport, endpoint, exc):
        endpoint.responses = [exc]

        with pytest.raises(TransportError) as info:
            await transport.send("https://example.com/hook", "{}", {}, timeout=5.0, connect_timeout=2.0)

        assert info.value.transient is True
        assert isinstance(info.value.cause, exc)

    @pytest.mark.asyncio
    async def test_unsupported_scheme_is_not_transient(self, transport, endpoint):
        endpoint.responses = [httpx.UnsupportedProtocol]

        with pytest.raises(TransportError) as info:
            await transport.send("ftp://example.com/hook", "{}", {}, timeout=5.0, connect_timeout=2.0)

        assert info.value.transient is False

    @pytest.mark.asyncio
    async def test_unparsable_url_is_not_transient(self, transport, endpoint):
        with pytest.raises(TransportError) as info:
            await transport.send("https://example.com/\x00hook", "{}", {}, timeout=5.0, connect_timeout=2.0)

        assert info.value.transient is False
        assert isinstance(info.value.cause, httpx.InvalidURL)
        assert endpoint.requests == []
