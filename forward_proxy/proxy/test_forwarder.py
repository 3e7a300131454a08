import asyncio
import dataclasses

import httpx
import pytest

from forward_proxy.proxy.errors import TransportError, UpstreamError
from forward_proxy.proxy.forwarder import (
    OutboundResponse,
    accept_any_status,
    forward,
    reject_server_errors,
)
from forward_proxy.proxy.outbound import build_outbound_request
from forward_proxy.proxy.transport import TransportConfig, create_client


def _redirect_chain(hops: int):
    """Upstream answering /r/0 with `hops` redirects before a 200."""

    def handler(request: httpx.Request) -> httpx.Response:
        step = int(request.url.path.rsplit("/", 1)[-1])
        if step < hops:
            return httpx.Response(302, headers={"Location": f"/r/{step + 1}"})
        return httpx.Response(200, content=f"landed after {step}".encode())

    return handler


class TestTransportConfig:
    def test_defaults(self):
        config = TransportConfig()
        assert config.verify_tls is False
        assert config.max_redirects == 5

    def test_is_immutable(self):
        config = TransportConfig()
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.verify_tls = True

    @pytest.mark.asyncio
    async def test_client_follows_redirects_with_bound(self):
        async with create_client(TransportConfig(max_redirects=3)) as client:
            assert client.follow_redirects is True
            assert client.max_redirects == 3


class TestForward:
    @pytest.mark.asyncio
    async def test_success_returns_status_headers_and_body(self, make_client):
        def handler(request):
            return httpx.Response(
                200, headers={"Content-Type": "text/plain"}, content=b"hello"
            )

        async with make_client(handler) as client:
            outbound = build_outbound_request("GET", "https://www.example.com/foo")
            result = await forward(client, outbound)

        assert isinstance(result, OutboundResponse)
        assert result.status_code == 200
        assert result.content == b"hello"
        assert result.content_type == "text/plain"

    @pytest.mark.asyncio
    async def test_sends_method_headers_and_body(self, make_client):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["host"] = request.headers["host"]
            seen["user_agent"] = request.headers["user-agent"]
            seen["body"] = request.content
            return httpx.Response(201)

        async with make_client(handler) as client:
            outbound = build_outbound_request(
                "POST", "https://www.example.com/items", b'{"name": "x"}'
            )
            result = await forward(client, outbound)

        assert result.status_code == 201
        assert seen["method"] == "POST"
        assert seen["host"] == "www.example.com"
        assert seen["user_agent"].startswith("Mozilla/5.0")
        assert seen["body"] == b'{"name": "x"}'

    @pytest.mark.asyncio
    async def test_binary_body_is_byte_exact(self, make_client):
        payload = bytes([0x89, 0x50, 0x4E])

        def handler(request):
            return httpx.Response(
                200, headers={"Content-Type": "image/png"}, content=payload
            )

        async with make_client(handler) as client:
            result = await forward(
                client, build_outbound_request("GET", "https://www.example.com/a.png")
            )

        assert result.content == payload

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [200, 204, 301, 400, 403, 404, 418, 499])
    async def test_client_errors_are_not_proxy_errors(self, make_client, status):
        async with make_client(lambda request: httpx.Response(status)) as client:
            result = await forward(
                client, build_outbound_request("GET", "https://www.example.com/")
            )

        assert result.status_code == status

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [500, 502, 503])
    async def test_server_errors_are_returned_by_default(self, make_client, status):
        async with make_client(
            lambda request: httpx.Response(status, content=b"boom")
        ) as client:
            result = await forward(
                client, build_outbound_request("GET", "https://www.example.com/")
            )

        assert result.status_code == status
        assert result.content == b"boom"

    @pytest.mark.asyncio
    async def test_stricter_policy_raises_upstream_error(self, make_client):
        def handler(request):
            return httpx.Response(
                503, headers={"Retry-After": "10"}, content=b"unavailable"
            )

        async with make_client(handler) as client:
            with pytest.raises(UpstreamError) as exc_info:
                await forward(
                    client,
                    build_outbound_request("GET", "https://www.example.com/"),
                    accept_status=reject_server_errors,
                )

        assert exc_info.value.status_code == 503
        assert exc_info.value.headers["retry-after"] == "10"
        assert exc_info.value.content == b"unavailable"

    def test_policies(self):
        assert accept_any_status(599) is True
        assert reject_server_errors(499) is True
        assert reject_server_errors(500) is False

    @pytest.mark.asyncio
    async def test_five_redirects_are_followed(self, make_client):
        async with make_client(_redirect_chain(5)) as client:
            result = await forward(
                client, build_outbound_request("GET", "https://www.example.com/r/0")
            )

        assert result.status_code == 200
        assert result.content == b"landed after 5"

    @pytest.mark.asyncio
    async def test_sixth_redirect_is_transport_error(self, make_client):
        async with make_client(_redirect_chain(6)) as client:
            with pytest.raises(TransportError) as exc_info:
                await forward(
                    client,
                    build_outbound_request("GET", "https://www.example.com/r/0"),
                )

        assert exc_info.value.message
        assert isinstance(exc_info.value.__cause__, httpx.TooManyRedirects)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            httpx.ConnectError("Name or service not known"),
            httpx.ReadTimeout("timed out"),
            httpx.ConnectTimeout(""),
            httpx.RemoteProtocolError("Server disconnected"),
        ],
    )
    async def test_transport_failures_are_wrapped(self, make_client, error):
        def handler(request):
            raise error

        async with make_client(handler) as client:
            with pytest.raises(TransportError) as exc_info:
                await forward(
                    client, build_outbound_request("GET", "https://www.example.com/")
                )

        assert exc_info.value.message
        assert exc_info.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_connection_refused(self, closed_port):
        async with create_client(TransportConfig(timeout=5)) as client:
            with pytest.raises(TransportError) as exc_info:
                await forward(
                    client,
                    build_outbound_request("GET", f"http://127.0.0.1:{closed_port}/"),
                )

        assert exc_info.value.message

    @pytest.mark.asyncio
    async def test_unsupported_scheme_is_transport_error(self):
        async with create_client(TransportConfig()) as client:
            with pytest.raises(TransportError):
                await forward(
                    client, build_outbound_request("GET", "ftp://files.example.com/x")
                )

    @pytest.mark.asyncio
    async def test_concurrent_calls_are_independent(self, make_client):
        def handler(request):
            return httpx.Response(200, content=request.url.path.encode())

        async with make_client(handler) as client:
            results = await asyncio.gather(
                *[
                    forward(
                        client,
                        build_outbound_request("GET", f"https://www.example.com/{i}"),
                    )
                    for i in range(10)
                ]
            )

        assert [r.content for r in results] == [f"/{i}".encode() for i in range(10)]
