import logging
from dataclasses import dataclass, field
from typing import Callable, Dict

import httpx

from forward_proxy.proxy.errors import TransportError, UpstreamError
from forward_proxy.proxy.outbound import OutboundRequest

logger = logging.getLogger("forward_proxy")


@dataclass(frozen=True)
class OutboundResponse:
    status_code: int
    headers: Dict[str, str] = field(default_factory=dict)
    content: bytes = b""

    @property
    def content_type(self) -> str:
        for name, value in self.headers.items():
            if name.lower() == "content-type":
                return value
        return ""


def accept_any_status(status_code: int) -> bool:
    """Every received response is relayed, whatever its status."""
    return True


def reject_server_errors(status_code: int) -> bool:
    return status_code < 500


def _cause_message(exc: Exception) -> str:
    return str(exc) or type(exc).__name__


async def forward(
    client: httpx.AsyncClient,
    outbound: OutboundRequest,
    accept_status: Callable[[int], bool] = accept_any_status,
) -> OutboundResponse:
    """
    Perform the single upstream call for a proxied request.

    Redirects are followed by the client up to its configured bound. The
    body is read in full before returning. Nothing is retried.

    Raises:
        TransportError: when no response was obtained from the upstream
        UpstreamError: when a response was received but rejected by
            ``accept_status``
    """
    try:
        response = await client.request(
            method=outbound.method,
            url=outbound.url,
            headers=outbound.headers,
            content=outbound.body,
        )
    except (httpx.RequestError, httpx.InvalidURL) as e:
        logger.debug(f"Upstream call to {outbound.url} failed: {e!r}")
        raise TransportError(_cause_message(e)) from e

    upstream = OutboundResponse(
        status_code=response.status_code,
        headers=dict(response.headers.items()),
        content=response.content,
    )

    if not accept_status(upstream.status_code):
        raise UpstreamError(
            f"Upstream responded with status {upstream.status_code}",
            status_code=upstream.status_code,
            headers=upstream.headers,
            content=upstream.content,
        )
    return upstream
