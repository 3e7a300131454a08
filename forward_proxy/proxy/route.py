import logging

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from opentelemetry import trace

from forward_proxy.proxy.errors import InputError, ProxyError, UpstreamError
from forward_proxy.proxy.forwarder import forward
from forward_proxy.proxy.outbound import build_outbound_request
from forward_proxy.proxy.relay import relay_error, relay_options, relay_response
from forward_proxy.proxy.target import resolve_target_url, strip_mount_prefix
from forward_proxy.utils.exception_logging import log_exception_with_details
from forward_proxy.utils.traced_requests import traced_request
from forward_proxy.vars import PROXY_PREFIX

router = APIRouter(prefix=PROXY_PREFIX)
tracer = trace.get_tracer(__name__)
logger = logging.getLogger("forward_proxy")

PROXY_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]


def raw_request_path(request: Request) -> str:
    """The request path with its percent-encoding intact."""
    raw_path = request.scope.get("raw_path")
    if not raw_path:
        return request.url.path
    return raw_path.decode("latin-1").split("?", 1)[0]


def get_http_client(request: Request) -> httpx.AsyncClient:
    """The outbound client created for the application at startup."""
    return request.app.state.http_client


async def forward_to_target(request: Request, client: httpx.AsyncClient) -> Response:
    """
    Run one request through the proxy pipeline: resolve the target from the
    path, build the outbound request, forward it and relay the outcome.

    Every failure ends in a response; nothing but ProxyError is expected
    from the pipeline stages.
    """
    try:
        sub_path = strip_mount_prefix(raw_request_path(request), PROXY_PREFIX)
        target_url = resolve_target_url(sub_path, str(request.url.query))
        outbound = build_outbound_request(
            request.method, target_url, await request.body()
        )
    except InputError as e:
        logger.warning(
            f"Rejected proxy request: {e.message}",
            extra={"url": str(request.url), "method": request.method},
        )
        return relay_error(e)

    with traced_request(
        tracer, "proxy_request", outbound.method, target_url, "Forwarding request"
    ) as span:
        try:
            upstream = await forward(client, outbound)
        except ProxyError as e:
            span.set_attribute("proxy.error", e.code)
            if isinstance(e, UpstreamError):
                span.set_attribute("proxy.status_code", e.status_code)
            log_exception_with_details(
                logger,
                "[Proxy] Request failed",
                e,
                level=logging.WARNING if isinstance(e, UpstreamError) else logging.ERROR,
                context={"target_url": target_url, "url": str(request.url)},
            )
            return relay_error(e)

        span.set_attribute("proxy.status_code", upstream.status_code)
        logger.info(
            "Request succeeded",
            extra={
                "target_url": target_url,
                "status": upstream.status_code,
                "content_type": upstream.content_type,
            },
        )
        return relay_response(upstream)


@router.api_route("", methods=PROXY_METHODS)
@router.api_route("/{path:path}", methods=PROXY_METHODS)
async def proxy_all(
    request: Request, client: httpx.AsyncClient = Depends(get_http_client)
):
    """Catch-all route that proxies requests to the target named in the path."""
    if request.method == "OPTIONS":
        return relay_options()
    return await forward_to_target(request, client)
