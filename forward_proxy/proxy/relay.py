from fastapi.responses import JSONResponse, Response

from forward_proxy.proxy.errors import InputError, ProxyError, UpstreamError
from forward_proxy.proxy.forwarder import OutboundResponse

DEFAULT_CONTENT_TYPE = "text/html"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}

RELAY_HEADERS = {**CORS_HEADERS, "X-Proxy-Response": "true"}

# Hop-by-hop headers that should NOT be relayed (RFC 2616)
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
}

# The body has already been decoded and is re-framed by the server
REFRAMED_HEADERS = {"content-length", "content-encoding"}


def relay_response(upstream: OutboundResponse) -> Response:
    """Copy a received upstream response back to the caller."""
    headers = dict(RELAY_HEADERS)
    headers["Content-Type"] = upstream.content_type or DEFAULT_CONTENT_TYPE
    return Response(
        content=upstream.content,
        status_code=upstream.status_code,
        headers=headers,
    )


def relay_options() -> Response:
    """Answer an OPTIONS request locally; it is never forwarded."""
    return Response(status_code=204, headers=CORS_HEADERS)


def relay_error(error: ProxyError) -> Response:
    """
    Turn a pipeline failure into the caller's response.

    - InputError: 400 with a JSON error body
    - UpstreamError: the upstream's own status, headers and body
    - anything else (TransportError): 500 with a JSON error body
    """
    if isinstance(error, UpstreamError):
        headers = {
            name: value
            for name, value in error.headers.items()
            if name.lower() not in HOP_BY_HOP_HEADERS | REFRAMED_HEADERS
        }
        return Response(
            content=error.content,
            status_code=error.status_code,
            headers=headers,
        )

    status_code = 400 if isinstance(error, InputError) else 500
    return JSONResponse(
        status_code=status_code,
        content={"error": error.code, "message": error.message},
    )
