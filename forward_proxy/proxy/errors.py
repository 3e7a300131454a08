from typing import Dict, Optional


class ProxyError(Exception):
    """Base class for failures of a single proxied call."""

    code = "proxy error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InputError(ProxyError):
    """The inbound request does not name a usable target."""

    code = "invalid request"


class TransportError(ProxyError):
    """No response could be obtained from the upstream (DNS, connect, TLS,
    timeout or redirect limit)."""

    code = "request failed"


class UpstreamError(ProxyError):
    """
    The upstream answered, but the acceptance policy classified the answer
    as an error. Carries the received response so it can be relayed as-is.
    """

    code = "upstream error"

    def __init__(
        self,
        message: str,
        status_code: int,
        headers: Optional[Dict[str, str]] = None,
        content: bytes = b"",
    ):
        super().__init__(message)
        self.status_code = status_code
        self.headers = headers or {}
        self.content = content
