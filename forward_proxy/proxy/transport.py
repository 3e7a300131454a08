from dataclasses import dataclass

import httpx

from forward_proxy.vars import PROXY_MAX_REDIRECTS, PROXY_TIMEOUT


@dataclass(frozen=True)
class TransportConfig:
    """
    Outbound transport settings, built once at startup and shared read-only
    by every forwarded call.

    Upstream certificates are not verified: the proxy is meant to reach
    origins with self-signed or otherwise invalid certificates.
    """

    verify_tls: bool = False
    timeout: float = PROXY_TIMEOUT
    max_redirects: int = PROXY_MAX_REDIRECTS


def create_client(
    config: TransportConfig, transport: httpx.AsyncBaseTransport = None
) -> httpx.AsyncClient:
    """Create the process-wide outbound client for a transport config."""
    return httpx.AsyncClient(
        verify=config.verify_tls,
        follow_redirects=True,
        max_redirects=config.max_redirects,
        timeout=httpx.Timeout(config.timeout),
        transport=transport,
    )
