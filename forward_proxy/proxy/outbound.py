from dataclasses import dataclass, field
from typing import Dict, Optional

import httpx

from forward_proxy.proxy.errors import InputError

# Sent on every outbound call; inbound headers are never forwarded.
BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "zh-CN,zh;q=0.8,zh-TW;q=0.7,zh-HK;q=0.5,en-US;q=0.3,en;q=0.2",
    "Accept-Encoding": "gzip, deflate, br",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
    "Cache-Control": "max-age=0",
}


@dataclass(frozen=True)
class OutboundRequest:
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None


def target_hostname(target_url: str) -> str:
    """The target host as sent on the wire (lower-cased, IDNA-encoded)."""
    try:
        hostname = httpx.URL(target_url).raw_host.decode("ascii")
    except httpx.InvalidURL:
        hostname = None
    if not hostname:
        raise InputError("invalid target URL")
    return hostname


def build_outbound_request(
    method: str, target_url: str, body: Optional[bytes] = None
) -> OutboundRequest:
    """
    Assemble the upstream request: the fixed browser header template with
    Host set to the target's hostname, and the inbound body as opaque bytes.
    """
    headers = dict(BROWSER_HEADERS)
    headers["Host"] = target_hostname(target_url)
    return OutboundRequest(
        method=method.upper(),
        url=target_url,
        headers=headers,
        body=body or None,
    )
