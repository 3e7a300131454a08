# Ensure tests import the service package from this checkout first.
import os
import socket
import sys

import httpx
import pytest

SERVICE_ROOT = os.path.dirname(__file__)

if SERVICE_ROOT not in sys.path:
    sys.path.insert(0, SERVICE_ROOT)

from forward_proxy.proxy.transport import TransportConfig, create_client  # noqa: E402


@pytest.fixture
def make_client():
    """Build an outbound client whose upstream is the given handler function."""

    def _make_client(handler, config: TransportConfig = None) -> httpx.AsyncClient:
        return create_client(
            config or TransportConfig(), transport=httpx.MockTransport(handler)
        )

    return _make_client


@pytest.fixture
def closed_port():
    """A local TCP port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    return port
