from typing import Optional

from fastapi import Request


def client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None
