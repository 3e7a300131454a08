import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from forward_proxy.vars import PORT

router = APIRouter()
logger = logging.getLogger("forward_proxy")


def _iso_timestamp() -> str:
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@router.get("/health")
async def health():
    """Liveness check; does not touch the proxy pipeline."""
    logger.info("Health check")
    return {"status": "ok", "timestamp": _iso_timestamp(), "port": PORT}
