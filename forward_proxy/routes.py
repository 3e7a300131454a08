from fastapi import APIRouter

from forward_proxy.health.route import router as health_router
from forward_proxy.proxy.route import router as proxy_router

router = APIRouter()
router.include_router(health_router)
router.include_router(proxy_router)
