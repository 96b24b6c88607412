"""API routes package."""

from fastapi import APIRouter

from vims.api.routes import (
    auth,
    blacklist,
    checkpoints,
    dashboard,
    logs,
    lpr,
    notifications,
    vip,
    visitors,
)

# Main API router
api_router = APIRouter(prefix="/api/v1")

# Include route modules
api_router.include_router(auth.router)
api_router.include_router(visitors.router)
api_router.include_router(checkpoints.router)
api_router.include_router(lpr.router)
api_router.include_router(blacklist.router)
api_router.include_router(vip.router)
api_router.include_router(logs.router)
api_router.include_router(notifications.router)
api_router.include_router(dashboard.router)
