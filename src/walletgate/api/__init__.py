"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Unlike a blanket include_router(dependencies=...) guard, each
route here picks its own gate chain through Depends(guard(...)), since
the auth router mixes open routes (login, refresh) with protected ones
(me, logout).
"""

from fastapi import APIRouter

from walletgate.api.admin import router as admin_router
from walletgate.api.auth import router as auth_router
from walletgate.api.health import router as health_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])
api_router.include_router(admin_router, tags=["admin"])
