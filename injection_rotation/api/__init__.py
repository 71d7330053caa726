from fastapi import APIRouter

from .health import router as health_router
from .injection import router as injection_router

api_router = APIRouter()
api_router.include_router(health_router, prefix="/health", tags=["health"])
api_router.include_router(injection_router, prefix="/injection", tags=["injection"])

__all__ = ["api_router"]
