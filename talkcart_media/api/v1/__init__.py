from fastapi import APIRouter

from talkcart_media.api.v1.routers import health, media

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(media.router)

__all__ = ["api_router"]
