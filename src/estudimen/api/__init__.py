"""API package."""

from fastapi import APIRouter

from estudimen.api.auth_routes import router as auth_router
from estudimen.api.key_routes import router as key_router

router = APIRouter()
router.include_router(auth_router)
router.include_router(key_router)

__all__ = ["router"]
