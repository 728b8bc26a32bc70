"""API routers for the Showroom Market backend."""
from fastapi import APIRouter

from . import admin, checkout, health, psp


def get_api_router() -> APIRouter:
    """Return the root API router."""

    api_router = APIRouter()
    api_router.include_router(health.router)
    api_router.include_router(checkout.router)
    api_router.include_router(psp.router)
    api_router.include_router(admin.router)
    return api_router
