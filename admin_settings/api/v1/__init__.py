"""API v1 router aggregator."""

from fastapi import APIRouter

from admin_settings.api.v1 import settings

api_router = APIRouter(tags=["API v1"])

api_router.include_router(settings.router)
api_router.include_router(settings.public_router)
