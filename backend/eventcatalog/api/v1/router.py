"""API v1 router -- aggregates all v1 endpoint routers."""

from fastapi import APIRouter

from eventcatalog.api.v1 import health, scraper

api_v1_router = APIRouter()

api_v1_router.include_router(health.router, tags=["health"])
api_v1_router.include_router(scraper.router, prefix="/scraper", tags=["scraper"])
