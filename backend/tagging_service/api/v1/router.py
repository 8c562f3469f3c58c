"""API v1 router."""
from fastapi import APIRouter

from tagging_service.api.v1 import tags

api_router: APIRouter = APIRouter()
api_router.include_router(tags.router, tags=["tags"])
api_router.include_router(tags.resources_router, tags=["resources"])
