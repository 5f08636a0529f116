"""Top-level API router."""

from fastapi import APIRouter

from app.api.routes.admin import router as admin_router
from app.api.routes.catalogs import router as catalogs_router
from app.api.routes.health import router as health_router
from app.api.routes.me import router as me_router
from app.api.routes.misc_activities import router as misc_activities_router
from app.api.routes.projects import router as projects_router
from app.api.routes.proliferation import router as proliferation_router
from app.api.routes.social_media import router as social_media_router
from app.api.routes.training import router as training_router
from app.api.routes.visits import router as visits_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["health"])
api_router.include_router(me_router)
api_router.include_router(admin_router)
api_router.include_router(projects_router)
api_router.include_router(catalogs_router)
api_router.include_router(visits_router)
api_router.include_router(social_media_router)
api_router.include_router(misc_activities_router)
api_router.include_router(proliferation_router)
api_router.include_router(training_router)
