from fastapi import APIRouter

from app.features.analytics.routes.analytics import router as analytics_router
from app.features.auth.routes.auth import router as auth_router
from app.features.health.routes.health import router as health_router
from app.features.leads.routes.leads import router as leads_router
from app.features.notifications.routes.notifications import router as notifications_router
from app.features.profile.routes.profile import router as profile_router

api_router = APIRouter()

# Register all feature routes
api_router.include_router(auth_router)
api_router.include_router(leads_router)
api_router.include_router(profile_router)
api_router.include_router(notifications_router)
api_router.include_router(analytics_router)
api_router.include_router(health_router)
