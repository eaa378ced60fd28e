from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.auth.models.user import Account
from app.features.auth.routes.auth import get_current_user
from app.features.analytics.services.analytics_service import AnalyticsService
from app.platform.db.session import get_db
from app.platform.response import api_response

router = APIRouter(prefix="/analytics", tags=["Analytics"])


@router.get("", response_model=dict)
async def get_analytics(
    days: int = Query(7, ge=1, le=365, description="Number of days to look back"),
    current_user: Account = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Lead rollups for the caller's scope."""
    data = await AnalyticsService(db).get_analytics(current_user.id, days)
    return api_response(data=data, message="Analytics retrieved successfully")
