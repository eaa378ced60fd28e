from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.auth.models.user import Account
from app.features.auth.routes.auth import get_current_user
from app.features.notifications.schemas.notifications import (
    PushDeliveryResponse,
    SubscribeRequest,
    UnsubscribeRequest,
)
from app.features.notifications.services.push_service import PushNotificationService
from app.platform.config import settings
from app.platform.db.session import get_db
from app.platform.response import api_response

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/vapid-public-key", response_model=dict)
async def get_vapid_public_key():
    """Public VAPID key the browser needs to create a subscription."""
    return api_response(data={"public_key": settings.VAPID_PUBLIC_KEY})


@router.post("/subscribe", response_model=dict, status_code=status.HTTP_201_CREATED)
async def subscribe(
    request: SubscribeRequest,
    current_user: Account = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Register this browser for push notifications."""
    service = PushNotificationService(db)
    await service.save_subscription(
        current_user.id, request.subscription.model_dump(), request.device_info
    )
    return api_response(
        data={"subscribed": True},
        message="Push subscription saved",
        status_code=status.HTTP_201_CREATED,
    )


@router.post("/unsubscribe", response_model=dict)
async def unsubscribe(
    request: UnsubscribeRequest,
    current_user: Account = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Remove one device, or every device when no endpoint is given."""
    removed = await PushNotificationService(db).remove_subscriptions(current_user.id, request.endpoint)
    return api_response(data={"removed": removed}, message="Push subscription removed")


@router.post("/test", response_model=dict)
async def send_test_notification(
    current_user: Account = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    outcome = await PushNotificationService(db).send_test(current_user.id)
    return api_response(
        data=PushDeliveryResponse(**outcome),
        message="Test notification sent" if outcome["delivered"] else "No device received the test notification",
    )


@router.get("/diagnostics", response_model=dict)
async def push_diagnostics(
    current_user: Account = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = await PushNotificationService(db).diagnostics(current_user.id)
    return api_response(data=data, message="Notification diagnostics")
