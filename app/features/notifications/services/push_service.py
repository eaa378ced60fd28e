import asyncio
import json
from typing import Optional

from fastapi import HTTPException, status
from pywebpush import WebPushException, webpush
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.auth.models.user import AccountId
from app.features.notifications.models.notifications import PushSubscription
from app.features.notifications.services.preferences import NotificationPreferenceService
from app.platform.config import settings
from app.platform.exceptions import PushDeliveryError, PushRateLimited, PushSubscriptionGone
from app.platform.logger import get_logger

logger = get_logger(__name__)


class WebPushSender:
    """Delivers one payload to one browser subscription using VAPID."""

    def __init__(
        self,
        vapid_private_key: Optional[str] = None,
        vapid_subject: Optional[str] = None,
        ttl: int = 86400,
    ):
        self.vapid_private_key = vapid_private_key or settings.VAPID_PRIVATE_KEY
        self.vapid_subject = vapid_subject or settings.VAPID_SUBJECT
        self.ttl = ttl

    @property
    def configured(self) -> bool:
        return bool(self.vapid_private_key and settings.VAPID_PUBLIC_KEY)

    async def send(self, subscription_info: dict, payload: str) -> None:
        await asyncio.to_thread(self._send, subscription_info, payload)

    def _send(self, subscription_info: dict, payload: str) -> None:
        if not self.configured:
            raise PushDeliveryError("VAPID keys are not configured")
        try:
            webpush(
                subscription_info=subscription_info,
                data=payload,
                vapid_private_key=self.vapid_private_key,
                vapid_claims={"sub": self.vapid_subject},
                ttl=self.ttl,
            )
        except WebPushException as e:
            status_code = e.response.status_code if e.response is not None else None
            if status_code in (404, 410):
                raise PushSubscriptionGone(str(e), status_code) from e
            if status_code == 429:
                raise PushRateLimited(str(e), status_code) from e
            raise PushDeliveryError(str(e), status_code) from e


def build_push_payload(title: str, body: str, url: str = "/", tag: str = "lead-notification", **data) -> str:
    return json.dumps(
        {
            "title": title,
            "body": body,
            "icon": "/logo.png",
            "badge": "/logo.png",
            "tag": tag,
            "requireInteraction": True,
            "data": {"url": url, **data},
        }
    )


class PushNotificationService:
    def __init__(self, db: AsyncSession, sender: Optional[WebPushSender] = None):
        self.db = db
        self.sender = sender or WebPushSender()
        self.preferences = NotificationPreferenceService(db)

    async def list_subscriptions(self, account_id: AccountId) -> list[PushSubscription]:
        result = await self.db.execute(
            select(PushSubscription).where(PushSubscription.account_id == account_id)
        )
        return list(result.scalars().all())

    async def save_subscription(
        self, account_id: AccountId, subscription: dict, device_info: Optional[str] = None
    ) -> PushSubscription:
        endpoint = subscription.get("endpoint")
        keys = subscription.get("keys") or {}
        if not endpoint or not keys.get("p256dh") or not keys.get("auth"):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid subscription: endpoint and keys (p256dh, auth) are required",
            )

        record = await self.db.get(PushSubscription, endpoint)
        if record is None:
            record = PushSubscription(endpoint=endpoint)
            self.db.add(record)
        record.account_id = account_id
        record.p256dh = keys["p256dh"]
        record.auth = keys["auth"]
        record.device_info = device_info

        preference = await self.preferences.get_preferences(account_id)
        preference.browser_push = True
        await self.db.commit()

        logger.info(f"Saved push subscription for account {account_id}")
        return record

    async def remove_subscriptions(self, account_id: AccountId, endpoint: Optional[str] = None) -> int:
        removed = 0
        for record in await self.list_subscriptions(account_id):
            if endpoint is None or record.endpoint == endpoint:
                await self.db.delete(record)
                removed += 1
        await self.db.flush()

        if not await self.list_subscriptions(account_id):
            preference = await self.preferences.get_preferences(account_id)
            preference.browser_push = False
        await self.db.commit()
        return removed

    async def send_to_account(self, account_id: AccountId, payload: str) -> dict:
        """Push to every device of the account. One device failing never blocks the others."""
        outcome = {"delivered": 0, "failed": 0, "removed": 0}

        for record in await self.list_subscriptions(account_id):
            try:
                await self.sender.send(record.subscription_info(), payload)
                outcome["delivered"] += 1
            except PushSubscriptionGone:
                logger.info(f"Removing expired push subscription for account {account_id}")
                await self.db.delete(record)
                await self.db.commit()
                outcome["removed"] += 1
            except PushRateLimited:
                logger.warning(f"Push service rate limited delivery for account {account_id}")
                outcome["failed"] += 1
            except Exception as e:
                logger.error(f"Push delivery failed for account {account_id}: {e}")
                outcome["failed"] += 1

        return outcome

    async def send_test(self, account_id: AccountId) -> dict:
        payload = build_push_payload(
            "Test notification",
            "Push notifications are working.",
            url=settings.FRONTEND_URL,
            tag="test-notification",
        )
        return await self.send_to_account(account_id, payload)

    async def diagnostics(self, account_id: AccountId) -> dict:
        preference = await self.preferences.get_preferences(account_id)
        subscriptions = await self.list_subscriptions(account_id)
        return {
            "vapid_configured": self.sender.configured,
            "vapid_public_key": settings.VAPID_PUBLIC_KEY,
            "browser_push_enabled": preference.browser_push,
            "email_notifications_enabled": preference.email_notifications,
            "new_leads": preference.new_leads,
            "follow_ups": preference.follow_ups,
            "subscription_count": len(subscriptions),
            "devices": [record.device_info for record in subscriptions],
        }
