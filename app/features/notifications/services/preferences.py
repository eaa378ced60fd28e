from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.auth.models.user import AccountId
from app.features.notifications.models.notifications import NotificationPreference


class NotificationPreferenceService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_preferences(self, account_id: AccountId) -> NotificationPreference:
        """
        Get notification preferences. Creates defaults if they don't exist:
        every category on, email on, push off.
        """
        result = await self.db.execute(
            select(NotificationPreference).where(NotificationPreference.account_id == account_id)
        )
        preference = result.scalar_one_or_none()

        if not preference:
            preference = NotificationPreference(
                account_id=account_id,
                new_leads=True,
                follow_ups=True,
                hot_leads=True,
                conversions=True,
                email_notifications=True,
                browser_push=False,
                daily_summary=False,
            )
            self.db.add(preference)
            await self.db.commit()
            await self.db.refresh(preference)

        return preference

    async def update_preferences(
        self, account_id: AccountId, changes: dict[str, Any]
    ) -> NotificationPreference:
        preference = await self.get_preferences(account_id)

        for key, value in changes.items():
            if hasattr(preference, key) and value is not None:
                setattr(preference, key, value)
        await self.db.commit()
        await self.db.refresh(preference)
        return preference
