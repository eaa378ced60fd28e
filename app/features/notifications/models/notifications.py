import enum

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Text

from app.platform.db.base import Base, BaseModel, TimestampMixin


class NotificationCategory(str, enum.Enum):
    """Event categories a recipient can switch on or off"""

    NEW_LEAD = "new_leads"
    FOLLOW_UP = "follow_ups"
    HOT_LEAD = "hot_leads"
    CONVERSION = "conversions"


class NotificationPreference(BaseModel):
    __tablename__ = "notification_preferences"

    account_id = Column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, unique=True
    )

    new_leads = Column(Boolean, default=True, nullable=False)
    follow_ups = Column(Boolean, default=True, nullable=False)
    hot_leads = Column(Boolean, default=True, nullable=False)
    conversions = Column(Boolean, default=True, nullable=False)

    email_notifications = Column(Boolean, default=True, nullable=False)
    browser_push = Column(Boolean, default=False, nullable=False)
    daily_summary = Column(Boolean, default=False, nullable=False)

    def wants(self, category: NotificationCategory) -> bool:
        return bool(getattr(self, category.value))

    def __repr__(self):
        return (
            f"<NotificationPreference(account_id={self.account_id}, "
            f"email={self.email_notifications}, push={self.browser_push})>"
        )


class PushSubscription(TimestampMixin, Base):
    """One browser/device registered for web push."""

    __tablename__ = "push_subscriptions"

    endpoint = Column(String(1024), primary_key=True)
    account_id = Column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    p256dh = Column(String(255), nullable=False)
    auth = Column(String(255), nullable=False)
    device_info = Column(Text, nullable=True)

    def subscription_info(self) -> dict:
        return {"endpoint": self.endpoint, "keys": {"p256dh": self.p256dh, "auth": self.auth}}

    def __repr__(self):
        return f"<PushSubscription(account_id={self.account_id}, endpoint={self.endpoint[:40]})>"
