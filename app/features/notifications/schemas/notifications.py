from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class NotificationPreferenceResponse(BaseModel):
    new_leads: bool
    follow_ups: bool
    hot_leads: bool
    conversions: bool
    email_notifications: bool
    browser_push: bool
    daily_summary: bool
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class NotificationPreferenceUpdate(BaseModel):
    new_leads: Optional[bool] = None
    follow_ups: Optional[bool] = None
    hot_leads: Optional[bool] = None
    conversions: Optional[bool] = None
    email_notifications: Optional[bool] = None
    browser_push: Optional[bool] = None
    daily_summary: Optional[bool] = None


class SubscriptionKeys(BaseModel):
    p256dh: str = Field(..., min_length=1)
    auth: str = Field(..., min_length=1)


class PushSubscriptionPayload(BaseModel):
    endpoint: str = Field(..., min_length=1)
    keys: SubscriptionKeys


class SubscribeRequest(BaseModel):
    subscription: PushSubscriptionPayload
    device_info: Optional[str] = Field(None, max_length=500)


class UnsubscribeRequest(BaseModel):
    endpoint: Optional[str] = None


class PushDeliveryResponse(BaseModel):
    delivered: int
    failed: int
    removed: int
