"""Imports every ORM model so Base.metadata knows all tables."""

from app.features.auth.models.user import Account, SecuritySettings  # noqa: F401
from app.features.auth.models.token import AuthToken, OneTimeCode  # noqa: F401
from app.features.profile.models.delegation import DelegationGrant  # noqa: F401
from app.features.leads.models.lead import CustomSector, Lead  # noqa: F401
from app.features.notifications.models.notifications import (  # noqa: F401
    NotificationPreference,
    PushSubscription,
)
