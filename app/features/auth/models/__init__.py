from app.features.auth.models.token import AuthToken, OneTimeCode, OtpPurpose, TokenType
from app.features.auth.models.user import Account, AccountId, SecuritySettings, UserRole

__all__ = [
    "Account",
    "AccountId",
    "AuthToken",
    "OneTimeCode",
    "OtpPurpose",
    "SecuritySettings",
    "TokenType",
    "UserRole",
]
