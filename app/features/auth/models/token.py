import enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String

from app.platform.db.base import BaseModel


class TokenType(str, enum.Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class OtpPurpose(str, enum.Enum):
    PASSWORD_RESET = "password_reset"
    TWO_FACTOR = "two_factor"


class AuthToken(BaseModel):
    __tablename__ = "auth_tokens"

    account_id = Column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token = Column(String(512), unique=True, nullable=False, index=True)
    token_type = Column(String(20), nullable=False)
    expires_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<AuthToken(account_id={self.account_id}, type={self.token_type})>"


class OneTimeCode(BaseModel):
    __tablename__ = "one_time_codes"

    account_id = Column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    email = Column(String(255), nullable=False, index=True)
    purpose = Column(String(30), nullable=False)
    code = Column(String(6), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    is_used = Column(Boolean, default=False, nullable=False)

    def __repr__(self):
        return f"<OneTimeCode(account_id={self.account_id}, purpose={self.purpose}, used={self.is_used})>"
