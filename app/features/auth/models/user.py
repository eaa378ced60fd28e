import enum
from typing import NewType

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String

from app.platform.db.base import BaseModel, SequentialIdModel

AccountId = NewType("AccountId", int)


class UserRole(str, enum.Enum):
    SALES_REPRESENTATIVE = "Sales Representative"
    SALES_MANAGER = "Sales Manager"
    MANAGEMENT = "Management"
    OTHER = "other"


class Account(SequentialIdModel):
    __tablename__ = "accounts"

    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(100), nullable=False)

    role = Column(String(50), nullable=False, default=UserRole.SALES_REPRESENTATIVE.value)
    custom_role = Column(String(100), nullable=True)

    company_name = Column(String(255), nullable=True, index=True)
    company_size = Column(String(50), nullable=True)
    company_website = Column(String(255), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime, nullable=True)

    @property
    def is_management(self) -> bool:
        return self.role == UserRole.MANAGEMENT.value

    def __repr__(self):
        return f"<Account(id={self.id}, email={self.email}, company={self.company_name})>"


class SecuritySettings(BaseModel):
    __tablename__ = "security_settings"

    account_id = Column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    two_factor_enabled = Column(Boolean, default=False, nullable=False)
    last_two_factor_setup = Column(DateTime, nullable=True)
    login_notifications = Column(Boolean, default=True, nullable=False)
    session_timeout = Column(Integer, default=60, nullable=False)
    last_password_change = Column(DateTime, nullable=True)

    def __repr__(self):
        return f"<SecuritySettings(account_id={self.account_id}, 2fa={self.two_factor_enabled})>"
