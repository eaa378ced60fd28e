from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from app.features.auth.models.user import UserRole
from app.features.auth.schemas.auth import validate_full_name, validate_password_strength


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=2, max_length=100)
    role: Optional[UserRole] = None
    custom_role: Optional[str] = Field(None, max_length=100)
    company_name: Optional[str] = Field(None, max_length=255)
    company_size: Optional[str] = Field(None, max_length=50)
    company_website: Optional[str] = Field(None, max_length=255)

    @field_validator("full_name")
    @classmethod
    def check_full_name(cls, v: Optional[str]) -> Optional[str]:
        return validate_full_name(v) if v is not None else v


class SecuritySettingsResponse(BaseModel):
    two_factor_enabled: bool
    login_notifications: bool
    session_timeout: int
    last_two_factor_setup: Optional[datetime] = None
    last_password_change: Optional[datetime] = None

    class Config:
        from_attributes = True


class SecuritySettingsUpdate(BaseModel):
    two_factor_enabled: Optional[bool] = None
    login_notifications: Optional[bool] = None
    session_timeout: Optional[int] = Field(None, ge=5, le=1440)


class DelegatePermissions(BaseModel):
    can_view: bool = True
    can_edit: bool = False
    can_add: bool = False

    class Config:
        from_attributes = True


class SubUserCreate(BaseModel):
    full_name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8)
    role: UserRole = UserRole.SALES_REPRESENTATIVE
    custom_role: Optional[str] = Field(None, max_length=100)
    permissions: DelegatePermissions = Field(default_factory=DelegatePermissions)

    @field_validator("full_name")
    @classmethod
    def check_full_name(cls, v: str) -> str:
        return validate_full_name(v)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return validate_password_strength(v)

    @model_validator(mode="after")
    def check_custom_role(self):
        if self.role == UserRole.OTHER and not self.custom_role:
            raise ValueError("custom_role is required when role is 'other'")
        return self


class PermissionsUpdate(BaseModel):
    can_view: Optional[bool] = None
    can_edit: Optional[bool] = None
    can_add: Optional[bool] = None


class SubUserUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=2, max_length=100)
    is_active: Optional[bool] = None
    role: Optional[UserRole] = None
    custom_role: Optional[str] = Field(None, max_length=100)
    permissions: Optional[PermissionsUpdate] = None

    @field_validator("full_name")
    @classmethod
    def check_full_name(cls, v: Optional[str]) -> Optional[str]:
        return validate_full_name(v) if v is not None else v


class SubUserResponse(BaseModel):
    id: int
    email: str
    full_name: str
    role: str
    custom_role: Optional[str] = None
    company_name: Optional[str] = None
    is_active: bool
    permissions: DelegatePermissions
    created_at: Optional[datetime] = None
