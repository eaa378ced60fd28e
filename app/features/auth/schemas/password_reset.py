from pydantic import BaseModel, EmailStr, Field, field_validator

from app.features.auth.schemas.auth import validate_password_strength


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class VerifyOtpRequest(BaseModel):
    email: EmailStr
    otp: str = Field(..., min_length=6, max_length=6)


class ResetPasswordRequest(BaseModel):
    email: EmailStr
    otp: str = Field(..., min_length=6, max_length=6)
    new_password: str = Field(..., min_length=8)
    confirm_password: str

    @field_validator("new_password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return validate_password_strength(v)


class OtpCheckResponse(BaseModel):
    valid: bool
    message: str


class TwoFactorSendRequest(BaseModel):
    email: EmailStr


class TwoFactorVerifyRequest(BaseModel):
    email: EmailStr
    otp: str = Field(..., min_length=6, max_length=6)
