from app.features.auth.schemas.auth import (
    AccountResponse,
    ChangePasswordRequest,
    LoginRequest,
    RefreshTokenRequest,
    SignupRequest,
    TokenResponse,
    TwoFactorChallenge,
)
from app.features.auth.schemas.password_reset import (
    ForgotPasswordRequest,
    OtpCheckResponse,
    ResetPasswordRequest,
    TwoFactorSendRequest,
    TwoFactorVerifyRequest,
    VerifyOtpRequest,
)
