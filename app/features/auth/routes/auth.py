from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.auth.models.user import Account
from app.features.auth.schemas import (
    ForgotPasswordRequest,
    LoginRequest,
    OtpCheckResponse,
    RefreshTokenRequest,
    ResetPasswordRequest,
    SignupRequest,
    TwoFactorSendRequest,
    TwoFactorVerifyRequest,
    VerifyOtpRequest,
)
from app.features.auth.services.auth_service import AuthService, send_password_changed_email
from app.features.auth.services.token_service import TokenService
from app.platform.db.session import get_db
from app.platform.response import api_response

router = APIRouter(prefix="/auth", tags=["Authentication"])
security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Account:
    """
    Dependency to get the current authenticated account from a bearer access token.
    """
    account = await TokenService(db).get_account_for_token(credentials.credentials)
    if not account:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return account


@router.post(
    "/signup",
    response_model=dict,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new account",
)
async def signup(request: SignupRequest, db: AsyncSession = Depends(get_db)):
    """
    Register a new account.
    - **password**: Minimum 8 characters with at least one uppercase, lowercase, and digit
    """
    tokens = await AuthService(db).register_account(request)
    return api_response(
        data=tokens,
        message="Account created successfully",
        status_code=status.HTTP_201_CREATED,
    )


@router.post("/login", response_model=dict, summary="Login")
async def login(request: LoginRequest, db: AsyncSession = Depends(get_db)):
    """
    Login with email and password.
    Returns tokens, or a two-factor challenge when 2FA is enabled.
    """
    payload, requires_two_factor = await AuthService(db).login(request)
    return api_response(
        data=payload,
        message=payload["message"] if requires_two_factor else "Login successful",
        status_code=status.HTTP_200_OK,
    )


@router.post("/login/2fa", response_model=dict, summary="Complete a two-factor login")
async def login_two_factor(request: TwoFactorVerifyRequest, db: AsyncSession = Depends(get_db)):
    tokens = await AuthService(db).login_with_two_factor(request.email, request.otp)
    return api_response(data=tokens, message="Login successful")


@router.post("/refresh", response_model=dict, summary="Refresh an access token")
async def refresh(request: RefreshTokenRequest, db: AsyncSession = Depends(get_db)):
    tokens = await AuthService(db).refresh(request.refresh_token)
    return api_response(data=tokens, message="Token refreshed successfully")


@router.post("/logout", response_model=dict, summary="Logout from every session")
async def logout(
    current_user: Account = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await AuthService(db).logout(current_user)
    return api_response(data=None, message="Logout successful")


@router.post("/forgot-password", response_model=dict, summary="Request a password reset OTP")
async def forgot_password(request: ForgotPasswordRequest, db: AsyncSession = Depends(get_db)):
    await AuthService(db).forgot_password(request.email)
    return api_response(data=None, message="OTP sent to your email")


@router.post("/verify-otp", response_model=dict, summary="Check a password reset OTP")
async def verify_otp(request: VerifyOtpRequest, db: AsyncSession = Depends(get_db)):
    valid, message = await AuthService(db).check_reset_otp(request.email, request.otp)
    return api_response(
        data=OtpCheckResponse(valid=valid, message=message),
        message=message,
        status_code=status.HTTP_200_OK if valid else status.HTTP_400_BAD_REQUEST,
    )


@router.post("/reset-password", response_model=dict, summary="Reset password with an OTP")
async def reset_password(
    request: ResetPasswordRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
):
    account = await AuthService(db).reset_password(request)
    background_tasks.add_task(send_password_changed_email, account.email, account.full_name)
    return api_response(data=None, message="Password reset successfully")


@router.post("/2fa/send", response_model=dict, summary="Send a two-factor code")
async def send_two_factor(request: TwoFactorSendRequest, db: AsyncSession = Depends(get_db)):
    message = await AuthService(db).send_two_factor_code(request.email)
    return api_response(data=None, message=message)


@router.post("/2fa/verify", response_model=dict, summary="Verify a two-factor code")
async def verify_two_factor(request: TwoFactorVerifyRequest, db: AsyncSession = Depends(get_db)):
    await AuthService(db).verify_two_factor_code(request.email, request.otp)
    return api_response(
        data=OtpCheckResponse(valid=True, message="OTP verified successfully"),
        message="OTP verified successfully",
    )


@router.post("/2fa/enable", response_model=dict, summary="Enable two-factor authentication")
async def enable_two_factor(
    current_user: Account = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    message = await AuthService(db).enable_two_factor(current_user)
    return api_response(data={"enabled": True}, message=message)


@router.post("/2fa/disable", response_model=dict, summary="Disable two-factor authentication")
async def disable_two_factor(
    current_user: Account = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await AuthService(db).disable_two_factor(current_user)
    return api_response(data={"enabled": False}, message="Two-factor authentication disabled")


@router.get("/2fa/status", response_model=dict, summary="Two-factor status")
async def two_factor_status(
    current_user: Account = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = await AuthService(db).get_two_factor_status(current_user)
    return api_response(data=data, message="Two-factor status retrieved")
