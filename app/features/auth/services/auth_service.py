import logging
from datetime import datetime
from typing import Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.auth.models.token import OtpPurpose, TokenType
from app.features.auth.models.user import Account, AccountId, SecuritySettings
from app.features.auth.schemas.auth import AccountResponse, LoginRequest, SignupRequest
from app.features.auth.schemas.password_reset import ResetPasswordRequest
from app.features.auth.services.otp_service import OtpService
from app.features.auth.services.token_service import TokenService
from app.features.auth.utils.security import hash_password, verify_password
from app.platform.config import settings
from app.platform.services.email import render_template, send_email_async
from app.platform.utils.cooldown import CooldownStore, get_cooldown_store

logger = logging.getLogger(__name__)

GENERIC_TWO_FACTOR_MESSAGE = "If the email exists, an OTP has been sent"


def cooldown_message(remaining: int) -> str:
    return f"OTP was already sent. Please wait {remaining} seconds before requesting again."


async def send_password_changed_email(email: str, name: str) -> None:
    """Background notice after a password reset. Failures are only logged."""
    try:
        html = render_template("password_changed.html", name=name)
        await send_email_async(email, "Your password was changed", html, "Your password was changed.")
    except Exception as e:
        logger.error(f"Failed to send password change confirmation to {email}: {e}")


class AuthService:
    def __init__(
        self,
        db: AsyncSession,
        cooldowns: Optional[CooldownStore] = None,
        otp_service: Optional[OtpService] = None,
    ):
        self.db = db
        self.tokens = TokenService(db)
        self.otps = otp_service if otp_service is not None else OtpService(db)
        self.cooldowns = cooldowns if cooldowns is not None else get_cooldown_store()

    async def get_account_by_email(self, email: str) -> Optional[Account]:
        result = await self.db.execute(select(Account).where(Account.email == email.lower()))
        return result.scalar_one_or_none()

    async def get_security_settings(self, account_id: AccountId) -> SecuritySettings:
        """Security settings for an account, created with defaults on first access."""
        result = await self.db.execute(
            select(SecuritySettings).where(SecuritySettings.account_id == account_id)
        )
        security = result.scalar_one_or_none()
        if not security:
            security = SecuritySettings(account_id=account_id)
            self.db.add(security)
            await self.db.commit()
            await self.db.refresh(security)
        return security

    async def _token_response(self, account: Account) -> dict:
        pair = await self.tokens.issue_pair(account.id)
        pair["user"] = AccountResponse.model_validate(account)
        return pair

    async def register_account(self, request: SignupRequest) -> dict:
        if request.password != request.confirm_password:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Passwords do not match"
            )

        if await self.get_account_by_email(request.email):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT, detail="Email already registered"
            )

        account = Account(
            email=request.email.lower(),
            full_name=request.full_name,
            password_hash=hash_password(request.password),
            role=request.role.value,
            custom_role=request.custom_role,
            company_name=request.company_name,
            company_size=request.company_size,
            company_website=request.company_website,
            is_active=True,
        )

        try:
            self.db.add(account)
            await self.db.commit()
            await self.db.refresh(account)
        except IntegrityError:
            await self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT, detail="Email already registered"
            )

        logger.info(f"Registered account {account.id} ({account.email})")
        return await self._token_response(account)

    async def _authenticate(self, email: str, password: str) -> Account:
        account = await self.get_account_by_email(email)
        if not account or not verify_password(password, account.password_hash):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid email or password",
                headers={"WWW-Authenticate": "Bearer"},
            )
        if not account.is_active:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Account is deactivated",
            )
        return account

    async def _complete_login(self, account: Account) -> dict:
        account.last_login = datetime.utcnow()
        await self.db.commit()
        await self.db.refresh(account)
        return await self._token_response(account)

    async def login(self, request: LoginRequest) -> Tuple[dict, bool]:
        """
        Authenticate with email and password.

        Returns (payload, requires_two_factor). When two-factor is enabled the
        payload is a challenge and a code is emailed instead of issuing tokens.
        """
        account = await self._authenticate(request.email, request.password)

        security = await self.get_security_settings(account.id)
        if not security.two_factor_enabled:
            return await self._complete_login(account), False

        key = f"login:{account.email}"
        remaining = await self.cooldowns.remaining(key, settings.LOGIN_OTP_COOLDOWN_SECONDS)
        if remaining:
            logger.info(f"Login OTP cooldown hit for {account.email}")
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=cooldown_message(remaining),
            )

        await self.otps.issue(account, OtpPurpose.TWO_FACTOR)
        await self.cooldowns.touch(key, settings.LOGIN_OTP_COOLDOWN_TTL_SECONDS)

        return {
            "requires_two_factor": True,
            "email": account.email,
            "message": "OTP sent to your email. Please verify to complete login.",
        }, True

    async def login_with_two_factor(self, email: str, code: str) -> dict:
        account = await self.verify_two_factor_code(email, code)
        return await self._complete_login(account)

    async def refresh(self, refresh_token: str) -> dict:
        stored = await self.tokens.validate(refresh_token, TokenType.REFRESH)
        if not stored:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired refresh token"
            )
        account = await self.db.get(Account, stored.account_id)
        if not account or not account.is_active:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED, detail="Account not found or inactive"
            )
        access = await self.tokens.create_access_token(account.id)
        return {
            "access_token": access.token,
            "refresh_token": refresh_token,
            "token_type": "bearer",
            "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        }

    async def logout(self, account: Account) -> None:
        await self.tokens.revoke_all(account.id)

    async def forgot_password(self, email: str) -> None:
        account = await self.get_account_by_email(email)
        if not account:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Email not found in our database"
            )
        if not account.is_active:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Account is deactivated"
            )
        await self.otps.issue(account, OtpPurpose.PASSWORD_RESET)

    async def check_reset_otp(self, email: str, code: str) -> Tuple[bool, str]:
        account = await self.get_account_by_email(email)
        if not account:
            return False, "Invalid OTP"
        return await self.otps.check(account.id, OtpPurpose.PASSWORD_RESET, code)

    async def reset_password(self, request: ResetPasswordRequest) -> Account:
        if request.new_password != request.confirm_password:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Passwords do not match"
            )

        account = await self.get_account_by_email(request.email)
        if not account:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid OTP")

        await self.otps.verify(account.id, OtpPurpose.PASSWORD_RESET, request.otp)

        account.password_hash = hash_password(request.new_password)
        security = await self.get_security_settings(account.id)
        security.last_password_change = datetime.utcnow()
        await self.db.commit()

        await self.tokens.revoke_all(account.id)
        logger.info(f"Password reset successful - account: {account.id}")
        return account

    async def send_two_factor_code(self, email: str) -> str:
        account = await self.get_account_by_email(email)
        if not account or not account.is_active:
            return GENERIC_TWO_FACTOR_MESSAGE
        await self.otps.issue(account, OtpPurpose.TWO_FACTOR)
        return GENERIC_TWO_FACTOR_MESSAGE

    async def verify_two_factor_code(self, email: str, code: str) -> Account:
        account = await self.get_account_by_email(email)
        if not account or not account.is_active:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid OTP")
        await self.otps.verify(account.id, OtpPurpose.TWO_FACTOR, code)
        return account

    async def enable_two_factor(self, account: Account) -> str:
        security = await self.get_security_settings(account.id)
        security.two_factor_enabled = True
        security.last_two_factor_setup = datetime.utcnow()
        await self.db.commit()

        key = f"enable2fa:{account.email}"
        remaining = await self.cooldowns.remaining(key, settings.ENABLE_2FA_COOLDOWN_SECONDS)
        if remaining:
            return cooldown_message(remaining)

        try:
            await self.otps.issue(account, OtpPurpose.TWO_FACTOR)
        except HTTPException:
            logger.warning(f"2FA enabled for account {account.id} but the confirmation code was not delivered")
            return "Two-factor authentication enabled"

        await self.cooldowns.touch(key, settings.ENABLE_2FA_COOLDOWN_TTL_SECONDS)
        return "Two-factor authentication enabled. A verification code has been sent to your email."

    async def disable_two_factor(self, account: Account) -> None:
        security = await self.get_security_settings(account.id)
        security.two_factor_enabled = False
        await self.db.commit()

    async def get_two_factor_status(self, account: Account) -> dict:
        security = await self.get_security_settings(account.id)
        return {
            "enabled": security.two_factor_enabled,
            "last_setup": security.last_two_factor_setup,
        }
