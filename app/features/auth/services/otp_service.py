from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.auth.models.token import OneTimeCode, OtpPurpose
from app.features.auth.models.user import Account, AccountId
from app.features.auth.utils.security import generate_otp
from app.platform.config import settings
from app.platform.logger import get_logger
from app.platform.services.email import render_template, send_email_async

logger = get_logger(__name__)

OtpSender = Callable[[Account, str, OtpPurpose], Awaitable[None]]

INVALID_OTP = "Invalid OTP"
EXPIRED_OTP = "OTP has expired"

_SUBJECTS = {
    OtpPurpose.PASSWORD_RESET: "Password Reset OTP",
    OtpPurpose.TWO_FACTOR: "Your Two-Factor Authentication Code",
}
_TEMPLATES = {
    OtpPurpose.PASSWORD_RESET: "password_reset_otp.html",
    OtpPurpose.TWO_FACTOR: "two_factor_otp.html",
}


async def send_otp_email(account: Account, code: str, purpose: OtpPurpose) -> None:
    html = render_template(
        _TEMPLATES[purpose],
        name=account.full_name,
        otp=code,
        expires_minutes=settings.OTP_EXPIRE_MINUTES,
    )
    text = f"Your code is {code}. It expires in {settings.OTP_EXPIRE_MINUTES} minutes."
    await send_email_async(account.email, _SUBJECTS[purpose], html, text)


class OtpService:
    """
    One-time codes per (account, purpose).

    Issuing a code marks every earlier unused code for the same pair as used, so
    at most one code is live at a time. A code that could not be emailed is
    deleted again and the request fails.
    """

    def __init__(self, db: AsyncSession, sender: Optional[OtpSender] = None):
        self.db = db
        self.sender = sender or send_otp_email

    async def issue(self, account: Account, purpose: OtpPurpose) -> OneTimeCode:
        await self.db.execute(
            update(OneTimeCode)
            .where(
                OneTimeCode.account_id == account.id,
                OneTimeCode.purpose == purpose.value,
                OneTimeCode.is_used.is_(False),
            )
            .values(is_used=True)
        )

        otp = OneTimeCode(
            account_id=account.id,
            email=account.email,
            purpose=purpose.value,
            code=generate_otp(),
            expires_at=datetime.utcnow() + timedelta(minutes=settings.OTP_EXPIRE_MINUTES),
        )
        self.db.add(otp)
        await self.db.commit()

        try:
            await self.sender(account, otp.code, purpose)
        except Exception as e:
            logger.error(f"Failed to send {purpose.value} OTP to {account.email}: {e}")
            await self.db.delete(otp)
            await self.db.commit()
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Failed to send OTP email. Please try again.",
            )

        logger.info(f"Issued {purpose.value} OTP for account {account.id}")
        return otp

    async def _find(self, account_id: AccountId, purpose: OtpPurpose, code: str) -> Optional[OneTimeCode]:
        result = await self.db.execute(
            select(OneTimeCode)
            .where(
                OneTimeCode.account_id == account_id,
                OneTimeCode.purpose == purpose.value,
                OneTimeCode.code == code,
                OneTimeCode.is_used.is_(False),
            )
            .order_by(OneTimeCode.created_at.desc())
        )
        return result.scalars().first()

    async def check(self, account_id: AccountId, purpose: OtpPurpose, code: str) -> Tuple[bool, str]:
        """Validate without consuming."""
        otp = await self._find(account_id, purpose, code)
        if not otp:
            return False, INVALID_OTP
        if datetime.utcnow() > otp.expires_at:
            return False, EXPIRED_OTP
        return True, "OTP verified successfully"

    async def verify(self, account_id: AccountId, purpose: OtpPurpose, code: str) -> OneTimeCode:
        """Validate and consume a code, raising 400 when it is unknown, used or expired."""
        otp = await self._find(account_id, purpose, code)
        if not otp:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_OTP)
        if datetime.utcnow() > otp.expires_at:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=EXPIRED_OTP)

        otp.is_used = True
        await self.db.commit()
        return otp

    async def cleanup_expired(self) -> int:
        result = await self.db.execute(
            delete(OneTimeCode).where(OneTimeCode.expires_at < datetime.utcnow())
        )
        await self.db.commit()
        count = result.rowcount or 0
        logger.info(f"Deleted {count} expired one-time codes")
        return count
