from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.auth.models.token import AuthToken, TokenType
from app.features.auth.models.user import Account, AccountId
from app.features.auth.utils.security import generate_token
from app.platform.config import settings
from app.platform.logger import get_logger

logger = get_logger(__name__)


class TokenService:
    """Issues and validates opaque, database-backed bearer tokens."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _create(self, account_id: AccountId, token_type: TokenType, lifetime: timedelta) -> AuthToken:
        token = AuthToken(
            account_id=account_id,
            token=generate_token(),
            token_type=token_type.value,
            expires_at=datetime.utcnow() + lifetime,
        )
        self.db.add(token)
        await self.db.commit()
        return token

    async def create_access_token(self, account_id: AccountId) -> AuthToken:
        return await self._create(
            account_id, TokenType.ACCESS, timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        )

    async def create_refresh_token(self, account_id: AccountId) -> AuthToken:
        return await self._create(
            account_id, TokenType.REFRESH, timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
        )

    async def issue_pair(self, account_id: AccountId) -> dict:
        access = await self.create_access_token(account_id)
        refresh = await self.create_refresh_token(account_id)
        return {
            "access_token": access.token,
            "refresh_token": refresh.token,
            "token_type": "bearer",
            "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        }

    async def validate(self, token: str, token_type: TokenType) -> Optional[AuthToken]:
        """Return the stored token if it exists, matches the type and has not expired.

        Expired tokens are deleted as they are presented.
        """
        result = await self.db.execute(
            select(AuthToken).where(AuthToken.token == token, AuthToken.token_type == token_type.value)
        )
        stored = result.scalar_one_or_none()
        if not stored:
            return None

        if stored.expires_at < datetime.utcnow():
            await self.db.delete(stored)
            await self.db.commit()
            return None

        return stored

    async def get_account_for_token(self, token: str, token_type: TokenType = TokenType.ACCESS) -> Optional[Account]:
        stored = await self.validate(token, token_type)
        if not stored:
            return None
        account = await self.db.get(Account, stored.account_id)
        if not account or not account.is_active:
            return None
        return account

    async def revoke_all(self, account_id: AccountId) -> None:
        await self.db.execute(delete(AuthToken).where(AuthToken.account_id == account_id))
        await self.db.commit()
        logger.info(f"Revoked all tokens for account {account_id}")

    async def cleanup_expired(self) -> int:
        result = await self.db.execute(delete(AuthToken).where(AuthToken.expires_at < datetime.utcnow()))
        await self.db.commit()
        return result.rowcount or 0
