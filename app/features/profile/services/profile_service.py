import logging
from datetime import datetime

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.auth.models.user import Account, SecuritySettings, UserRole
from app.features.auth.schemas.auth import ChangePasswordRequest
from app.features.auth.services.auth_service import AuthService
from app.features.auth.utils.security import hash_password, verify_password
from app.features.profile.schemas.profile import ProfileUpdate, SecuritySettingsUpdate

logger = logging.getLogger(__name__)


class ProfileService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def update_profile(self, account: Account, request: ProfileUpdate) -> Account:
        changes = request.model_dump(exclude_unset=True)
        if "role" in changes and changes["role"] is not None:
            changes["role"] = changes["role"].value

        for field, value in changes.items():
            setattr(account, field, value)

        if account.role == UserRole.OTHER.value and not account.custom_role:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="custom_role is required when role is 'other'",
            )

        await self.db.commit()
        await self.db.refresh(account)
        return account

    async def change_password(self, account: Account, request: ChangePasswordRequest) -> None:
        if not verify_password(request.current_password, account.password_hash):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect"
            )
        if request.new_password != request.confirm_password:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Passwords do not match"
            )
        if request.current_password == request.new_password:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="New password must be different from current password",
            )

        account.password_hash = hash_password(request.new_password)
        security = await AuthService(self.db).get_security_settings(account.id)
        security.last_password_change = datetime.utcnow()
        await self.db.commit()
        logger.info(f"Password changed for account {account.id}")

    async def get_security_settings(self, account: Account) -> SecuritySettings:
        return await AuthService(self.db).get_security_settings(account.id)

    async def update_security_settings(
        self, account: Account, request: SecuritySettingsUpdate
    ) -> SecuritySettings:
        security = await self.get_security_settings(account)
        for field, value in request.model_dump(exclude_none=True).items():
            setattr(security, field, value)
        if request.two_factor_enabled:
            security.last_two_factor_setup = datetime.utcnow()
        await self.db.commit()
        await self.db.refresh(security)
        return security
