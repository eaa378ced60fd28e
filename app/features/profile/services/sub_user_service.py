from typing import List, Tuple

from fastapi import HTTPException, status
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.auth.models.token import AuthToken, OneTimeCode
from app.features.auth.models.user import Account, AccountId, SecuritySettings, UserRole
from app.features.auth.utils.security import hash_password
from app.features.notifications.models.notifications import NotificationPreference, PushSubscription
from app.features.profile.models.delegation import DelegationGrant
from app.features.profile.schemas.profile import SubUserCreate, SubUserUpdate
from app.platform.logger import get_logger

logger = get_logger(__name__)


def sub_user_payload(account: Account, grant: DelegationGrant) -> dict:
    return {
        "id": account.id,
        "email": account.email,
        "full_name": account.full_name,
        "role": account.role,
        "custom_role": account.custom_role,
        "company_name": account.company_name,
        "is_active": account.is_active,
        "permissions": {
            "can_view": grant.can_view,
            "can_edit": grant.can_edit,
            "can_add": grant.can_add,
        },
        "created_at": account.created_at,
    }


class SubUserService:
    """Management accounts provision delegates that work inside their company."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _require_management(account: Account) -> None:
        if not account.is_management:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only Management users can manage sub-users",
            )

    async def _get_owned(self, parent: Account, sub_user_id: AccountId) -> Tuple[Account, DelegationGrant]:
        result = await self.db.execute(
            select(DelegationGrant).where(
                DelegationGrant.delegate_id == sub_user_id,
                DelegationGrant.parent_id == parent.id,
            )
        )
        grant = result.scalar_one_or_none()
        account = await self.db.get(Account, sub_user_id) if grant else None
        if not grant or not account:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Sub-user not found")
        return account, grant

    async def list_sub_users(self, parent: Account) -> List[dict]:
        self._require_management(parent)
        result = await self.db.execute(
            select(Account, DelegationGrant)
            .join(DelegationGrant, DelegationGrant.delegate_id == Account.id)
            .where(DelegationGrant.parent_id == parent.id)
            .order_by(Account.id)
        )
        return [sub_user_payload(account, grant) for account, grant in result.all()]

    async def create_sub_user(self, parent: Account, request: SubUserCreate) -> dict:
        self._require_management(parent)

        if await self.db.get(DelegationGrant, parent.id):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Sub-users cannot create their own sub-users",
            )
        if request.role == UserRole.MANAGEMENT:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Sub-users cannot have the Management role",
            )

        existing = await self.db.execute(select(Account).where(Account.email == request.email.lower()))
        if existing.scalar_one_or_none():
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

        account = Account(
            email=request.email.lower(),
            full_name=request.full_name,
            password_hash=hash_password(request.password),
            role=request.role.value,
            custom_role=request.custom_role,
            company_name=parent.company_name,
            company_size=parent.company_size,
            company_website=parent.company_website,
            is_active=True,
        )
        self.db.add(account)
        await self.db.flush()

        grant = DelegationGrant(
            delegate_id=account.id,
            parent_id=parent.id,
            can_view=request.permissions.can_view,
            can_edit=request.permissions.can_edit,
            can_add=request.permissions.can_add,
        )
        self.db.add(grant)
        await self.db.commit()
        await self.db.refresh(account)

        logger.info(f"Account {parent.id} created sub-user {account.id}")
        return sub_user_payload(account, grant)

    async def update_sub_user(self, parent: Account, sub_user_id: AccountId, request: SubUserUpdate) -> dict:
        self._require_management(parent)
        account, grant = await self._get_owned(parent, sub_user_id)

        if request.role == UserRole.MANAGEMENT:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Sub-users cannot have the Management role",
            )

        if request.full_name is not None:
            account.full_name = request.full_name
        if request.is_active is not None:
            account.is_active = request.is_active
        if request.role is not None:
            account.role = request.role.value
        if request.custom_role is not None:
            account.custom_role = request.custom_role

        if request.permissions is not None:
            for field, value in request.permissions.model_dump(exclude_none=True).items():
                setattr(grant, field, value)

        await self.db.commit()
        await self.db.refresh(account)
        await self.db.refresh(grant)
        return sub_user_payload(account, grant)

    async def delete_sub_user(self, parent: Account, sub_user_id: AccountId) -> None:
        self._require_management(parent)
        account, grant = await self._get_owned(parent, sub_user_id)

        for model in (AuthToken, OneTimeCode, NotificationPreference, PushSubscription, SecuritySettings):
            await self.db.execute(delete(model).where(model.account_id == sub_user_id))
        await self.db.delete(grant)
        await self.db.flush()
        await self.db.delete(account)
        await self.db.commit()
        logger.info(f"Account {parent.id} deleted sub-user {sub_user_id}")
