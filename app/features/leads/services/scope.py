"""
Resolves whose leads a request may touch.

A delegate (sub-user) acts for its parent: leads it creates belong to the
parent and it sees every lead owned by an active account of the parent's
company. A top-level account only ever sees its own leads.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.auth.models.user import Account, AccountId
from app.features.leads.models.lead import Lead
from app.features.profile.models.delegation import DelegationGrant
from app.platform.logger import get_logger

logger = get_logger(__name__)


class Capability(str, Enum):
    VIEW = "view"
    EDIT = "edit"
    ADD = "add"


@dataclass(frozen=True)
class AccessScope:
    account_id: AccountId
    effective_owner_id: AccountId
    company_name: Optional[str]
    is_delegate: bool
    grant: Optional[DelegationGrant] = None

    @property
    def company_wide(self) -> bool:
        return self.is_delegate and bool(self.company_name)


async def resolve_scope(db: AsyncSession, account_id: AccountId) -> AccessScope:
    grant = await db.get(DelegationGrant, account_id)

    if grant:
        parent = await db.get(Account, grant.parent_id)
        if not parent:
            logger.error(
                f"Delegation grant for account {account_id} points at missing parent {grant.parent_id}"
            )
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Parent account {grant.parent_id} not found",
            )
        if not parent.is_active:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN, detail="Parent account is inactive"
            )
        return AccessScope(
            account_id=account_id,
            effective_owner_id=parent.id,
            company_name=parent.company_name,
            is_delegate=True,
            grant=grant,
        )

    account = await db.get(Account, account_id)
    if not account:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")

    return AccessScope(
        account_id=account_id,
        effective_owner_id=account.id,
        company_name=account.company_name,
        is_delegate=False,
    )


def authorize(grant: Optional[DelegationGrant], capability: Capability) -> None:
    """Top-level accounts are always allowed; delegates need the matching capability."""
    if grant is None:
        return
    if not grant.allows(capability.value):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"You do not have permission to {capability.value} leads",
        )


def visible_leads_clause(scope: AccessScope, active_owners_only: bool = True):
    """WHERE clause limiting Lead rows to what the scope may see."""
    if scope.company_wide:
        owners = select(Account.id).where(Account.company_name == scope.company_name)
        if active_owners_only:
            owners = owners.where(Account.is_active.is_(True))
        return Lead.owner_id.in_(owners)
    return Lead.owner_id == scope.effective_owner_id
