import enum
import math
from datetime import date, timedelta
from functools import partial
from typing import List, Optional

from fastapi import HTTPException, status
from pydantic import ValidationError
from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.auth.models.user import AccountId
from app.features.leads.models.enums import FollowupDateFilter, LeadSource, LeadStatus
from app.features.leads.models.lead import CustomSector, Lead
from app.features.leads.schemas.lead import LeadCreate, LeadQuery, LeadUpdate
from app.features.leads.services.csv_export import leads_to_csv
from app.features.leads.services.scope import (
    AccessScope,
    Capability,
    authorize,
    resolve_scope,
    visible_leads_clause,
)
from app.features.notifications.services.dispatcher import FanoutDispatcher, fanout_dispatcher
from app.features.notifications.services.fanout import company_key, run_new_lead_fanout
from app.platform.config import settings
from app.platform.logger import get_logger

logger = get_logger(__name__)


def followup_filter_clause(kind: FollowupDateFilter, today: date):
    """
    overdue:  on or before yesterday and not converted
    due_soon: today through today+7, inclusive
    future:   today+8 onwards
    """
    week_end = today + timedelta(days=7)
    if kind == FollowupDateFilter.OVERDUE:
        return and_(
            Lead.next_followup_date <= today - timedelta(days=1),
            Lead.lead_status != LeadStatus.CONVERTED.value,
        )
    if kind == FollowupDateFilter.DUE_SOON:
        return and_(Lead.next_followup_date >= today, Lead.next_followup_date <= week_end)
    return Lead.next_followup_date > week_end


def _column_values(payload: dict) -> dict:
    return {k: (v.value if isinstance(v, enum.Enum) else v) for k, v in payload.items()}


def _first_error(exc: ValidationError) -> str:
    error = exc.errors()[0]
    field = ".".join(str(part) for part in error.get("loc", ()))
    message = error.get("msg", "Invalid value")
    return f"{field}: {message}" if field else message


class LeadService:
    def __init__(self, db: AsyncSession, dispatcher: Optional[FanoutDispatcher] = None):
        self.db = db
        self.dispatcher = dispatcher if dispatcher is not None else fanout_dispatcher

    async def _scope(self, account_id: AccountId, capability: Capability) -> AccessScope:
        scope = await resolve_scope(self.db, account_id)
        authorize(scope.grant, capability)
        return scope

    def _filters(self, scope: AccessScope, query: LeadQuery, today: date) -> list:
        conditions = [visible_leads_clause(scope)]

        if query.status:
            conditions.append(Lead.lead_status.in_([s.value for s in query.status]))
        if query.customer_category:
            conditions.append(Lead.customer_category == query.customer_category.value)
        if query.city:
            conditions.append(Lead.city.ilike(f"%{query.city}%"))
        if query.sector:
            conditions.append(Lead.sector.ilike(f"%{query.sector}%"))
        if query.search:
            term = f"%{query.search}%"
            conditions.append(
                or_(
                    Lead.name.ilike(term),
                    Lead.email.ilike(term),
                    Lead.phone_number.ilike(term),
                    Lead.company_name.ilike(term),
                )
            )
        if query.followup_date_filter:
            conditions.append(followup_filter_clause(query.followup_date_filter, today))

        return conditions

    async def _query_leads(self, scope: AccessScope, query: LeadQuery, today: date) -> dict:
        limit = min(query.limit, settings.LEADS_MAX_PAGE_SIZE)
        conditions = self._filters(scope, query, today)

        total = (
            await self.db.execute(select(func.count()).select_from(Lead).where(*conditions))
        ).scalar_one()

        result = await self.db.execute(
            select(Lead)
            .where(*conditions)
            .order_by(Lead.created_at.desc(), Lead.id.desc())
            .offset((query.page - 1) * limit)
            .limit(limit)
        )
        leads = list(result.scalars().all())

        total_pages = math.ceil(total / limit) if total else 0
        return {
            "data": leads,
            "total": total,
            "page": query.page,
            "limit": limit,
            "total_pages": total_pages,
            "has_next_page": query.page < total_pages,
            "has_previous_page": query.page > 1,
        }

    async def list_leads(
        self, account_id: AccountId, query: LeadQuery, today: Optional[date] = None
    ) -> dict:
        scope = await self._scope(account_id, Capability.VIEW)
        return await self._query_leads(scope, query, today or date.today())

    async def _find_visible(self, lead_id: str, scope: AccessScope) -> Lead:
        result = await self.db.execute(
            select(Lead).where(
                Lead.id == lead_id, visible_leads_clause(scope, active_owners_only=False)
            )
        )
        lead = result.scalar_one_or_none()
        if not lead:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lead not found")
        return lead

    async def get_lead(self, lead_id: str, account_id: AccountId) -> Lead:
        scope = await self._scope(account_id, Capability.VIEW)
        return await self._find_visible(lead_id, scope)

    async def _insert(self, data: LeadCreate, scope: AccessScope) -> Lead:
        lead = Lead(**_column_values(data.model_dump()), owner_id=scope.effective_owner_id)
        self.db.add(lead)
        await self.db.commit()
        if data.sector:
            await self._remember_sector(data.sector)
        await self.db.refresh(lead)
        return lead

    async def create_lead(self, data: LeadCreate, account_id: AccountId) -> Lead:
        scope = await self._scope(account_id, Capability.ADD)
        lead = await self._insert(data, scope)
        logger.info(f"Lead {lead.id} created by account {account_id} for owner {lead.owner_id}")

        try:
            self.dispatcher.enqueue(
                company_key(scope.company_name, scope.effective_owner_id),
                partial(run_new_lead_fanout, lead.id),
            )
        except Exception as e:
            logger.error(f"Could not schedule notifications for lead {lead.id}: {e}")

        return lead

    async def update_lead(self, lead_id: str, account_id: AccountId, patch: LeadUpdate) -> Lead:
        scope = await self._scope(account_id, Capability.EDIT)
        lead = await self._find_visible(lead_id, scope)

        changes = _column_values(patch.model_dump(exclude_unset=True))
        for field, value in changes.items():
            setattr(lead, field, value)

        if lead.lead_source == LeadSource.OTHER.value and not lead.custom_lead_source:
            await self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Custom Lead Source is required when Lead Source is "other"',
            )

        await self.db.commit()
        if changes.get("sector"):
            await self._remember_sector(changes["sector"])
        await self.db.refresh(lead)
        return lead

    async def delete_lead(self, lead_id: str, account_id: AccountId) -> None:
        # Deleting is gated by the edit capability.
        scope = await self._scope(account_id, Capability.EDIT)
        lead = await self._find_visible(lead_id, scope)
        await self.db.delete(lead)
        await self.db.commit()
        logger.info(f"Lead {lead_id} deleted by account {account_id}")

    async def import_leads(self, rows: List[dict], account_id: AccountId) -> dict:
        scope = await self._scope(account_id, Capability.ADD)

        results = []
        successful = 0
        for row_number, row in enumerate(rows, start=1):
            try:
                data = LeadCreate.model_validate(row)
                lead = await self._insert(data, scope)
            except ValidationError as e:
                results.append({"row": row_number, "success": False, "error": _first_error(e)})
                continue
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.warning(f"Import row {row_number} failed: {e}")
                results.append({"row": row_number, "success": False, "error": "Failed to create lead"})
                continue

            successful += 1
            results.append({"row": row_number, "success": True, "lead_id": lead.id})

        logger.info(f"Imported {successful}/{len(rows)} leads for owner {scope.effective_owner_id}")
        return {
            "total": len(rows),
            "successful": successful,
            "failed": len(rows) - successful,
            "results": results,
        }

    async def export_csv(
        self, account_id: AccountId, query: LeadQuery, today: Optional[date] = None
    ) -> str:
        scope = await self._scope(account_id, Capability.VIEW)
        export_query = query.model_copy(update={"page": 1, "limit": settings.LEADS_MAX_PAGE_SIZE})
        page = await self._query_leads(scope, export_query, today or date.today())
        return leads_to_csv(page["data"])

    async def get_cities(self, account_id: AccountId) -> List[str]:
        scope = await self._scope(account_id, Capability.VIEW)
        result = await self.db.execute(
            select(Lead.city).where(visible_leads_clause(scope), Lead.city.is_not(None)).distinct()
        )
        return sorted(city for city in result.scalars().all() if city and city.strip())

    async def get_sectors(self) -> List[str]:
        result = await self.db.execute(select(CustomSector.sector).order_by(CustomSector.sector))
        return list(result.scalars().all())

    async def _find_sector(self, name: str) -> Optional[CustomSector]:
        result = await self.db.execute(
            select(CustomSector).where(func.lower(CustomSector.sector) == name.lower())
        )
        return result.scalars().first()

    async def _remember_sector(self, name: str) -> None:
        """Store a lead's sector in its own commit. Failures never undo the lead."""
        name = name.strip()
        if not name or await self._find_sector(name):
            return
        self.db.add(CustomSector(sector=name))
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.warning(f"Could not save sector {name!r}: {e}")

    async def add_sector(self, name: str) -> dict:
        name = name.strip()
        if not name:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Sector name cannot be empty"
            )

        existing = await self._find_sector(name)
        if existing:
            return {"message": "Sector already exists", "sector": existing.sector}

        sector = CustomSector(sector=name)
        self.db.add(sector)
        await self.db.commit()
        return {"message": "Custom sector added successfully", "sector": sector.sector}
