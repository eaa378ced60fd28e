from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.auth.models.user import Account
from app.features.auth.routes.auth import get_current_user
from app.features.leads.models.enums import CustomerCategory, FollowupDateFilter, LeadStatus
from app.features.leads.schemas.lead import (
    AddSectorRequest,
    ImportLeadsRequest,
    ImportLeadsResponse,
    LeadCreate,
    LeadQuery,
    LeadResponse,
    LeadUpdate,
    PaginatedLeads,
)
from app.features.leads.services.lead_service import LeadService
from app.features.notifications.services.fanout import NotificationFanoutService
from app.platform.db.session import get_db
from app.platform.response import api_response

router = APIRouter(prefix="/leads", tags=["Leads"])


def lead_query(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    status: Optional[List[LeadStatus]] = Query(None),
    customer_category: Optional[CustomerCategory] = Query(None),
    city: Optional[str] = Query(None),
    sector: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    followup_date_filter: Optional[FollowupDateFilter] = Query(None),
) -> LeadQuery:
    return LeadQuery(
        page=page,
        limit=limit,
        status=status,
        customer_category=customer_category,
        city=city,
        sector=sector,
        search=search,
        followup_date_filter=followup_date_filter,
    )


@router.get("", response_model=dict)
async def list_leads(
    query: LeadQuery = Depends(lead_query),
    current_user: Account = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    page = await LeadService(db).list_leads(current_user.id, query)
    page["data"] = [LeadResponse.model_validate(lead) for lead in page["data"]]
    return api_response(data=PaginatedLeads(**page), message="Leads retrieved successfully")


@router.post("", response_model=dict, status_code=status.HTTP_201_CREATED)
async def create_lead(
    request: LeadCreate,
    current_user: Account = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    lead = await LeadService(db).create_lead(request, current_user.id)
    return api_response(
        data=LeadResponse.model_validate(lead),
        message="Lead created successfully",
        status_code=status.HTTP_201_CREATED,
    )


@router.post("/import", response_model=dict)
async def import_leads(
    request: ImportLeadsRequest,
    current_user: Account = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await LeadService(db).import_leads(request.leads, current_user.id)
    return api_response(
        data=ImportLeadsResponse.model_validate(result),
        message=f"Imported {result['successful']} of {result['total']} leads",
    )


@router.get("/export")
async def export_leads(
    query: LeadQuery = Depends(lead_query),
    current_user: Account = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    content = await LeadService(db).export_csv(current_user.id, query)
    filename = f"leads-{datetime.utcnow().strftime('%Y-%m-%d')}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/cities", response_model=dict)
async def get_cities(
    current_user: Account = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    cities = await LeadService(db).get_cities(current_user.id)
    return api_response(data={"cities": cities}, message="Cities retrieved successfully")


@router.get("/sectors", response_model=dict)
async def get_sectors(
    current_user: Account = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    sectors = await LeadService(db).get_sectors()
    return api_response(data={"sectors": sectors}, message="Sectors retrieved successfully")


@router.post("/sectors", response_model=dict)
async def add_sector(
    request: AddSectorRequest,
    current_user: Account = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await LeadService(db).add_sector(request.sector)
    return api_response(data={"sector": result["sector"]}, message=result["message"])


@router.get("/{lead_id}", response_model=dict)
async def get_lead(
    lead_id: str,
    current_user: Account = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    lead = await LeadService(db).get_lead(lead_id, current_user.id)
    return api_response(data=LeadResponse.model_validate(lead), message="Lead retrieved successfully")


@router.patch("/{lead_id}", response_model=dict)
async def update_lead(
    lead_id: str,
    request: LeadUpdate,
    current_user: Account = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    lead = await LeadService(db).update_lead(lead_id, current_user.id, request)
    return api_response(data=LeadResponse.model_validate(lead), message="Lead updated successfully")


@router.delete("/{lead_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_lead(
    lead_id: str,
    current_user: Account = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await LeadService(db).delete_lead(lead_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{lead_id}/follow-up-reminder", response_model=dict)
async def send_follow_up_reminder(
    lead_id: str,
    current_user: Account = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Send the follow-up reminder for one lead right away."""
    result = await NotificationFanoutService(db).send_follow_up_reminder_for_lead(lead_id, current_user.id)
    return api_response(data=result, message="Follow-up reminder sent")
