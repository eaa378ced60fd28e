import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from app.features.leads.models.enums import (
    CustomerCategory,
    FollowupDateFilter,
    LeadSource,
    LeadStatus,
)

LEAD_NAME_PATTERN = re.compile(r"^[A-Za-z\s.]+$")


class LeadFields(BaseModel):
    email: Optional[EmailStr] = None
    date_of_birth: Optional[date] = None

    city: Optional[str] = Field(None, max_length=255)
    state: Optional[str] = Field(None, max_length=255)
    country: Optional[str] = Field(None, max_length=255)
    pincode: Optional[str] = Field(None, max_length=20)

    company_name: Optional[str] = Field(None, max_length=100)
    designation: Optional[str] = Field(None, max_length=255)

    last_contacted_date: Optional[date] = None
    last_contacted_by: Optional[str] = Field(None, max_length=50)
    next_followup_date: Optional[date] = None

    customer_interested_in: Optional[str] = Field(None, max_length=100)
    preferred_communication_channel: Optional[str] = Field(None, max_length=50)
    custom_communication_channel: Optional[str] = Field(None, max_length=255)

    custom_lead_source: Optional[str] = Field(None, max_length=255)
    custom_referral_source: Optional[str] = Field(None, max_length=255)
    custom_generated_by: Optional[str] = Field(None, max_length=255)

    lead_created_by: Optional[str] = Field(None, max_length=50)
    additional_notes: Optional[str] = Field(
        None, max_length=200, description="Additional notes cannot exceed 200 characters"
    )

    sector: Optional[str] = Field(None, max_length=255)
    custom_sector: Optional[str] = Field(None, max_length=255)


def _check_lead_name(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip()
    if not v:
        raise ValueError("Full Name is required")
    if not LEAD_NAME_PATTERN.match(v):
        raise ValueError("Only letters, spaces, and dots are allowed")
    return v


class LeadCreate(LeadFields):
    name: str = Field(..., max_length=255)
    phone_number: str = Field(..., min_length=1, max_length=50)
    customer_category: CustomerCategory = CustomerCategory.POTENTIAL
    lead_source: LeadSource = LeadSource.WEBSITE
    lead_status: LeadStatus = LeadStatus.NEW

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _check_lead_name(v)

    @model_validator(mode="after")
    def require_custom_source(self):
        if self.lead_source == LeadSource.OTHER and not (self.custom_lead_source or "").strip():
            raise ValueError('Custom Lead Source is required when Lead Source is "other"')
        return self


class LeadUpdate(LeadFields):
    """Partial update. Only fields present in the request are written."""

    name: Optional[str] = Field(None, max_length=255)
    phone_number: Optional[str] = Field(None, min_length=1, max_length=50)
    customer_category: Optional[CustomerCategory] = None
    lead_source: Optional[LeadSource] = None
    lead_status: Optional[LeadStatus] = None

    @field_validator("name", "customer_category", "lead_source", "lead_status", mode="before")
    @classmethod
    def reject_null(cls, v, info):
        # Omit a field to leave it unchanged; these columns cannot be cleared.
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        return _check_lead_name(v)


class LeadResponse(BaseModel):
    id: str
    name: str
    phone_number: Optional[str] = None
    email: Optional[str] = None
    date_of_birth: Optional[date] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    pincode: Optional[str] = None
    company_name: Optional[str] = None
    designation: Optional[str] = None
    customer_category: str
    last_contacted_date: Optional[date] = None
    last_contacted_by: Optional[str] = None
    next_followup_date: Optional[date] = None
    customer_interested_in: Optional[str] = None
    preferred_communication_channel: Optional[str] = None
    custom_communication_channel: Optional[str] = None
    lead_source: str
    custom_lead_source: Optional[str] = None
    custom_referral_source: Optional[str] = None
    custom_generated_by: Optional[str] = None
    lead_status: str
    lead_created_by: Optional[str] = None
    additional_notes: Optional[str] = None
    sector: Optional[str] = None
    custom_sector: Optional[str] = None
    owner_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LeadQuery(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1)
    status: Optional[List[LeadStatus]] = None
    customer_category: Optional[CustomerCategory] = None
    city: Optional[str] = None
    sector: Optional[str] = None
    search: Optional[str] = None
    followup_date_filter: Optional[FollowupDateFilter] = None


class PaginatedLeads(BaseModel):
    data: List[LeadResponse]
    total: int
    page: int
    limit: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool


class ImportLeadsRequest(BaseModel):
    # Rows are validated one by one so a bad row cannot reject the batch.
    leads: List[Dict[str, Any]] = Field(..., min_length=1)


class ImportRowResult(BaseModel):
    row: int
    success: bool
    lead_id: Optional[str] = None
    error: Optional[str] = None


class ImportLeadsResponse(BaseModel):
    total: int
    successful: int
    failed: int
    results: List[ImportRowResult]


class AddSectorRequest(BaseModel):
    sector: str = Field(..., min_length=1, max_length=255)
