from sqlalchemy import Column, Date, ForeignKey, Integer, String, Text

from app.features.leads.models.enums import CustomerCategory, LeadSource, LeadStatus
from app.platform.db.base import BaseModel


class Lead(BaseModel):
    __tablename__ = "leads"

    # Contact
    name = Column(String(255), nullable=False)
    phone_number = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True, index=True)
    date_of_birth = Column(Date, nullable=True)

    # Address
    city = Column(String(255), nullable=True, index=True)
    state = Column(String(255), nullable=True)
    country = Column(String(255), nullable=True)
    pincode = Column(String(20), nullable=True)

    # Company
    company_name = Column(String(255), nullable=True)
    designation = Column(String(255), nullable=True)
    customer_category = Column(String(20), nullable=False, default=CustomerCategory.POTENTIAL.value)

    # Contact history
    last_contacted_date = Column(Date, nullable=True)
    last_contacted_by = Column(String(100), nullable=True)
    next_followup_date = Column(Date, nullable=True, index=True)

    # Preferences
    customer_interested_in = Column(Text, nullable=True)
    preferred_communication_channel = Column(String(50), nullable=True)
    custom_communication_channel = Column(String(255), nullable=True)

    # Source
    lead_source = Column(String(30), nullable=False, default=LeadSource.WEBSITE.value)
    custom_lead_source = Column(String(255), nullable=True)
    custom_referral_source = Column(String(255), nullable=True)
    custom_generated_by = Column(String(255), nullable=True)

    # Status
    lead_status = Column(String(20), nullable=False, default=LeadStatus.NEW.value, index=True)
    lead_created_by = Column(String(100), nullable=True)
    additional_notes = Column(String(200), nullable=True)

    sector = Column(String(255), nullable=True)
    custom_sector = Column(String(255), nullable=True)

    # Always a non-delegate account
    owner_id = Column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )

    def __repr__(self):
        return f"<Lead(id={self.id}, name={self.name}, owner_id={self.owner_id}, status={self.lead_status})>"


class CustomSector(BaseModel):
    __tablename__ = "custom_sectors"

    sector = Column(String(255), nullable=False, unique=True)

    def __repr__(self):
        return f"<CustomSector(sector={self.sector})>"
