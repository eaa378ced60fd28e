import csv
import io
from datetime import date, datetime
from typing import Iterable

from app.features.leads.models.lead import Lead

CSV_COLUMNS = [
    ("ID", "id"),
    ("Name", "name"),
    ("Phone Number", "phone_number"),
    ("Email", "email"),
    ("Date of Birth", "date_of_birth"),
    ("City", "city"),
    ("State", "state"),
    ("Country", "country"),
    ("Pincode", "pincode"),
    ("Company Name", "company_name"),
    ("Designation", "designation"),
    ("Customer Category", "customer_category"),
    ("Last Contacted Date", "last_contacted_date"),
    ("Last Contacted By", "last_contacted_by"),
    ("Next Followup Date", "next_followup_date"),
    ("Customer Interested In", "customer_interested_in"),
    ("Preferred Communication Channel", "preferred_communication_channel"),
    ("Custom Communication Channel", "custom_communication_channel"),
    ("Lead Source", "lead_source"),
    ("Custom Lead Source", "custom_lead_source"),
    ("Custom Referral Source", "custom_referral_source"),
    ("Custom Generated By", "custom_generated_by"),
    ("Lead Status", "lead_status"),
    ("Lead Created By", "lead_created_by"),
    ("Additional Notes", "additional_notes"),
    ("Sector", "sector"),
    ("Custom Sector", "custom_sector"),
    ("Created At", "created_at"),
    ("Updated At", "updated_at"),
]


def format_csv_value(value) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def leads_to_csv(leads: Iterable[Lead]) -> str:
    """Header row plus one row per lead. Fields containing a comma, quote or newline are quoted."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow([header for header, _ in CSV_COLUMNS])
    for lead in leads:
        writer.writerow([format_csv_value(getattr(lead, attr)) for _, attr in CSV_COLUMNS])
    return buffer.getvalue()[:-1]
