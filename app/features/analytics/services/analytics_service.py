import math
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.auth.models.user import AccountId
from app.features.leads.models.enums import CustomerCategory, LeadStatus
from app.features.leads.models.lead import Lead
from app.features.leads.services.scope import Capability, authorize, resolve_scope, visible_leads_clause


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _percent(part: int, total: int) -> float:
    return round(part / total * 100, 2) if total else 0.0


def breakdown(values: Iterable[str], key: str) -> List[dict]:
    counts = Counter(values)
    total = sum(counts.values())
    rows = [
        {key: value, "count": count, "percentage": _percent(count, total)}
        for value, count in counts.items()
    ]
    return sorted(rows, key=lambda row: row["count"], reverse=True)


def basic_metrics(leads: List[Lead], today: date, now: datetime) -> dict:
    week_start = today - timedelta(days=(today.weekday() + 1) % 7)
    week_end = week_start + timedelta(days=6)
    month_start = today.replace(day=1)

    def created_on(lead: Lead) -> Optional[date]:
        created = _naive_utc(lead.created_at)
        return created.date() if created else None

    this_week = [l for l in leads if created_on(l) and week_start <= created_on(l) <= week_end]
    this_month = [l for l in leads if created_on(l) and month_start <= created_on(l) <= today]

    by_status = Counter(lead.lead_status for lead in leads)
    converted = by_status[LeadStatus.CONVERTED.value]
    hot = by_status[LeadStatus.HOT.value]
    lost_this_month = sum(1 for l in this_month if l.lead_status == LeadStatus.LOST.value)

    conversion_days = []
    for lead in leads:
        created, updated = _naive_utc(lead.created_at), _naive_utc(lead.updated_at)
        if lead.lead_status == LeadStatus.CONVERTED.value and created and updated:
            conversion_days.append(math.ceil(abs((updated - created).total_seconds()) / 86400))

    return {
        "total_leads": len(leads),
        "converted_leads": converted,
        "hot_leads": hot,
        "qualified_leads": by_status[LeadStatus.QUALIFIED.value],
        "potential_customers": sum(
            1 for l in leads if l.customer_category == CustomerCategory.POTENTIAL.value
        ),
        "new_this_week": sum(1 for l in this_week if l.lead_status == LeadStatus.NEW.value),
        "pending_followups": sum(
            1 for l in leads if l.lead_status == LeadStatus.FOLLOWUP.value and l.next_followup_date
        ),
        "due_this_week": sum(
            1
            for l in leads
            if l.next_followup_date and today <= l.next_followup_date <= today + timedelta(days=7)
        ),
        "ready_to_convert": by_status[LeadStatus.QUALIFIED.value] + hot,
        "converted_this_month": sum(
            1 for l in this_month if l.lead_status == LeadStatus.CONVERTED.value
        ),
        "lost_this_month": lost_this_month,
        "conversion_rate": _percent(converted, len(leads)),
        "success_rate": _percent(converted, converted + lost_this_month),
        "avg_conversion_days": round(sum(conversion_days) / len(conversion_days)) if conversion_days else 0,
    }


def followup_timeline(leads: List[Lead], today: date) -> dict:
    week_end = today + timedelta(days=7)
    timeline = {"overdue": 0, "due_this_week": 0, "future": 0}
    for lead in leads:
        due = lead.next_followup_date
        if not due:
            continue
        if due < today:
            if lead.lead_status != LeadStatus.CONVERTED.value:
                timeline["overdue"] += 1
        elif due <= week_end:
            timeline["due_this_week"] += 1
        else:
            timeline["future"] += 1
    return timeline


def monthly_trends(leads: List[Lead], start: datetime, end: datetime) -> List[dict]:
    trends = {}
    for lead in leads:
        created = _naive_utc(lead.created_at)
        if not created or created < start or created > end:
            continue
        month = created.strftime("%Y-%m")
        trend = trends.setdefault(month, {"month": month, "leads": 0, "converted": 0, "lost": 0})
        trend["leads"] += 1
        if lead.lead_status == LeadStatus.CONVERTED.value:
            trend["converted"] += 1
        elif lead.lead_status == LeadStatus.LOST.value:
            trend["lost"] += 1
    return [trends[month] for month in sorted(trends)]


class AnalyticsService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_analytics(
        self,
        account_id: AccountId,
        days: int = 7,
        today: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> dict:
        scope = await resolve_scope(self.db, account_id)
        authorize(scope.grant, Capability.VIEW)

        now = now or datetime.utcnow()
        today = today or date.today()
        start = now - timedelta(days=days)

        result = await self.db.execute(select(Lead).where(visible_leads_clause(scope)))
        leads = list(result.scalars().all())

        upcoming = sorted(
            (
                l
                for l in leads
                if l.next_followup_date and today <= l.next_followup_date <= today + timedelta(days=7)
            ),
            key=lambda l: l.next_followup_date,
        )

        return {
            "basic_metrics": basic_metrics(leads, today, now),
            "followup_timeline": followup_timeline(leads, today),
            "lead_source_breakdown": breakdown((l.lead_source or "unknown" for l in leads), "source"),
            "lead_status_breakdown": breakdown((l.lead_status or "unknown" for l in leads), "status"),
            "category_breakdown": breakdown((l.customer_category or "unknown" for l in leads), "category"),
            "communication_channels": breakdown(
                (
                    l.preferred_communication_channel or l.custom_communication_channel or "unknown"
                    for l in leads
                ),
                "channel",
            ),
            "next_7_days_followups": [
                {
                    "id": l.id,
                    "name": l.name,
                    "email": l.email,
                    "phone_number": l.phone_number,
                    "next_followup_date": l.next_followup_date,
                    "lead_status": l.lead_status,
                    "customer_category": l.customer_category,
                }
                for l in upcoming
            ],
            "monthly_trends": monthly_trends(leads, start, now),
            "period": {
                "days": days,
                "start_date": start.date().isoformat(),
                "end_date": now.date().isoformat(),
            },
        }
