"""
Decides who hears about a lead event and delivers it.

Recipients are every active account of the lead owner's company plus the
active delegates of those accounts. Each recipient is handled in turn: the
category toggle gates everything, then email and push are tried
independently. After a recipient that actually received an email the loop
pauses before moving on, except after the last one.
"""

import asyncio
from dataclasses import dataclass
from datetime import date, datetime
from typing import Awaitable, Callable, List, Optional, Tuple
from zoneinfo import ZoneInfo

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.auth.models.user import Account, AccountId
from app.features.leads.models.lead import Lead
from app.features.leads.services.scope import resolve_scope, visible_leads_clause
from app.features.notifications.models.notifications import NotificationCategory
from app.features.notifications.services.preferences import NotificationPreferenceService
from app.features.notifications.services.push_service import (
    PushNotificationService,
    build_push_payload,
)
from app.features.profile.models.delegation import DelegationGrant
from app.platform.config import settings
from app.platform.db.session import SessionLocal
from app.platform.logger import get_logger
from app.platform.services.email import render_template, send_email_async

logger = get_logger(__name__)

EmailSender = Callable[[str, str, str, Optional[str]], Awaitable[None]]

SENT = "sent"
ERROR = "error"
SKIPPED = "skipped"


@dataclass
class FanoutResult:
    sent: int = 0
    errors: int = 0
    skipped: int = 0

    def record(self, outcome: str) -> None:
        if outcome == SENT:
            self.sent += 1
        elif outcome == ERROR:
            self.errors += 1
        else:
            self.skipped += 1

    def merge(self, other: "FanoutResult") -> None:
        self.sent += other.sent
        self.errors += other.errors
        self.skipped += other.skipped

    def as_dict(self) -> dict:
        return {"sent": self.sent, "errors": self.errors, "skipped": self.skipped}


def reminder_today(now: Optional[datetime] = None) -> date:
    """Calendar date in the timezone the reminder schedule runs in."""
    zone = ZoneInfo(settings.FOLLOW_UP_REMINDER_TIMEZONE)
    return (now or datetime.now(zone)).astimezone(zone).date()


def company_key(company_name: Optional[str], owner_id: AccountId) -> str:
    return company_name or f"owner:{owner_id}"


class NotificationFanoutService:
    def __init__(
        self,
        db: AsyncSession,
        email_sender: Optional[EmailSender] = None,
        push_service: Optional[PushNotificationService] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        delay_seconds: Optional[float] = None,
    ):
        self.db = db
        self.email_sender = email_sender or send_email_async
        self.push = push_service if push_service is not None else PushNotificationService(db)
        self.preferences = NotificationPreferenceService(db)
        self.sleep = sleep
        self.delay_seconds = (
            settings.NOTIFICATION_SEND_DELAY_SECONDS if delay_seconds is None else delay_seconds
        )

    async def resolve_recipients(self, company_name: Optional[str], owner_id: Optional[AccountId] = None) -> List[Account]:
        """Active company members plus their active delegates, de-duplicated by id.

        Without a company name the owner and the owner's delegates are used.
        """
        if company_name:
            result = await self.db.execute(
                select(Account)
                .where(Account.company_name == company_name, Account.is_active.is_(True))
                .order_by(Account.id)
            )
        elif owner_id is not None:
            result = await self.db.execute(
                select(Account).where(Account.id == owner_id, Account.is_active.is_(True))
            )
        else:
            return []
        members = list(result.scalars().all())
        if not members:
            return []

        delegates = await self.db.execute(
            select(Account)
            .join(DelegationGrant, DelegationGrant.delegate_id == Account.id)
            .where(
                DelegationGrant.parent_id.in_([member.id for member in members]),
                Account.is_active.is_(True),
            )
            .order_by(Account.id)
        )

        recipients = {}
        for account in members + list(delegates.scalars().all()):
            recipients.setdefault(account.id, account)
        return list(recipients.values())

    def _compose(self, lead: Lead, category: NotificationCategory, recipient: Account, company_name: Optional[str]):
        url = f"{settings.FRONTEND_URL}/leads/{lead.id}"
        if category == NotificationCategory.FOLLOW_UP:
            subject = f"Follow-up Reminder: {lead.name}"
            template = "follow_up_reminder.html"
            text = f"Follow-up with {lead.name} is due on {lead.next_followup_date}."
            push_title = "Follow-up reminder"
            tag = "follow-up-reminder"
        else:
            subject = f"New Lead: {lead.name}"
            template = "new_lead.html"
            text = f"A new lead {lead.name} was added for {company_name or 'your account'}."
            push_title = "New lead added"
            tag = "lead-notification"

        html = render_template(
            template,
            lead=lead,
            recipient_name=recipient.full_name,
            company_name=company_name or "your account",
        )
        payload = build_push_payload(push_title, text, url=url, tag=tag, lead_id=lead.id)
        return subject, html, text, payload

    async def _notify_recipient(
        self,
        recipient: Account,
        lead: Lead,
        category: NotificationCategory,
        company_name: Optional[str],
    ) -> Tuple[str, bool]:
        """Returns (outcome, email_sent)."""
        preference = await self.preferences.get_preferences(recipient.id)
        if not preference.wants(category):
            logger.info(f"Account {recipient.id} has {category.value} notifications off, skipping")
            return SKIPPED, False

        subject, html, text, payload = self._compose(lead, category, recipient, company_name)
        attempted = delivered = email_sent = False

        if preference.email_notifications:
            attempted = True
            try:
                await self.email_sender(recipient.email, subject, html, text)
                email_sent = delivered = True
                logger.info(f"{category.value} email sent to {recipient.email} for lead {lead.id}")
            except Exception as e:
                logger.error(f"{category.value} email to {recipient.email} failed: {e}")

        if preference.browser_push:
            push = await self.push.send_to_account(recipient.id, payload)
            if push["delivered"] or push["failed"] or push["removed"]:
                attempted = True
            if push["delivered"]:
                delivered = True
            logger.info(f"{category.value} push for account {recipient.id}: {push}")

        if not attempted:
            return SKIPPED, False
        return (SENT if delivered else ERROR), email_sent

    async def _fanout(self, lead: Lead, category: NotificationCategory) -> FanoutResult:
        owner = await self.db.get(Account, lead.owner_id)
        company_name = owner.company_name if owner else None
        recipients = await self.resolve_recipients(company_name, lead.owner_id)

        result = FanoutResult()
        for index, recipient in enumerate(recipients):
            try:
                outcome, email_sent = await self._notify_recipient(
                    recipient, lead, category, company_name
                )
            except Exception as e:
                logger.exception(f"Notifying account {recipient.id} about lead {lead.id} failed: {e}")
                outcome, email_sent = ERROR, False

            result.record(outcome)
            if email_sent and index < len(recipients) - 1:
                await self.sleep(self.delay_seconds)

        logger.info(
            f"{category.value} fanout for lead {lead.id} ({company_key(company_name, lead.owner_id)}): "
            f"{result.as_dict()}"
        )
        return result

    async def notify_new_lead(self, lead: Lead) -> FanoutResult:
        return await self._fanout(lead, NotificationCategory.NEW_LEAD)

    async def notify_follow_up_due(self, lead: Lead) -> FanoutResult:
        return await self._fanout(lead, NotificationCategory.FOLLOW_UP)

    async def send_follow_up_reminders(self, today: Optional[date] = None) -> dict:
        """Remind company members about every lead whose follow-up falls on today."""
        today = today or reminder_today()
        result = await self.db.execute(
            select(Lead).where(Lead.next_followup_date == today).order_by(Lead.created_at)
        )
        leads = list(result.scalars().all())
        logger.info(f"Follow-up sweep for {today}: {len(leads)} leads due")

        totals = FanoutResult()
        for lead in leads:
            try:
                totals.merge(await self.notify_follow_up_due(lead))
            except Exception as e:
                logger.exception(f"Follow-up fanout for lead {lead.id} failed: {e}")
                totals.errors += 1

        return totals.as_dict()

    async def send_follow_up_reminder_for_lead(self, lead_id: str, requester_id: AccountId) -> dict:
        scope = await resolve_scope(self.db, requester_id)
        found = await self.db.execute(
            select(Lead).where(
                Lead.id == lead_id, visible_leads_clause(scope, active_owners_only=False)
            )
        )
        lead = found.scalar_one_or_none()
        if not lead:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lead not found")
        if not lead.next_followup_date:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Lead does not have a next follow-up date set",
            )

        result = await self.notify_follow_up_due(lead)
        return result.as_dict()


async def run_new_lead_fanout(lead_id: str) -> None:
    """Background job: notify the company about a freshly created lead."""

    try:
        async with SessionLocal() as db:
            lead = await db.get(Lead, lead_id)
            if not lead:
                logger.warning(f"Lead {lead_id} disappeared before notifications were sent")
                return
            await NotificationFanoutService(db).notify_new_lead(lead)
    except Exception as e:
        logger.exception(f"New lead fanout for {lead_id} failed: {e}")
