from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import HTTPException, status
from sqlalchemy import select

from app.features.notifications.models.notifications import PushSubscription
from app.features.notifications.services.fanout import (
    NotificationFanoutService,
    reminder_today,
    run_new_lead_fanout,
)
from app.features.notifications.services.preferences import NotificationPreferenceService
from app.features.notifications.services.push_service import PushNotificationService
from app.platform.exceptions import PushSubscriptionGone

TODAY = date(2025, 6, 15)


class Recorder:
    """Captures emails and pauses in the order they happen."""

    def __init__(self, failing=()):
        self.events = []
        self.failing = set(failing)

    async def send_email(self, to, subject, html, text=None):
        if to in self.failing:
            self.events.append(("failed", to))
            raise RuntimeError("mailbox unavailable")
        self.events.append(("email", to, subject))

    async def sleep(self, seconds):
        self.events.append(("sleep", seconds))

    def emails(self):
        return [event[1] for event in self.events if event[0] == "email"]

    def sleeps(self):
        return [event for event in self.events if event[0] == "sleep"]


@pytest.fixture
def push_sender():
    sender = MagicMock()
    sender.send = AsyncMock()
    return sender


def _service(db_session, recorder, push_sender):
    return NotificationFanoutService(
        db_session,
        email_sender=recorder.send_email,
        push_service=PushNotificationService(db_session, sender=push_sender),
        sleep=recorder.sleep,
        delay_seconds=2.0,
    )


@pytest.mark.asyncio
async def test_recipients_are_company_members_and_their_delegates(
    db_session, make_account, make_delegate
):
    alice = await make_account(company_name="Acme Corp")
    bob = await make_account(company_name="Acme Corp")
    await make_account(company_name="Acme Corp", is_active=False)
    await make_account(company_name="Globex")
    sam = await make_delegate(alice)
    remote = await make_delegate(bob, company_name="Acme Remote")
    await make_delegate(alice, is_active=False)

    service = NotificationFanoutService(db_session, email_sender=AsyncMock())
    recipients = await service.resolve_recipients("Acme Corp")

    assert [r.id for r in recipients] == [alice.id, bob.id, sam.id, remote.id]


@pytest.mark.asyncio
async def test_owner_without_company_notifies_owner_and_delegates(
    db_session, make_account, make_delegate
):
    solo = await make_account(company_name=None)
    helper = await make_delegate(solo)

    service = NotificationFanoutService(db_session, email_sender=AsyncMock())
    recipients = await service.resolve_recipients(None, solo.id)

    assert [r.id for r in recipients] == [solo.id, helper.id]


@pytest.mark.asyncio
async def test_new_lead_emails_creator_and_delegate_with_pause_between(
    db_session, push_sender, make_account, make_delegate, make_lead
):
    alice = await make_account(company_name="Acme Corp")
    sam = await make_delegate(alice, can_add=True)
    lead = await make_lead(alice, name="Fresh Prospect")
    recorder = Recorder()

    result = await _service(db_session, recorder, push_sender).notify_new_lead(lead)

    assert result.as_dict() == {"sent": 2, "errors": 0, "skipped": 0}
    assert recorder.events == [
        ("email", alice.email, "New Lead: Fresh Prospect"),
        ("sleep", 2.0),
        ("email", sam.email, "New Lead: Fresh Prospect"),
    ]
    push_sender.send.assert_not_awaited()


@pytest.mark.asyncio
async def test_push_only_recipient_gets_no_email(
    db_session, push_sender, make_account, make_lead
):
    ravi = await make_account(company_name="Solo Co")
    await NotificationPreferenceService(db_session).update_preferences(
        ravi.id, {"new_leads": True, "email_notifications": False, "browser_push": True}
    )
    db_session.add_all(
        [
            PushSubscription(endpoint="https://push.example/old", account_id=ravi.id, p256dh="k1", auth="a1"),
            PushSubscription(endpoint="https://push.example/new", account_id=ravi.id, p256dh="k2", auth="a2"),
        ]
    )
    await db_session.commit()

    async def deliver(info, payload):
        if info["endpoint"].endswith("/old"):
            raise PushSubscriptionGone("gone", 410)

    push_sender.send.side_effect = deliver
    lead = await make_lead(ravi)
    recorder = Recorder()

    result = await _service(db_session, recorder, push_sender).notify_new_lead(lead)

    assert result.sent == 1
    assert recorder.emails() == []
    assert recorder.sleeps() == []
    assert push_sender.send.await_count == 2

    remaining = await db_session.execute(select(PushSubscription.endpoint))
    assert remaining.scalars().all() == ["https://push.example/new"]


@pytest.mark.asyncio
async def test_category_switched_off_skips_every_channel(
    db_session, push_sender, make_account, make_lead
):
    muted = await make_account(company_name="Quiet Co")
    await NotificationPreferenceService(db_session).update_preferences(
        muted.id, {"new_leads": False, "browser_push": True}
    )
    lead = await make_lead(muted)
    recorder = Recorder()

    result = await _service(db_session, recorder, push_sender).notify_new_lead(lead)

    assert result.as_dict() == {"sent": 0, "errors": 0, "skipped": 1}
    assert recorder.events == []
    push_sender.send.assert_not_awaited()


@pytest.mark.asyncio
async def test_failed_email_does_not_stop_the_loop(
    db_session, push_sender, make_account, make_delegate, make_lead
):
    alice = await make_account(company_name="Acme Corp")
    bob = await make_account(company_name="Acme Corp")
    sam = await make_delegate(alice)
    lead = await make_lead(alice)
    recorder = Recorder(failing={bob.email})

    result = await _service(db_session, recorder, push_sender).notify_new_lead(lead)

    assert result.as_dict() == {"sent": 2, "errors": 1, "skipped": 0}
    assert recorder.emails() == [alice.email, sam.email]
    assert recorder.events[1] == ("sleep", 2.0)
    assert len(recorder.sleeps()) == 1


@pytest.mark.asyncio
async def test_daily_sweep_only_covers_leads_due_today(
    db_session, push_sender, make_account, make_lead
):
    owner = await make_account(company_name="Acme Corp")
    await make_lead(owner, name="Due Today", next_followup_date=TODAY)
    await make_lead(owner, name="Due Tomorrow", next_followup_date=TODAY + timedelta(days=1))
    await make_lead(owner, name="Overdue", next_followup_date=TODAY - timedelta(days=1))
    recorder = Recorder()

    totals = await _service(db_session, recorder, push_sender).send_follow_up_reminders(today=TODAY)

    assert totals == {"sent": 1, "errors": 0, "skipped": 0}
    assert [event[2] for event in recorder.events] == ["Follow-up Reminder: Due Today"]


@pytest.mark.asyncio
async def test_manual_reminder_requires_visible_lead_with_date(
    db_session, push_sender, make_account, make_lead
):
    owner = await make_account(company_name="Acme Corp")
    outsider = await make_account(company_name="Globex")
    undated = await make_lead(owner, name="No Date")
    dated = await make_lead(owner, name="Has Date", next_followup_date=TODAY)
    recorder = Recorder()
    service = _service(db_session, recorder, push_sender)

    with pytest.raises(HTTPException) as exc:
        await service.send_follow_up_reminder_for_lead(undated.id, owner.id)
    assert exc.value.status_code == status.HTTP_400_BAD_REQUEST

    with pytest.raises(HTTPException) as exc:
        await service.send_follow_up_reminder_for_lead(dated.id, outsider.id)
    assert exc.value.status_code == status.HTTP_404_NOT_FOUND

    result = await service.send_follow_up_reminder_for_lead(dated.id, owner.id)
    assert result["sent"] == 1


@pytest.mark.asyncio
async def test_background_job_tolerates_deleted_lead():
    db = AsyncMock()
    db.get.return_value = None
    session_factory = MagicMock()
    session_factory.return_value.__aenter__.return_value = db

    with patch("app.features.notifications.services.fanout.SessionLocal", session_factory), patch(
        "app.features.notifications.services.fanout.NotificationFanoutService"
    ) as fanout_cls:
        await run_new_lead_fanout("missing-lead")

    fanout_cls.assert_not_called()


def test_reminder_date_follows_schedule_timezone():
    late_utc_evening = datetime(2025, 6, 14, 20, 0, tzinfo=timezone.utc)

    with patch(
        "app.features.notifications.services.fanout.settings.FOLLOW_UP_REMINDER_TIMEZONE",
        "Asia/Kolkata",
    ):
        assert reminder_today(late_utc_evening) == date(2025, 6, 15)

    with patch(
        "app.features.notifications.services.fanout.settings.FOLLOW_UP_REMINDER_TIMEZONE", "UTC"
    ):
        assert reminder_today(late_utc_evening) == date(2025, 6, 14)
