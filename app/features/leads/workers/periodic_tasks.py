"""
Celery periodic tasks for lead follow-ups.

Runs daily via Celery Beat at FOLLOW_UP_REMINDER_HOUR in the configured timezone.
"""
import asyncio
import logging

from celery import shared_task

from app.features.notifications.services.fanout import NotificationFanoutService
from app.platform.async_db_helper import get_async_db

logger = logging.getLogger(__name__)


async def _send_follow_up_reminders() -> dict:
    async with get_async_db() as db:
        return await NotificationFanoutService(db).send_follow_up_reminders()


@shared_task(bind=True, name="app.features.leads.workers.periodic_tasks.send_follow_up_reminders")
def send_follow_up_reminders(self):
    """Notify company members about every lead whose follow-up is due today."""
    logger.info("Running follow-up reminder sweep...")
    result = asyncio.run(_send_follow_up_reminders())
    logger.info(
        f"Follow-up reminders finished: {result['sent']} sent, "
        f"{result['errors']} errors, {result['skipped']} skipped"
    )
    return result
