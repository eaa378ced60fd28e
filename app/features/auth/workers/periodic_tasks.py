import asyncio
import logging

from celery import shared_task

from app.features.auth.services.otp_service import OtpService
from app.features.auth.services.token_service import TokenService
from app.platform.async_db_helper import get_async_db

logger = logging.getLogger(__name__)


async def _cleanup() -> dict:
    async with get_async_db() as db:
        codes = await OtpService(db).cleanup_expired()
        tokens = await TokenService(db).cleanup_expired()
    return {"codes": codes, "tokens": tokens}


@shared_task(bind=True, name="app.features.auth.workers.periodic_tasks.cleanup_expired_credentials")
def cleanup_expired_credentials(self):
    """Delete expired one-time codes and bearer tokens."""
    result = asyncio.run(_cleanup())
    logger.info(f"Removed {result['codes']} expired codes and {result['tokens']} expired tokens")
    return result
