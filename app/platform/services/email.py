import asyncio
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Optional

import requests
from jinja2 import ChoiceLoader, Environment, FileSystemLoader, select_autoescape

from app.platform.config import settings
from app.platform.exceptions import EmailDeliveryError
from app.platform.logger import get_logger

logger = get_logger("email_service")

features_dir = Path(__file__).resolve().parents[2] / "features"

env = Environment(
    loader=ChoiceLoader(
        [
            FileSystemLoader(str(features_dir / "auth" / "template")),
            FileSystemLoader(str(features_dir / "leads" / "template")),
        ]
    ),
    autoescape=select_autoescape(["html"]),
)


def render_template(name: str, **context) -> str:
    context.setdefault("app_name", settings.APP_NAME)
    context.setdefault("frontend_url", settings.FRONTEND_URL)
    return env.get_template(name).render(**context)


def send_email(to_email: str, subject: str, html_body: str, text_body: Optional[str] = None):
    """
    Send email via HTTP relay service
    Falls back to direct SMTP if relay is not configured.
    Raises EmailDeliveryError when no transport accepted the message.
    """
    if settings.EMAIL_RELAY_URL and settings.EMAIL_RELAY_API_KEY:
        try:
            send_email_via_relay(to_email, subject, html_body, text_body)
            return
        except EmailDeliveryError as e:
            logger.error(f"Email relay failed: {str(e)}")
            logger.info("Attempting direct SMTP as fallback...")
            send_email_direct_smtp(to_email, subject, html_body, text_body)
    else:
        logger.warning("Email relay not configured, attempting direct SMTP")
        send_email_direct_smtp(to_email, subject, html_body, text_body)


async def send_email_async(
    to_email: str, subject: str, html_body: str, text_body: Optional[str] = None
):
    """Run the blocking transport in a worker thread."""
    await asyncio.to_thread(send_email, to_email, subject, html_body, text_body)


def send_email_via_relay(to_email: str, subject: str, html_body: str, text_body: Optional[str] = None):
    """Send email via HTTP relay service"""
    payload = {
        "to_email": to_email,
        "subject": subject,
        "body": html_body,
        "text_body": text_body,
        "from_address": settings.MAIL_FROM_ADDRESS,
    }

    headers = {
        "X-API-Key": settings.EMAIL_RELAY_API_KEY,
        "Content-Type": "application/json",
    }

    try:
        response = requests.post(
            settings.EMAIL_RELAY_URL,
            json=payload,
            headers=headers,
            timeout=settings.EMAIL_RELAY_TIMEOUT,
        )
        response.raise_for_status()
        logger.info(f"Email sent via relay to {to_email}")

    except requests.exceptions.Timeout:
        logger.error(f"Email relay timeout for {to_email}")
        raise EmailDeliveryError("Email relay service timeout")

    except requests.exceptions.RequestException as e:
        logger.error(f"Email relay request failed: {str(e)}")
        if getattr(e, "response", None) is not None:
            logger.error(f"Response status: {e.response.status_code}")
        raise EmailDeliveryError(f"Email relay service error: {str(e)}")


def send_email_direct_smtp(to_email: str, subject: str, html_body: str, text_body: Optional[str] = None):
    """Base function to send email via SMTP"""
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{settings.MAIL_FROM_NAME} <{settings.MAIL_FROM_ADDRESS}>"
    msg["To"] = to_email

    if text_body:
        msg.attach(MIMEText(text_body, "plain"))
    msg.attach(MIMEText(html_body, "html"))

    try:
        port = settings.MAIL_PORT

        if port == 465:
            context = ssl.create_default_context()
            with smtplib.SMTP_SSL(settings.MAIL_HOST, port, context=context) as server:
                server.login(settings.MAIL_USERNAME, settings.MAIL_PASSWORD)
                server.sendmail(settings.MAIL_FROM_ADDRESS, to_email, msg.as_string())
        else:
            with smtplib.SMTP(settings.MAIL_HOST, port) as server:
                server.ehlo()

                if str(settings.MAIL_ENCRYPTION).upper() in ["TLS", "TRUE"]:
                    server.starttls()
                    server.ehlo()

                server.login(settings.MAIL_USERNAME, settings.MAIL_PASSWORD)
                server.sendmail(settings.MAIL_FROM_ADDRESS, to_email, msg.as_string())

        logger.info(f"Email sent via SMTP to {to_email}")

    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"CRITICAL EMAIL ERROR: {str(e)}")
        raise EmailDeliveryError(str(e)) from e
