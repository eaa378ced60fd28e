from celery import Celery
from celery.schedules import crontab
from kombu import Queue

from app.platform.config import settings


def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Only periodic jobs run here. Lead notifications triggered by requests are
    handled in-process by the fanout dispatcher.

    Queue Structure:
    - celery: periodic tasks (follow-up reminders, cleanup)
    """
    celery_app = Celery(
        "leadflow",
        broker=settings.CELERY_BROKER_URL,
        backend=settings.CELERY_RESULT_BACKEND,
    )

    celery_app.conf.update(
        task_serializer=settings.CELERY_TASK_SERIALIZER,
        result_serializer=settings.CELERY_RESULT_SERIALIZER,
        accept_content=[settings.CELERY_ACCEPT_CONTENT],
        timezone=settings.FOLLOW_UP_REMINDER_TIMEZONE,
        enable_utc=True,
        task_time_limit=settings.CELERY_TASK_TIME_LIMIT,
        result_expires=3600,
        task_routes={
            "app.features.leads.workers.periodic_tasks.send_follow_up_reminders": {"queue": "celery"},
            "app.features.auth.workers.periodic_tasks.cleanup_expired_credentials": {"queue": "celery"},
        },
        task_queues=(
            Queue("default"),
            Queue("celery"),
        ),
        task_default_queue="default",
        worker_prefetch_multiplier=1,
        task_acks_late=True,
        # Celery Beat schedule for periodic tasks
        beat_schedule={
            "send-follow-up-reminders": {
                "task": "app.features.leads.workers.periodic_tasks.send_follow_up_reminders",
                "schedule": crontab(hour=settings.FOLLOW_UP_REMINDER_HOUR, minute=0),
            },
            "cleanup-expired-credentials": {
                "task": "app.features.auth.workers.periodic_tasks.cleanup_expired_credentials",
                "schedule": crontab(hour=3, minute=0),
            },
        },
    )

    celery_app.autodiscover_tasks(
        ["app.features.leads.workers", "app.features.auth.workers"], related_name="periodic_tasks"
    )

    return celery_app


# Global Celery app instance
celery_app = create_celery_app()
