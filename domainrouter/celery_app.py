from celery import Celery

from domainrouter.config import settings

celery_app = Celery(
    "domainrouter",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND
)

celery_app.conf.broker_connection_retry_on_startup = True

celery_app.conf.task_routes = {
    "domainrouter.tasks.*": {"queue": "celery"}
}

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
)

# Abandoned "verifying" claims are failed by the sweep once a minute
celery_app.conf.beat_schedule = {
    "reset-stale-verifications": {
        "task": "domainrouter.tasks.domain_tasks.reset_stale_verifications",
        "schedule": 60.0,
    },
}

celery_app.autodiscover_tasks(["domainrouter.tasks"])

# Explicitly import tasks to ensure they are registered
import domainrouter.tasks.domain_tasks  # noqa: F401, E402
