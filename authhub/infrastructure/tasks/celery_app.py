"""Celery application configuration for background tasks."""

from celery import Celery
from celery.signals import setup_logging

from authhub.settings import get_settings

settings = get_settings()

celery_app = Celery(
    "authhub",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "authhub.infrastructure.tasks.maintenance_tasks",
    ],
)

celery_app.conf.update(
    task_routes={
        "authhub.infrastructure.tasks.maintenance_tasks.*": {"queue": "maintenance"},
    },

    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    worker_prefetch_multiplier=1,
    task_acks_late=True,
    worker_max_tasks_per_child=1000,

    result_expires=3600,
    result_backend_transport_options={
        "retry_policy": {
            "timeout": 5.0,
        },
    },

    task_default_retry_delay=60,
    task_max_retries=3,

    beat_schedule={
        "sweep-expired-tokens": {
            "task": "authhub.infrastructure.tasks.maintenance_tasks.sweep_expired_tokens",
            "schedule": 3600.0,  # Every hour
        },
        "sweep-revoked-tokens": {
            "task": "authhub.infrastructure.tasks.maintenance_tasks.sweep_revoked_tokens",
            "schedule": 3600.0,  # Every hour
        },
        "prune-login-logs": {
            "task": "authhub.infrastructure.tasks.maintenance_tasks.prune_login_logs",
            "schedule": 86400.0,  # Every day
        },
        "report-suspicious-activity": {
            "task": "authhub.infrastructure.tasks.maintenance_tasks.report_suspicious_activity",
            "schedule": 900.0,  # Every 15 minutes
        },
    },
)


@setup_logging.connect
def config_loggers(*args, **kwargs):
    """Configure Celery logging."""
    from authhub.utils.logging import setup_logging as configure_logging

    configure_logging()

