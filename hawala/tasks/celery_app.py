"""
Celery application configuration.

Defines the Celery app with Redis broker, task autodiscovery,
and the periodic beat schedule for cash balance reconciliation.
"""

from celery import Celery

from hawala.config import settings

celery_app = Celery(
    "hawala",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
)

# Auto-discover tasks in the tasks package
celery_app.autodiscover_tasks(["hawala.tasks"], related_name="reconciliation_tasks")

# Beat schedule
celery_app.conf.beat_schedule = {
    "reconcile-cash-balances": {
        "task": "hawala.tasks.reconciliation_tasks.reconcile_cash_balances",
        "schedule": settings.RECONCILIATION_INTERVAL_SECONDS,
    },
}
