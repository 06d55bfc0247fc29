"""Celery configuration.

Usage:
    celery -A src.tasks.celery_app worker -l info
    celery -A src.tasks.celery_app beat -l info
"""

from celery import Celery

from src.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    "quluub_payments",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "src.tasks.sessions",
        "src.tasks.wallets",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    result_expires=3600,
    task_default_retry_delay=60,
    task_max_retries=5,
    task_routes={
        "sessions.*": {"queue": "sessions"},
        "wallets.*": {"queue": "wallets"},
    },
    beat_schedule={
        "reconcile-wallets": {
            "task": "wallets.reconcile",
            "schedule": float(settings.wallet_reconcile_interval_seconds),
        },
    },
)
