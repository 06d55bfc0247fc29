"""Background tasks."""

from src.tasks.celery_app import celery_app
from src.tasks.sessions import expire_pending_session
from src.tasks.wallets import reconcile_wallets

__all__ = [
    "celery_app",
    "expire_pending_session",
    "reconcile_wallets",
]
