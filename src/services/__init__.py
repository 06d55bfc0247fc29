"""Quluub Payments Service Layer.

Business logic for bookings, payment reconciliation, wallets and payouts.
Each service wraps one AsyncSession and is reused by API endpoints and tasks.
"""

from src.services.bank_account_service import BankAccountService
from src.services.checkout_service import CheckoutService
from src.services.ledger_service import LedgerService
from src.services.notification_service import NotificationService
from src.services.reconciliation_service import (
    ReconciliationOutcome,
    ReconciliationResult,
    ReconciliationService,
)
from src.services.session_service import SessionService
from src.services.video_service import VideoService
from src.services.withdrawal_service import WithdrawalService

__all__ = [
    "BankAccountService",
    "CheckoutService",
    "LedgerService",
    "NotificationService",
    "ReconciliationOutcome",
    "ReconciliationResult",
    "ReconciliationService",
    "SessionService",
    "VideoService",
    "WithdrawalService",
]
