"""Wallet consistency tasks.

Periodically checks that each wallet's balance equals its completed
credits minus completed debits. Mismatches are logged for manual
reconciliation; balances are never corrected automatically.
"""

import logging

from sqlmodel import select

from src.db.engine import close_db, get_session
from src.models.wallet import Wallet
from src.services.ledger_service import LedgerService
from src.tasks.celery_app import celery_app
from src.tasks.sessions import run_async

logger = logging.getLogger(__name__)


@celery_app.task(name="wallets.reconcile")
def reconcile_wallets() -> dict:
    """Audit every wallet against its ledger."""
    return run_async(_reconcile_wallets_async())


async def audit_all_wallets(db) -> list[dict]:
    """Return one entry per wallet whose balance drifts from its ledger."""
    ledger = LedgerService(db)
    result = await db.execute(select(Wallet).order_by(Wallet.id))
    mismatches = []
    for wallet in result.scalars().all():
        audit = await ledger.audit_wallet(wallet)
        if not audit.matches:
            logger.error(
                f"[reconcile_wallets] wallet {audit.wallet_id} (user {audit.user_id}) "
                f"balance {audit.stored_balance} != ledger {audit.ledger_balance}"
            )
            mismatches.append(
                {
                    "wallet_id": audit.wallet_id,
                    "user_id": audit.user_id,
                    "stored_balance": str(audit.stored_balance),
                    "ledger_balance": str(audit.ledger_balance),
                }
            )
    return mismatches


async def _reconcile_wallets_async() -> dict:
    try:
        async with get_session() as db:
            mismatches = await audit_all_wallets(db)
    finally:
        await close_db()

    logger.info(f"[reconcile_wallets] done, {len(mismatches)} mismatched wallets")
    return {"mismatches": mismatches}
