"""Ledger Service - atomic wallet credits/debits and ledger queries."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from fastapi_pagination.ext.sqlmodel import apaginate
from sqlalchemy import case, func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from src.core.exceptions import InsufficientBalanceError, ValidationError
from src.models.transaction import Transaction, TransactionStatus, TransactionType
from src.models.wallet import Currency, Wallet
from src.schemas.pagination import CustomPage
from src.schemas.wallet import EarningsSummary, TransactionResponse
from src.utils.helpers import utc_now

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass
class WalletAudit:
    """Stored balance compared with the balance implied by the ledger."""

    wallet_id: int
    user_id: int
    stored_balance: Decimal
    ledger_balance: Decimal

    @property
    def matches(self) -> bool:
        return self.stored_balance == self.ledger_balance

    @property
    def drift(self) -> Decimal:
        return self.stored_balance - self.ledger_balance


class LedgerService:
    """Service for wallet balance changes.

    Every balance change is one `balance = balance +/- x` UPDATE plus one
    Transaction row, flushed in the caller's DB transaction. Nothing here
    commits; the caller decides the transaction boundary.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # ============ Wallets ============

    async def get_wallet(self, user_id: int) -> Wallet | None:
        """Load a user's wallet, refreshing any cached instance."""
        result = await self.db.execute(
            select(Wallet)
            .where(Wallet.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _insert_wallet(self, user_id: int, currency: Currency, balance: Decimal) -> bool:
        """Insert a wallet inside a savepoint.

        Returns:
            False if another request created the wallet first
        """
        try:
            async with self.db.begin_nested():
                self.db.add(Wallet(user_id=user_id, currency=currency, balance=balance))
                await self.db.flush()
        except IntegrityError:
            logger.info(f"Wallet for user {user_id} created concurrently, retrying update")
            return False
        return True

    async def get_or_create_wallet(self, user_id: int, currency: Currency) -> Wallet:
        """Get a user's wallet, creating an empty one in `currency` if absent."""
        wallet = await self.get_wallet(user_id)
        if wallet is None:
            await self._insert_wallet(user_id, currency, ZERO)
            wallet = await self.get_wallet(user_id)
        return wallet  # type: ignore[return-value]

    # ============ Balance changes ============

    async def credit(
        self,
        user_id: int,
        amount: Decimal,
        currency: Currency,
        description: str,
        reference: str | None = None,
    ) -> Transaction:
        """Atomically add `amount` to a wallet (created if absent) and record it.

        Raises:
            ValidationError: Amount not positive, or wallet holds another currency
            IntegrityError: Reference already recorded
        """
        if amount <= ZERO:
            raise ValidationError("Credit amount must be positive", {"amount": str(amount)})

        stmt = (
            update(Wallet)
            .where(Wallet.user_id == user_id, Wallet.currency == currency)
            .values(balance=Wallet.balance + amount, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount == 0:
            created = await self._insert_wallet(user_id, currency, amount)
            if not created:
                result = await self.db.execute(stmt)
                if result.rowcount == 0:
                    raise ValidationError(
                        "Wallet currency does not match credit currency",
                        {"user_id": user_id, "currency": currency.value},
                    )

        wallet = await self.get_wallet(user_id)
        txn = Transaction(
            wallet_id=wallet.id,  # type: ignore[union-attr]
            type=TransactionType.CREDIT,
            amount=amount,
            description=description,
            status=TransactionStatus.COMPLETED,
            reference=reference,
        )
        self.db.add(txn)
        await self.db.flush()
        logger.info(
            f"Credited {amount} {currency.value} to user {user_id} "
            f"(ref={reference}, balance={wallet.balance})"  # type: ignore[union-attr]
        )
        return txn

    async def debit(
        self,
        user_id: int,
        amount: Decimal,
        currency: Currency,
        description: str,
        reference: str | None = None,
    ) -> Transaction:
        """Atomically subtract `amount` if the balance covers it, and record it.

        Raises:
            InsufficientBalanceError: No wallet, or balance below amount
            ValidationError: Amount not positive, or wallet holds another currency
        """
        if amount <= ZERO:
            raise ValidationError("Debit amount must be positive", {"amount": str(amount)})

        wallet = await self.get_wallet(user_id)
        if wallet is None:
            raise InsufficientBalanceError(required=amount, available=ZERO)
        if wallet.currency != currency:
            raise ValidationError(
                "Wallet currency does not match withdrawal currency",
                {"wallet_currency": wallet.currency.value, "currency": currency.value},
            )

        result = await self.db.execute(
            update(Wallet)
            .where(Wallet.id == wallet.id, Wallet.balance >= amount)
            .values(balance=Wallet.balance - amount, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            wallet = await self.get_wallet(user_id)
            raise InsufficientBalanceError(
                required=amount,
                available=wallet.balance if wallet else ZERO,
            )

        txn = Transaction(
            wallet_id=wallet.id,  # type: ignore[arg-type]
            type=TransactionType.DEBIT,
            amount=amount,
            description=description,
            status=TransactionStatus.COMPLETED,
            reference=reference,
        )
        self.db.add(txn)
        await self.db.flush()
        logger.info(f"Debited {amount} {currency.value} from user {user_id} (ref={reference})")
        return txn

    # ============ Queries ============

    async def list_transactions(self, user_id: int) -> CustomPage[TransactionResponse]:
        """Paginated ledger for a user's wallet, newest first."""
        query = (
            select(Transaction)
            .join(Wallet, Wallet.id == Transaction.wallet_id)
            .where(Wallet.user_id == user_id)
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        )
        return await apaginate(
            self.db,
            query,
            transformer=lambda items: [TransactionResponse.model_validate(t) for t in items],
        )

    async def earnings_summary(self, user_id: int, now: datetime | None = None) -> EarningsSummary:
        """Session earnings credited today, this week, month, year and in total.

        Weeks start on Monday. Only session credits count; withdrawal refunds
        are not earnings.
        """
        wallet = await self.get_wallet(user_id)
        currency = wallet.currency if wallet else Currency.USD
        if wallet is None:
            return EarningsSummary(
                currency=currency, today=ZERO, week=ZERO, month=ZERO, year=ZERO, total=ZERO
            )

        now = now or utc_now()
        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        starts = {
            "today": today,
            "week": today - timedelta(days=today.weekday()),
            "month": today.replace(day=1),
            "year": today.replace(month=1, day=1),
            "total": None,
        }

        totals: dict[str, Decimal] = {}
        for period, start in starts.items():
            query = select(func.coalesce(func.sum(Transaction.amount), 0)).where(
                Transaction.wallet_id == wallet.id,
                Transaction.type == TransactionType.CREDIT,
                Transaction.status == TransactionStatus.COMPLETED,
                Transaction.reference.like("session:%"),  # type: ignore[union-attr]
            )
            if start is not None:
                query = query.where(Transaction.created_at >= start)
            result = await self.db.execute(query)
            totals[period] = Decimal(str(result.scalar_one()))

        return EarningsSummary(currency=currency, **totals)

    async def audit_wallet(self, wallet: Wallet) -> WalletAudit:
        """Compare a wallet's stored balance with its completed ledger entries."""
        signed = case(
            (Transaction.type == TransactionType.CREDIT, Transaction.amount),
            else_=-Transaction.amount,
        )
        result = await self.db.execute(
            select(func.coalesce(func.sum(signed), 0)).where(
                Transaction.wallet_id == wallet.id,
                Transaction.status == TransactionStatus.COMPLETED,
            )
        )
        ledger_balance = Decimal(str(result.scalar_one()))
        return WalletAudit(
            wallet_id=wallet.id,  # type: ignore[arg-type]
            user_id=wallet.user_id,
            stored_balance=Decimal(str(wallet.balance)),
            ledger_balance=ledger_balance,
        )
