"""Withdrawal Service - wallet payouts through Paystack transfers.

Flow: reserve funds (debit) -> create recipient / initiate transfer ->
confirm via transfer webhook. A synchronous gateway failure is compensated
with a credit before the request returns; an asynchronous failure or
reversal is refunded when its webhook arrives.
"""

import logging
from decimal import Decimal

from fastapi_pagination.ext.sqlmodel import apaginate
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from src.core.exceptions import (
    AuthorizationError,
    BankAccountNotVerifiedError,
    UnsupportedCurrencyError,
    ValidationError,
    WithdrawalNotFoundError,
)
from src.core.security import decrypt_sensitive_data
from src.gateways.base import PaymentGateway, TransferEvent
from src.gateways.factory import get_payment_gateway
from src.models.session import PaymentProvider
from src.models.transaction import withdrawal_reference
from src.models.user import User, UserRole
from src.models.wallet import Currency
from src.models.webhook import ProcessedEvent
from src.models.withdrawal import (
    DEFAULT_REVERSAL_REASON,
    OPEN_WITHDRAWAL_STATUSES,
    BankAccount,
    BankAccountType,
    Withdrawal,
    WithdrawalStatus,
)
from src.schemas.bank import WithdrawalResponse
from src.schemas.pagination import CustomPage
from src.services.ledger_service import LedgerService
from src.services.notification_service import WALLET_UPDATED, NotificationService
from src.services.reconciliation_service import ReconciliationOutcome
from src.utils.amount import quantize_money
from src.utils.helpers import utc_now

logger = logging.getLogger(__name__)

TRANSFER_SUCCESS = "transfer.success"


def transfer_reference_for(withdrawal_id: int) -> str:
    """Idempotency reference sent with the Paystack transfer."""
    return f"wd_{withdrawal_id}"


class WithdrawalService:
    """Service for counselor withdrawals."""

    def __init__(
        self,
        db: AsyncSession,
        gateway: PaymentGateway | None = None,
        notification_service: NotificationService | None = None,
    ):
        self.db = db
        self.ledger = LedgerService(db)
        self._gateway = gateway
        self.notifications = notification_service or NotificationService(db)

    @property
    def gateway(self) -> PaymentGateway:
        if self._gateway is None:
            self._gateway = get_payment_gateway(PaymentProvider.PAYSTACK)
        return self._gateway

    # ============ Requests ============

    async def request_withdrawal(
        self, user: User, amount: Decimal, currency: Currency | str
    ) -> Withdrawal:
        """Withdraw `amount` from the user's wallet to their verified bank account.

        Args:
            user: Counselor requesting the payout
            amount: Amount in major units
            currency: Must match the wallet; only NGN payouts are supported

        Returns:
            Withdrawal in processing (or completed) status

        Raises:
            AuthorizationError: User is not a counselor
            ValidationError: Bad amount or currency
            BankAccountNotVerifiedError: No verified local account
            InsufficientBalanceError: Balance below amount (nothing written)
            GatewayError: Transfer not initiated (wallet already re-credited)
        """
        if user.role != UserRole.COUNSELOR:
            raise AuthorizationError("Only counselors can withdraw")

        amount = quantize_money(Decimal(str(amount)))
        if amount <= 0:
            raise ValidationError("Withdrawal amount must be positive", {"amount": str(amount)})
        try:
            currency = Currency(str(getattr(currency, "value", currency)).lower())
        except ValueError as e:
            raise UnsupportedCurrencyError(str(currency)) from e
        if currency != Currency.NGN:
            raise ValidationError("Withdrawals are only supported in NGN")

        account = await self._payout_account(user.id)  # type: ignore[arg-type]

        withdrawal = Withdrawal(
            user_id=user.id,  # type: ignore[arg-type]
            bank_account_id=account.id,  # type: ignore[arg-type]
            amount=amount,
            currency=currency,
            status=WithdrawalStatus.PENDING,
        )
        self.db.add(withdrawal)
        try:
            await self.db.flush()
            withdrawal_id: int = withdrawal.id  # type: ignore[assignment]
            withdrawal.transfer_reference = transfer_reference_for(withdrawal_id)
            await self.ledger.debit(
                user_id=user.id,  # type: ignore[arg-type]
                amount=amount,
                currency=currency,
                description=f"Withdrawal #{withdrawal_id}",
                reference=withdrawal_reference(withdrawal_id),
            )
        except Exception:
            await self.db.rollback()
            raise
        await self.db.commit()
        logger.info(f"Withdrawal {withdrawal_id}: reserved {amount} {currency.value}")

        try:
            recipient_code = account.recipient_code or await self._create_recipient(account)
            transfer = await self.gateway.initiate_transfer(
                amount,
                recipient_code,
                transfer_reference_for(withdrawal_id),
                reason=f"Quluub withdrawal #{withdrawal_id}",
            )
        except Exception as e:
            reason = getattr(e, "message", None) or str(e)
            logger.error(f"Withdrawal {withdrawal_id} transfer not initiated: {reason}")
            await self._compensate(withdrawal_id, reason)
            raise

        status = WithdrawalStatus.PROCESSING
        if transfer.status == "success":
            status = WithdrawalStatus.COMPLETED
        now = utc_now()
        values: dict = {
            "transfer_code": transfer.transfer_code,
            "status": status,
            "updated_at": now,
        }
        if status == WithdrawalStatus.COMPLETED:
            values["completed_at"] = now
        result = await self.db.execute(
            update(Withdrawal)
            .where(Withdrawal.id == withdrawal_id, Withdrawal.status == WithdrawalStatus.PENDING)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            # A transfer webhook already finalized it; only record the code
            await self.db.execute(
                update(Withdrawal)
                .where(Withdrawal.id == withdrawal_id)
                .values(transfer_code=transfer.transfer_code, updated_at=now)
                .execution_options(synchronize_session=False)
            )
        await self.db.commit()

        logger.info(
            f"Withdrawal {withdrawal_id}: transfer {transfer.transfer_code} {transfer.status}"
        )
        return await self._reload(withdrawal_id)

    async def _payout_account(self, user_id: int) -> BankAccount:
        result = await self.db.execute(select(BankAccount).where(BankAccount.user_id == user_id))
        account = result.scalar_one_or_none()
        if account is None:
            raise BankAccountNotVerifiedError("Add a bank account before withdrawing")
        if not account.is_verified or account.account_type != BankAccountType.LOCAL:
            raise BankAccountNotVerifiedError("Bank account is not verified for payouts")
        return account

    async def _create_recipient(self, account: BankAccount) -> str:
        """Create and store a Paystack recipient for an account missing one."""
        account_number = decrypt_sensitive_data(account.encrypted_account_number)
        recipient_code = await self.gateway.create_transfer_recipient(
            account.account_name, account_number, account.bank_code or ""
        )
        await self.db.execute(
            update(BankAccount)
            .where(BankAccount.id == account.id)
            .values(recipient_code=recipient_code, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return recipient_code

    async def _compensate(self, withdrawal_id: int, reason: str) -> None:
        """Fail a pending withdrawal and return its funds to the wallet."""
        await self.db.rollback()
        withdrawal = await self._reload(withdrawal_id)
        result = await self.db.execute(
            update(Withdrawal)
            .where(Withdrawal.id == withdrawal_id, Withdrawal.status == WithdrawalStatus.PENDING)
            .values(
                status=WithdrawalStatus.FAILED,
                failure_reason=reason[:500],
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.db.commit()
            await self._reload(withdrawal_id)
            return
        await self.ledger.credit(
            user_id=withdrawal.user_id,
            amount=withdrawal.amount,
            currency=withdrawal.currency,
            description=f"Withdrawal #{withdrawal_id} not sent: {reason}"[:500],
            reference=withdrawal_reference(withdrawal_id, "compensation"),
        )
        await self.db.commit()
        await self._reload(withdrawal_id)
        logger.info(f"Withdrawal {withdrawal_id}: {withdrawal.amount} returned to wallet")

    async def _reload(self, withdrawal_id: int) -> Withdrawal:
        result = await self.db.execute(
            select(Withdrawal)
            .where(Withdrawal.id == withdrawal_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def list_withdrawals(self, user_id: int) -> CustomPage[WithdrawalResponse]:
        """Paginated withdrawal history, newest first."""
        query = (
            select(Withdrawal)
            .where(Withdrawal.user_id == user_id)
            .order_by(Withdrawal.created_at.desc(), Withdrawal.id.desc())  # type: ignore
        )
        return await apaginate(
            self.db,
            query,
            transformer=lambda items: [WithdrawalResponse.model_validate(w) for w in items],
        )

    # ============ Transfer webhooks ============

    async def _find_withdrawal(self, event: TransferEvent) -> Withdrawal | None:
        if event.transfer_code:
            result = await self.db.execute(
                select(Withdrawal)
                .where(Withdrawal.transfer_code == event.transfer_code)
                .execution_options(populate_existing=True)
            )
            withdrawal = result.scalar_one_or_none()
            if withdrawal:
                return withdrawal
        if event.reference:
            result = await self.db.execute(
                select(Withdrawal)
                .where(Withdrawal.transfer_reference == event.reference)
                .execution_options(populate_existing=True)
            )
            return result.scalar_one_or_none()
        return None

    async def handle_transfer_event(self, event: TransferEvent) -> ReconciliationOutcome:
        """Finalize a withdrawal from a transfer.success / failed / reversed webhook.

        Withdrawals already completed or failed are never changed again.
        Failures and reversals refund the wallet with a credit transaction.

        Raises:
            WithdrawalNotFoundError: No withdrawal matches (nothing written)
        """
        self.db.add(
            ProcessedEvent(
                provider=event.provider,
                event_key=event.event_key,
                event_type=event.event_type,
            )
        )
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            logger.info(f"Duplicate transfer event {event.event_key}, skipping")
            return ReconciliationOutcome.DUPLICATE

        withdrawal = await self._find_withdrawal(event)
        if withdrawal is None:
            logger.error(
                f"No withdrawal for {event.event_type} "
                f"(transfer_code={event.transfer_code}, reference={event.reference})"
            )
            raise WithdrawalNotFoundError(
                "Withdrawal not found for transfer event",
                {"transfer_code": event.transfer_code, "reference": event.reference},
            )

        withdrawal_id: int = withdrawal.id  # type: ignore[assignment]
        failed = event.event_type != TRANSFER_SUCCESS
        reason = (event.failure_reason or DEFAULT_REVERSAL_REASON)[:500]
        now = utc_now()
        values: dict = {"updated_at": now}
        if failed:
            values.update(status=WithdrawalStatus.FAILED, failure_reason=reason)
        else:
            values.update(status=WithdrawalStatus.COMPLETED, completed_at=now)
        if event.transfer_code and not withdrawal.transfer_code:
            values["transfer_code"] = event.transfer_code

        result = await self.db.execute(
            update(Withdrawal)
            .where(
                Withdrawal.id == withdrawal_id,
                Withdrawal.status.in_(OPEN_WITHDRAWAL_STATUSES),  # type: ignore[attr-defined]
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            await self.db.commit()
            if not failed and withdrawal.status == WithdrawalStatus.FAILED:
                logger.error(
                    f"Transfer succeeded for failed withdrawal {withdrawal_id}; "
                    "funds were already returned, manual review required"
                )
            else:
                logger.info(f"Withdrawal {withdrawal_id} already {withdrawal.status.value}, no-op")
            return ReconciliationOutcome.ALREADY_PROCESSED

        if failed:
            await self.ledger.credit(
                user_id=withdrawal.user_id,
                amount=withdrawal.amount,
                currency=withdrawal.currency,
                description=f"Refund for withdrawal #{withdrawal_id}: {reason}"[:500],
                reference=withdrawal_reference(withdrawal_id, "refund"),
            )
        await self.db.commit()

        logger.info(f"Withdrawal {withdrawal_id} {values['status'].value} via {event.event_type}")
        if failed:
            wallet = await self.ledger.get_wallet(withdrawal.user_id)
            await self.notifications.publish(
                withdrawal.user_id,
                WALLET_UPDATED,
                {
                    "balance": str(wallet.balance) if wallet else None,
                    "withdrawalId": withdrawal_id,
                    "status": WithdrawalStatus.FAILED.value,
                },
            )
        return ReconciliationOutcome.APPLIED
