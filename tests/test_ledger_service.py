from decimal import Decimal

import pytest
from sqlmodel import select

from conftest import wallet_of
from src.core.exceptions import InsufficientBalanceError, ValidationError
from src.models.transaction import Transaction, TransactionType
from src.models.wallet import Currency
from src.services.ledger_service import LedgerService
from src.utils.helpers import utc_now


@pytest.mark.asyncio
async def test_credit_creates_wallet_in_credit_currency(db, counselor):
    ledger = LedgerService(db)

    await ledger.credit(counselor.id, Decimal("90"), Currency.USD, "Earnings", "session:1")
    await db.commit()

    wallet = await wallet_of(db, counselor.id)
    assert wallet.currency == Currency.USD
    assert wallet.balance == Decimal("90")


@pytest.mark.asyncio
async def test_credit_accumulates(db, counselor):
    ledger = LedgerService(db)
    await ledger.credit(counselor.id, Decimal("90"), Currency.USD, "Earnings", "session:1")
    await ledger.credit(counselor.id, Decimal("45.50"), Currency.USD, "Earnings", "session:2")
    await db.commit()

    wallet = await wallet_of(db, counselor.id)
    assert wallet.balance == Decimal("135.50")


@pytest.mark.asyncio
async def test_credit_rejects_other_currency(db, counselor):
    ledger = LedgerService(db)
    await ledger.credit(counselor.id, Decimal("90"), Currency.USD, "Earnings", "session:1")
    await db.commit()

    with pytest.raises(ValidationError):
        await ledger.credit(counselor.id, Decimal("22500"), Currency.NGN, "Earnings", "session:2")


@pytest.mark.asyncio
async def test_debit_insufficient_leaves_balance_and_ledger_unchanged(db, counselor):
    counselor_id = counselor.id
    ledger = LedgerService(db)
    await ledger.credit(counselor_id, Decimal("1000"), Currency.NGN, "Earnings", "session:1")
    await db.commit()

    with pytest.raises(InsufficientBalanceError) as exc_info:
        await ledger.debit(counselor_id, Decimal("5000"), Currency.NGN, "Withdrawal")
    await db.rollback()

    assert Decimal(exc_info.value.details["available"]) == Decimal("1000")
    wallet = await wallet_of(db, counselor_id)
    assert wallet.balance == Decimal("1000")
    debits = await db.execute(
        select(Transaction).where(Transaction.type == TransactionType.DEBIT)
    )
    assert debits.scalars().all() == []


@pytest.mark.asyncio
async def test_debit_without_wallet(db, counselor):
    with pytest.raises(InsufficientBalanceError):
        await LedgerService(db).debit(counselor.id, Decimal("1"), Currency.NGN, "Withdrawal")


@pytest.mark.asyncio
async def test_non_positive_amounts_rejected(db, counselor):
    ledger = LedgerService(db)
    with pytest.raises(ValidationError):
        await ledger.credit(counselor.id, Decimal("0"), Currency.USD, "Nothing")
    with pytest.raises(ValidationError):
        await ledger.debit(counselor.id, Decimal("-5"), Currency.USD, "Nothing")


@pytest.mark.asyncio
async def test_earnings_summary_counts_session_credits_only(db, counselor):
    ledger = LedgerService(db)
    await ledger.credit(counselor.id, Decimal("22500"), Currency.NGN, "Earnings", "session:1")
    await ledger.credit(
        counselor.id, Decimal("5000"), Currency.NGN, "Refund", "withdrawal:3:refund"
    )
    await db.commit()

    summary = await ledger.earnings_summary(counselor.id, now=utc_now())

    assert summary.currency == Currency.NGN
    assert summary.today == Decimal("22500")
    assert summary.week == Decimal("22500")
    assert summary.year == Decimal("22500")
    assert summary.total == Decimal("22500")


@pytest.mark.asyncio
async def test_earnings_summary_without_wallet(db, counselor):
    summary = await LedgerService(db).earnings_summary(counselor.id)
    assert summary.total == Decimal("0")


@pytest.mark.asyncio
async def test_audit_wallet_detects_drift(db, counselor):
    ledger = LedgerService(db)
    await ledger.credit(counselor.id, Decimal("90"), Currency.USD, "Earnings", "session:1")
    await db.commit()

    wallet = await wallet_of(db, counselor.id)
    audit = await ledger.audit_wallet(wallet)
    assert audit.matches

    wallet.balance = Decimal("100")
    db.add(wallet)
    await db.commit()

    audit = await ledger.audit_wallet(await wallet_of(db, counselor.id))
    assert not audit.matches
    assert audit.drift == Decimal("10")
