"""Quluub Payments - Wallet API endpoints."""

from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends

from src.api.deps import Counselor, CurrentUser, get_ledger_service
from src.models.wallet import Currency
from src.schemas.pagination import CustomPage
from src.schemas.wallet import EarningsSummary, TransactionResponse, WalletResponse
from src.services.ledger_service import LedgerService

router = APIRouter(prefix="/wallet", tags=["Wallet"])

LedgerServiceDep = Annotated[LedgerService, Depends(get_ledger_service)]


@router.get("", response_model=WalletResponse)
async def get_wallet(user: CurrentUser, service: LedgerServiceDep):
    """Current balance. Users who were never credited see a zero USD balance."""
    wallet = await service.get_wallet(user.id)  # type: ignore[arg-type]
    if wallet is None:
        return WalletResponse(
            user_id=user.id,  # type: ignore[arg-type]
            balance=Decimal("0"),
            currency=Currency.USD,
        )
    return wallet


@router.get("/transactions", response_model=CustomPage[TransactionResponse])
async def list_transactions(user: CurrentUser, service: LedgerServiceDep):
    return await service.list_transactions(user.id)  # type: ignore[arg-type]


@router.get("/earnings", response_model=EarningsSummary)
async def get_earnings(user: Counselor, service: LedgerServiceDep):
    """Session earnings for today, this week, month and year."""
    return await service.earnings_summary(user.id)  # type: ignore[arg-type]
