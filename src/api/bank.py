"""Quluub Payments - Bank account and withdrawal API endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from src.api.deps import (
    Counselor,
    app_error_to_http,
    get_bank_account_service,
    get_withdrawal_service,
)
from src.core.exceptions import AppError
from src.schemas.bank import (
    BankAccountCreate,
    BankAccountResponse,
    WithdrawalResponse,
    WithdrawRequest,
)
from src.schemas.pagination import CustomPage
from src.services.bank_account_service import BankAccountService
from src.services.withdrawal_service import WithdrawalService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/bank", tags=["Bank"])


# ============ Payout account ============


@router.post("/account", response_model=BankAccountResponse)
async def save_bank_account(
    data: BankAccountCreate,
    user: Counselor,
    service: Annotated[BankAccountService, Depends(get_bank_account_service)],
):
    """Add or replace the payout account.

    Nigerian accounts are verified against the bank's records before they
    can receive withdrawals.
    """
    try:
        return await service.save_account(user, data)
    except AppError as e:
        raise app_error_to_http(e) from e


@router.get("/account", response_model=BankAccountResponse)
async def get_bank_account(
    user: Counselor,
    service: Annotated[BankAccountService, Depends(get_bank_account_service)],
):
    account = await service.get_account(user.id)  # type: ignore[arg-type]
    if account is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No bank account on file",
        )
    return account


# ============ Withdrawals ============


@router.post("/withdraw", response_model=WithdrawalResponse)
async def request_withdrawal(
    data: WithdrawRequest,
    user: Counselor,
    service: Annotated[WithdrawalService, Depends(get_withdrawal_service)],
):
    """Withdraw from the wallet to the verified bank account.

    Funds are reserved immediately; the withdrawal completes when Paystack
    confirms the transfer.
    """
    try:
        return await service.request_withdrawal(user, data.amount, data.currency)
    except AppError as e:
        raise app_error_to_http(e) from e


@router.get("/withdrawals", response_model=CustomPage[WithdrawalResponse])
async def list_withdrawals(
    user: Counselor,
    service: Annotated[WithdrawalService, Depends(get_withdrawal_service)],
):
    return await service.list_withdrawals(user.id)  # type: ignore[arg-type]
