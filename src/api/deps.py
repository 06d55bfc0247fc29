"""Common FastAPI dependencies for API endpoints."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.auth import get_current_user, require_role
from src.core.exceptions import (
    AppError,
    AuthenticationError,
    AuthorizationError,
    GatewayError,
    InsufficientBalanceError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from src.db import get_db
from src.models.user import User, UserRole
from src.services.bank_account_service import BankAccountService
from src.services.checkout_service import CheckoutService
from src.services.ledger_service import LedgerService
from src.services.reconciliation_service import ReconciliationService
from src.services.session_service import SessionService
from src.services.withdrawal_service import WithdrawalService

# ============ Type Aliases for Common Dependencies ============

DbSession = Annotated[AsyncSession, Depends(get_db)]

# Authenticated user (any role)
CurrentUser = Annotated[User, Depends(get_current_user)]

# Counselor accounts only
Counselor = Annotated[User, Depends(require_role(UserRole.COUNSELOR))]


# ============ Services ============


def get_checkout_service(db: DbSession) -> CheckoutService:
    return CheckoutService(db)


def get_session_service(db: DbSession) -> SessionService:
    return SessionService(db)


def get_ledger_service(db: DbSession) -> LedgerService:
    return LedgerService(db)


def get_bank_account_service(db: DbSession) -> BankAccountService:
    return BankAccountService(db)


def get_withdrawal_service(db: DbSession) -> WithdrawalService:
    return WithdrawalService(db)


def get_reconciliation_service(db: DbSession) -> ReconciliationService:
    return ReconciliationService(db)


# ============ Error mapping ============


def app_error_to_http(error: AppError) -> HTTPException:
    """Translate a service error into the HTTP error returned to clients.

    Usage:
        try:
            ...
        except AppError as e:
            raise app_error_to_http(e) from e
    """
    if isinstance(error, InsufficientBalanceError):
        code, status_code = "INSUFFICIENT_FUNDS", status.HTTP_400_BAD_REQUEST
    elif isinstance(error, ValidationError):
        code, status_code = "VALIDATION_ERROR", status.HTTP_400_BAD_REQUEST
    elif isinstance(error, AuthenticationError):
        code, status_code = "UNAUTHENTICATED", status.HTTP_401_UNAUTHORIZED
    elif isinstance(error, AuthorizationError):
        code, status_code = "FORBIDDEN", status.HTTP_403_FORBIDDEN
    elif isinstance(error, NotFoundError):
        code, status_code = "NOT_FOUND", status.HTTP_404_NOT_FOUND
    elif isinstance(error, InvalidStateError):
        code, status_code = "INVALID_STATE", status.HTTP_409_CONFLICT
    elif isinstance(error, GatewayError):
        code, status_code = "GATEWAY_ERROR", status.HTTP_502_BAD_GATEWAY
    else:
        code, status_code = "ERROR", status.HTTP_500_INTERNAL_SERVER_ERROR

    return HTTPException(
        status_code=status_code,
        detail={"code": code, "message": error.message, **error.details},
    )
