"""Quluub Payments - Checkout API endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from src.api.deps import (
    CurrentUser,
    app_error_to_http,
    get_checkout_service,
    get_reconciliation_service,
)
from src.core.exceptions import AppError
from src.schemas.session import (
    CheckoutRequest,
    CheckoutResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from src.services.checkout_service import CheckoutService
from src.services.reconciliation_service import ReconciliationService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/payment", tags=["Payment"])


@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout(
    data: CheckoutRequest,
    user: CurrentUser,
    service: Annotated[CheckoutService, Depends(get_checkout_service)],
):
    """Book a session and open a hosted checkout for it.

    USD bookings go through Stripe, NGN bookings through Paystack. The
    client is redirected to `redirect_url`; the session stays
    pending_payment until the provider's webhook confirms payment.
    """
    try:
        session, checkout = await service.create_checkout(
            client=user,
            counselor_id=data.counselor_id,
            date=data.date,
            currency=data.currency,
            notes=data.notes,
        )
    except AppError as e:
        raise app_error_to_http(e) from e

    return CheckoutResponse(
        session_id=session.id,  # type: ignore[arg-type]
        provider=session.provider,
        redirect_url=checkout.redirect_url,
        provider_session_id=checkout.provider_session_id,
    )


@router.post("/verify", response_model=VerifyPaymentResponse)
async def verify_payment(
    data: VerifyPaymentRequest,
    user: CurrentUser,
    service: Annotated[ReconciliationService, Depends(get_reconciliation_service)],
):
    """Ask the provider whether a pending session has been paid.

    Called from the payment-success page. If the provider reports the
    checkout paid, the session is marked paid and the counselor credited
    exactly as the webhook would, and a later webhook is a no-op.
    """
    try:
        session, outcome = await service.verify_payment(data.session_id, user)
    except AppError as e:
        raise app_error_to_http(e) from e

    return VerifyPaymentResponse(
        session_id=session.id,  # type: ignore[arg-type]
        status=session.status,
        outcome=outcome.value,
    )
