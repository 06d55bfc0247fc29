"""Webhook endpoints for payment provider notifications.

- Stripe: checkout.session.completed / async_payment_succeeded
- Paystack: charge.success and transfer.success / failed / reversed

Signatures are verified over the raw request body before anything is
parsed. Every delivery that was handled (or deliberately ignored) gets a
200 so the provider stops retrying; only signature failures, malformed
bodies, unknown references and internal errors return an error status.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from src.api.deps import get_reconciliation_service, get_withdrawal_service
from src.core.exceptions import InvalidSignatureError, NotFoundError, ValidationError
from src.gateways.base import PaymentEvent, PaymentGateway
from src.gateways.factory import get_payment_gateway
from src.models.session import PaymentProvider
from src.services.reconciliation_service import ReconciliationService
from src.services.withdrawal_service import WithdrawalService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/payment", tags=["Webhooks"])


def get_stripe_gateway() -> PaymentGateway:
    return get_payment_gateway(PaymentProvider.STRIPE)


def get_paystack_gateway() -> PaymentGateway:
    return get_payment_gateway(PaymentProvider.PAYSTACK)


async def _handle_webhook(
    gateway: PaymentGateway,
    raw_body: bytes,
    signature: str | None,
    reconciliation: ReconciliationService,
    withdrawals: WithdrawalService,
) -> dict[str, str]:
    name = gateway.provider.value
    try:
        event = gateway.verify_webhook(raw_body, signature)
        parsed = gateway.parse_event(event)
        if parsed is None:
            logger.debug(f"{name} webhook ignored: {event.get('type') or event.get('event')}")
            return {"status": "ignored"}

        if isinstance(parsed, PaymentEvent):
            result = await reconciliation.apply_payment(parsed)
            outcome = result.outcome
        else:
            outcome = await withdrawals.handle_transfer_event(parsed)

        logger.info(f"{name} webhook {parsed.event_type} ({parsed.event_key}): {outcome.value}")
        return {"status": outcome.value}

    except InvalidSignatureError as e:
        logger.warning(f"{name} webhook rejected: {e.message}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message) from e
    except ValidationError as e:
        logger.warning(f"{name} webhook malformed: {e.message}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message) from e
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message) from e
    except HTTPException:
        raise
    except Exception as e:
        logger.exception(f"{name} webhook error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        ) from e


# ============ Stripe ============


@router.post("/stripe/webhook")
async def stripe_webhook(
    request: Request,
    gateway: Annotated[PaymentGateway, Depends(get_stripe_gateway)],
    reconciliation: Annotated[ReconciliationService, Depends(get_reconciliation_service)],
    withdrawals: Annotated[WithdrawalService, Depends(get_withdrawal_service)],
    stripe_signature: Annotated[str | None, Header()] = None,
):
    """Receive Stripe checkout events."""
    raw_body = await request.body()
    return await _handle_webhook(gateway, raw_body, stripe_signature, reconciliation, withdrawals)


# ============ Paystack ============


@router.post("/paystack/webhook")
async def paystack_webhook(
    request: Request,
    gateway: Annotated[PaymentGateway, Depends(get_paystack_gateway)],
    reconciliation: Annotated[ReconciliationService, Depends(get_reconciliation_service)],
    withdrawals: Annotated[WithdrawalService, Depends(get_withdrawal_service)],
    x_paystack_signature: Annotated[str | None, Header()] = None,
):
    """Receive Paystack charge and transfer events."""
    raw_body = await request.body()
    return await _handle_webhook(
        gateway, raw_body, x_paystack_signature, reconciliation, withdrawals
    )
