from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response
from fastapi.concurrency import run_in_threadpool

from app.application.exceptions import (
    BookingNotFound,
    InvalidTransition,
    UnverifiedPayment,
)
from app.application.use_cases.reconcile_payment import PaymentReconciler
from app.core.config import settings
from app.infrastructure.payments.webhook_verify import confirmation_from_stripe_event, construct_stripe_event
from app.wiring.dependencies import get_payment_reconciler


router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/webhooks/stripe")
async def stripe_webhook(
    request: Request,
    reconciler: PaymentReconciler = Depends(get_payment_reconciler),
) -> Response:
    body = await request.body()
    signature = request.headers.get("Stripe-Signature")

    try:
        event = construct_stripe_event(body, signature, settings.STRIPE_WEBHOOK_SECRET, settings.ENV)
        confirmation = confirmation_from_stripe_event(event)
    except UnverifiedPayment as e:
        logger.warning("Stripe webhook rejected", extra={"reason": str(e)})
        return Response(status_code=400)

    if confirmation is None:
        return Response(status_code=200)

    context = {
        "booking_id": confirmation.booking_id,
        "payment_leg": confirmation.payment_leg.value,
        "channel": confirmation.channel.value,
    }
    try:
        result = await run_in_threadpool(reconciler.reconcile, confirmation)
    except (InvalidTransition, BookingNotFound, UnverifiedPayment) as e:
        # Permanent answers: acknowledge so the gateway stops redelivering
        logger.warning("Webhook confirmation not applied", extra={**context, "reason": str(e)})
        return Response(status_code=200)
    except Exception as e:
        # Anything else is transient (gateway, store); a non-2xx makes Stripe retry
        logger.exception("Error processing Stripe webhook", extra={**context, "error": str(e)})
        return Response(status_code=500)

    if result.warnings:
        logger.warning("Webhook confirmation applied with warnings", extra={**context, "reason": "; ".join(result.warnings)})
    return Response(status_code=200)
