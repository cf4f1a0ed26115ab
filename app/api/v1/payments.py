import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.v1.schemas import (
    ConfirmPaymentRequestSchema,
    ConfirmPaymentResponseSchema,
    PayPalCaptureRequestSchema,
    StripeCheckRequestSchema,
)
from app.application.exceptions import (
    BookingCoreError,
    BookingNotFound,
    ConcurrentUpdateError,
    InvalidTransition,
    PaymentGatewayError,
    UnverifiedPayment,
)
from app.application.ports.booking_store import BookingStorePort
from app.application.use_cases.reconcile_payment import PaymentReconciler, ReconciliationResult
from app.domain.entities.booking import PaymentLeg, PaymentMethod
from app.domain.entities.payment import ConfirmationChannel, PaymentConfirmation
from app.wiring.dependencies import get_booking_store, get_payment_reconciler

router = APIRouter(prefix="/payments")
logger = logging.getLogger(__name__)


def _to_response(result: ReconciliationResult) -> ConfirmPaymentResponseSchema:
    return ConfirmPaymentResponseSchema(
        success=True,
        booking_status=result.booking.status,
        payment_type=result.payment_leg,
        duplicate=result.duplicate,
        warnings=result.warnings,
    )


def http_error(e: BookingCoreError) -> HTTPException:
    if isinstance(e, BookingNotFound):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (InvalidTransition, ConcurrentUpdateError)):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, UnverifiedPayment):
        return HTTPException(status_code=400, detail=f"Payment not confirmed by gateway: {e}")
    if isinstance(e, PaymentGatewayError):
        return HTTPException(status_code=502, detail=str(e))
    return HTTPException(status_code=500, detail="Payment reconciliation failed")


def reconcile_or_raise(reconciler: PaymentReconciler, confirmation: PaymentConfirmation) -> ConfirmPaymentResponseSchema:
    """Run the shared reconciler and map its errors to HTTP responses."""
    try:
        return _to_response(reconciler.reconcile(confirmation))
    except BookingCoreError as e:
        raise http_error(e)


@router.post("/confirm", response_model=ConfirmPaymentResponseSchema)
def confirm_payment(
    req: ConfirmPaymentRequestSchema,
    reconciler: PaymentReconciler = Depends(get_payment_reconciler),
):
    confirmation = PaymentConfirmation(
        booking_id=req.booking_id,
        payment_leg=req.payment_leg,
        external_payment_id=req.external_payment_id,
        payment_method=req.payment_method,
        channel=req.channel,
    )
    return reconcile_or_raise(reconciler, confirmation)


@router.get("/stripe/return", response_model=ConfirmPaymentResponseSchema)
def stripe_return(
    session_id: str = Query(..., min_length=1),
    booking_id: str = Query(..., alias="bookingId", min_length=1),
    payment_type: PaymentLeg = Query(PaymentLeg.deposit, alias="type"),
    reconciler: PaymentReconciler = Depends(get_payment_reconciler),
):
    confirmation = PaymentConfirmation(
        booking_id=booking_id,
        payment_leg=payment_type,
        external_payment_id=session_id,
        payment_method=PaymentMethod.card,
        channel=ConfirmationChannel.redirect,
    )
    return reconcile_or_raise(reconciler, confirmation)


@router.post("/stripe/check", response_model=ConfirmPaymentResponseSchema)
def stripe_check(
    req: StripeCheckRequestSchema,
    reconciler: PaymentReconciler = Depends(get_payment_reconciler),
    store: BookingStorePort = Depends(get_booking_store),
):
    confirmation = PaymentConfirmation(
        booking_id=req.booking_id,
        payment_leg=req.type,
        external_payment_id=req.session_id,
        payment_method=PaymentMethod.card,
        channel=ConfirmationChannel.polling,
    )
    try:
        return _to_response(reconciler.reconcile(confirmation))
    except UnverifiedPayment as e:
        # Polling before the gateway settles is normal: report "not yet" instead of failing
        booking = store.get(req.booking_id)
        if booking is None:
            raise HTTPException(status_code=404, detail=f"booking {req.booking_id} not found")
        return ConfirmPaymentResponseSchema(
            success=False,
            booking_status=booking.status,
            payment_type=req.type,
            warnings=[str(e)],
        )
    except BookingCoreError as e:
        raise http_error(e)


@router.post("/paypal/capture", response_model=ConfirmPaymentResponseSchema)
def paypal_capture(
    req: PayPalCaptureRequestSchema,
    reconciler: PaymentReconciler = Depends(get_payment_reconciler),
):
    confirmation = PaymentConfirmation(
        booking_id=req.booking_id,
        payment_leg=req.type,
        external_payment_id=req.order_id,
        payment_method=PaymentMethod.wallet,
        channel=ConfirmationChannel.redirect,
    )
    return reconcile_or_raise(reconciler, confirmation)
