from datetime import date as Date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.domain.entities.booking import Booking, BookingStatus, PaymentLeg, PaymentMethod
from app.domain.entities.payment import ConfirmationChannel


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SlotSchema(BaseModel):
    start: str
    end: str


class AvailabilityResponseSchema(BaseModel):
    date: str
    duration: float
    slots: list[SlotSchema]


class ConfirmPaymentRequestSchema(CamelModel):
    booking_id: str = Field(alias="bookingId", min_length=1)
    external_payment_id: str = Field(alias="externalPaymentId", min_length=1)
    payment_leg: PaymentLeg = Field(alias="paymentLeg", default=PaymentLeg.deposit)
    payment_method: PaymentMethod = Field(alias="paymentMethod", default=PaymentMethod.card)
    channel: ConfirmationChannel = ConfirmationChannel.redirect


class StripeCheckRequestSchema(CamelModel):
    session_id: str = Field(alias="sessionId", min_length=1)
    booking_id: str = Field(alias="bookingId", min_length=1)
    type: PaymentLeg = PaymentLeg.deposit


class PayPalCaptureRequestSchema(CamelModel):
    order_id: str = Field(alias="orderId", min_length=1)
    booking_id: str = Field(alias="bookingId", min_length=1)
    type: PaymentLeg = PaymentLeg.deposit


class ConfirmPaymentResponseSchema(CamelModel):
    success: bool
    booking_status: BookingStatus = Field(alias="bookingStatus")
    payment_type: PaymentLeg = Field(alias="paymentType")
    duplicate: bool = False
    warnings: list[str] = Field(default_factory=list)


class CreateBookingRequestSchema(CamelModel):
    date: str
    start_time: str = Field(alias="startTime")
    duration_hours: float = Field(alias="durationHours", gt=0)
    customer_name: str = Field(alias="customerName", min_length=1)
    customer_email: str = Field(alias="customerEmail", min_length=3)
    customer_phone: str | None = Field(alias="customerPhone", default=None)
    service: str = "recording"
    notes: str | None = None
    total_price: float | None = Field(alias="totalPrice", default=None, ge=0)
    deposit_amount: float | None = Field(alias="depositAmount", default=None, ge=0)

    @field_validator("customer_email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        if "@" not in value:
            raise ValueError("customerEmail must be an email address")
        return value.strip()


class BookingSchema(CamelModel):
    id: str
    date: Date
    start_time: str = Field(alias="startTime")
    duration_hours: float = Field(alias="durationHours")
    status: BookingStatus
    service: str
    customer_name: str = Field(alias="customerName")
    customer_email: str = Field(alias="customerEmail")
    total_price: float | None = Field(alias="totalPrice", default=None)
    deposit_amount: float | None = Field(alias="depositAmount", default=None)
    deposit_paid: bool = Field(alias="depositPaid")
    deposit_method: PaymentMethod | None = Field(alias="depositMethod", default=None)
    deposit_date: datetime | None = Field(alias="depositDate", default=None)
    remaining_paid: bool = Field(alias="remainingPaid")
    remaining_method: PaymentMethod | None = Field(alias="remainingMethod", default=None)
    remaining_date: datetime | None = Field(alias="remainingDate", default=None)
    calendar_synced: bool = Field(alias="calendarSynced")
    confirmation_sent: bool = Field(alias="confirmationSent")

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingSchema":
        return cls(
            id=booking.id,
            date=booking.date,
            start_time=booking.start_time,
            duration_hours=booking.duration_hours,
            status=booking.status,
            service=booking.service,
            customer_name=booking.customer_name,
            customer_email=booking.customer_email,
            total_price=booking.total_price,
            deposit_amount=booking.deposit_amount,
            deposit_paid=booking.deposit_paid,
            deposit_method=booking.deposit_method,
            deposit_date=booking.deposit_date,
            remaining_paid=booking.remaining_paid,
            remaining_method=booking.remaining_method,
            remaining_date=booking.remaining_date,
            calendar_synced=booking.calendar_event_id is not None,
            confirmation_sent=booking.confirmation_sent_at is not None,
        )
