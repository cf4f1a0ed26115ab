from __future__ import annotations

import logging
from html import escape

import resend

from app.application.ports.notification import NotificationSenderPort
from app.core.config import settings
from app.domain.entities.booking import Booking, service_label


def _hours_label(duration_hours: float) -> str:
    value = f"{duration_hours:g}"
    return f"{value} hour" if duration_hours == 1 else f"{value} hours"


def render_confirmation_html(booking: Booking, business_name: str) -> str:
    rows = [
        ("Service", service_label(booking.service)),
        ("Date", booking.date.strftime("%A %d %B %Y")),
        ("Time", booking.start_time),
        ("Duration", _hours_label(booking.duration_hours)),
    ]
    if booking.total_price is not None:
        rows.append(("Total price", f"{booking.total_price} €"))
    if booking.deposit_amount is not None:
        rows.append(("Deposit paid", f"{booking.deposit_amount} €"))
    if booking.remaining_amount:
        rows.append(("Balance due", f"{booking.remaining_amount} €"))

    details = "".join(f"<p><strong>{escape(label)}:</strong> {escape(value)}</p>" for label, value in rows)
    return (
        f"<h2>Booking confirmed</h2>"
        f"<p>Dear {escape(booking.customer_name)},</p>"
        f"<p>Your deposit has been received and your session is <strong>confirmed</strong>.</p>"
        f"{details}"
        f"<p>The remaining balance is due on the day of your session.</p>"
        f"<p>{escape(business_name)}</p>"
    )


class ResendNotificationSender(NotificationSenderPort):
    def __init__(
        self,
        api_key: str | None = None,
        from_email: str | None = None,
        admin_email: str | None = None,
        business_name: str | None = None,
    ) -> None:
        api_key = api_key or settings.RESEND_API_KEY
        if not api_key:
            raise ValueError("RESEND_API_KEY is required to send emails")

        resend.api_key = api_key
        self._from_email = from_email or settings.EMAIL_FROM
        self._admin_email = admin_email or settings.ADMIN_EMAIL
        self._business_name = business_name or settings.BUSINESS_NAME
        self._logger = logging.getLogger(__name__)

    def send_booking_confirmation(self, booking: Booking) -> None:
        html = render_confirmation_html(booking, self._business_name)
        response = resend.Emails.send(
            {
                "from": self._from_email,
                "to": [booking.customer_email],
                "subject": f"Your booking is confirmed - {self._business_name}",
                "html": html,
            }
        )
        self._logger.info("Confirmation email sent", extra={"booking_id": booking.id, "reason": str(response)})

        if self._admin_email:
            # The customer email is what matters; an admin copy failure is only logged
            try:
                resend.Emails.send(
                    {
                        "from": self._from_email,
                        "to": [self._admin_email],
                        "subject": f"New confirmed booking - {service_label(booking.service)}",
                        "html": html.replace("<h2>Booking confirmed</h2>", "<h2>New confirmed booking</h2>", 1)
                        + f"<p>Customer: {escape(booking.customer_email)}</p>",
                    }
                )
            except Exception as e:
                self._logger.error("Admin notification failed", extra={"booking_id": booking.id, "error": str(e)})
