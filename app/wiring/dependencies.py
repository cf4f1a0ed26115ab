from functools import lru_cache
import logging
from zoneinfo import ZoneInfo

from app.core.config import settings
from app.application.ports.booking_store import BookingStorePort
from app.application.ports.calendar import CalendarPort
from app.application.ports.notification import NotificationSenderPort
from app.application.ports.payment_gateway import PaymentGatewayPort
from app.application.use_cases.availability import AvailabilityService, StudioHours
from app.application.use_cases.booking import CancelBookingUseCase, CreateBookingUseCase
from app.application.use_cases.busy_intervals import BusyIntervalExtractor
from app.application.use_cases.reconcile_payment import PaymentReconciler
from app.domain.entities.booking import PaymentMethod
from app.infrastructure.calendar.google_calendar import GoogleCalendar
from app.infrastructure.calendar.mock_calendar import MockCalendar
from app.infrastructure.notifications.mock_sender import MockNotificationSender
from app.infrastructure.notifications.resend_sender import ResendNotificationSender
from app.infrastructure.payments.mock_gateway import MockPaymentGateway
from app.infrastructure.payments.paypal_gateway import PayPalGateway
from app.infrastructure.payments.stripe_gateway import StripeGateway
from app.infrastructure.store.json_store import JsonBookingStore
from app.infrastructure.store.memory_store import MemoryBookingStore


_booking_store: BookingStorePort | None = None

logger = logging.getLogger(__name__)


def get_timezone() -> ZoneInfo:
    return ZoneInfo(settings.BUSINESS_TIMEZONE)


def get_studio_hours() -> StudioHours:
    return StudioHours(
        opening_hour=settings.OPENING_HOUR,
        standard_closing_hour=settings.STANDARD_CLOSING_HOUR,
        hard_closing_hour=settings.HARD_CLOSING_HOUR,
        slot_granularity_minutes=settings.SLOT_GRANULARITY_MINUTES,
        closed_weekdays=frozenset(settings.closed_weekdays),
        same_day_margin_hours=settings.SAME_DAY_SAFETY_MARGIN_HOURS,
    )


def get_booking_store() -> BookingStorePort:
    global _booking_store
    if _booking_store is None:
        if settings.BOOKING_STORE.lower() == "json":
            _booking_store = JsonBookingStore(data_dir=settings.BOOKING_DATA_DIR)
        else:
            _booking_store = MemoryBookingStore()
    return _booking_store


@lru_cache
def get_calendar() -> CalendarPort:
    if not settings.GOOGLE_CLIENT_EMAIL or not settings.GOOGLE_PRIVATE_KEY:
        if settings.is_dev:
            logger.info("Using MockCalendar (Google credentials missing, ENV=dev/local)")
            return MockCalendar()
        raise ValueError("GOOGLE_CLIENT_EMAIL and GOOGLE_PRIVATE_KEY are required outside dev.")
    return GoogleCalendar()


@lru_cache
def get_payment_gateways() -> dict[PaymentMethod, PaymentGatewayPort]:
    gateways: dict[PaymentMethod, PaymentGatewayPort] = {}

    if settings.STRIPE_SECRET_KEY:
        gateways[PaymentMethod.card] = StripeGateway()
    elif settings.is_dev:
        gateways[PaymentMethod.card] = MockPaymentGateway(PaymentMethod.card)

    if settings.PAYPAL_CLIENT_ID and settings.PAYPAL_SECRET:
        gateways[PaymentMethod.wallet] = PayPalGateway()
    elif settings.is_dev:
        gateways[PaymentMethod.wallet] = MockPaymentGateway(PaymentMethod.wallet)

    logger.info("Payment gateways configured: %s", ", ".join(sorted(m.value for m in gateways)) or "none")
    return gateways


@lru_cache
def get_notification_sender() -> NotificationSenderPort:
    if not settings.RESEND_API_KEY:
        if settings.is_dev:
            logger.info("Using MockNotificationSender (RESEND_API_KEY missing, ENV=dev/local)")
            return MockNotificationSender()
        raise ValueError("RESEND_API_KEY is required to send confirmation emails.")
    return ResendNotificationSender()


def get_availability_service() -> AvailabilityService:
    tz = get_timezone()
    extractor = BusyIntervalExtractor(
        calendar=get_calendar(),
        timezone=tz,
        query_margin_hours=settings.CALENDAR_QUERY_MARGIN_HOURS,
    )
    return AvailabilityService(extractor=extractor, hours=get_studio_hours(), timezone=tz)


def get_payment_reconciler() -> PaymentReconciler:
    return PaymentReconciler(
        store=get_booking_store(),
        gateways=get_payment_gateways(),
        calendar=get_calendar(),
        notifier=get_notification_sender(),
        timezone=get_timezone(),
    )


def get_create_booking_use_case() -> CreateBookingUseCase:
    return CreateBookingUseCase(
        store=get_booking_store(),
        availability=get_availability_service(),
        timezone=get_timezone(),
    )


def get_cancel_booking_use_case() -> CancelBookingUseCase:
    return CancelBookingUseCase(store=get_booking_store(), calendar=get_calendar())
