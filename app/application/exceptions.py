
class BookingCoreError(RuntimeError):
    """Base class for errors raised by the booking core."""
    pass


class CalendarUnavailable(BookingCoreError):
    """Raised when the calendar provider cannot be reached or answers with an error."""
    pass


class InvalidTransition(BookingCoreError):
    """Raised when a booking cannot move to the requested state (cancelled booking, leg paid by another payment)."""
    pass


class UnverifiedPayment(BookingCoreError):
    """Raised when the gateway's own status does not corroborate a confirmation."""
    pass


class DownstreamSideEffectFailure(BookingCoreError):
    """Raised when calendar sync or notification fails after the payment was recorded."""
    pass


class BookingNotFound(BookingCoreError):
    """Raised when the booking id does not exist in the store."""
    pass


class ConcurrentUpdateError(BookingCoreError):
    """Raised when a conditional store update finds a different prior state."""
    pass


class PaymentGatewayError(BookingCoreError):
    """Raised when a payment gateway fails (timeouts, network errors, unexpected payloads)."""
    pass


class SlotUnavailable(BookingCoreError):
    """Raised when a requested booking window is not an offered slot."""
    pass
