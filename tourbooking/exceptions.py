class TourBookingError(Exception):
    """Base class for errors raised by the booking workflows."""


class ValidationError(TourBookingError):
    pass


class InsufficientSlotsError(ValidationError):
    def __init__(self, package_id: int, requested: int, available: int):
        self.package_id = package_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Package {package_id} has {available} available slots, {requested} requested."
        )


class IdempotencyKeyReusedError(ValidationError):
    """The key was already used for a booking with different details."""


class NotFoundError(TourBookingError):
    pass


class PermissionDeniedError(TourBookingError):
    pass


class InvalidTransitionError(TourBookingError):
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Invalid booking status transition: {current.value} -> {target.value}")


class PaymentDeclinedError(TourBookingError):
    pass


class PersistenceError(TourBookingError):
    """A database write was rejected. The surrounding transaction has been rolled back."""


HTTP_STATUS_CODES = [
    # Most specific first
    (InsufficientSlotsError, 409),
    (IdempotencyKeyReusedError, 409),
    (ValidationError, 400),
    (NotFoundError, 404),
    (PermissionDeniedError, 403),
    (InvalidTransitionError, 409),
    (PaymentDeclinedError, 402),
    (PersistenceError, 500),
]


def http_status_for(exc: TourBookingError) -> int:
    for exc_type, status_code in HTTP_STATUS_CODES:
        if isinstance(exc, exc_type):
            return status_code
    return 500
