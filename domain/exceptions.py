"""Domain Exceptions

Every booking operation either returns its result or raises one of these.
"""


class BookingError(Exception):
    """Base class for booking engine errors"""


class BookingValidationError(BookingError, ValueError):
    """Bad input or a business rule rejected the operation"""


class NotFoundError(BookingError, LookupError):
    """A referenced entity does not exist"""

    entity = "Entity"

    def __init__(self, entity_id):
        self.entity_id = entity_id
        super().__init__(f"{self.entity} with ID {entity_id} not found")


class RoomNotFoundError(NotFoundError):
    entity = "Room"


class BookingNotFoundError(NotFoundError):
    entity = "Booking"


class CustomerNotFoundError(NotFoundError):
    entity = "Customer"


class PaymentNotFoundError(NotFoundError):
    entity = "Payment"


class BookingConflictError(BookingError):
    """A concurrent change won; the caller should reload and retry"""


class BookingServiceError(BookingError):
    """The storage layer failed; the operation is presumed not applied"""
