"""Domain Enums"""
from enum import Enum


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CHECKED_IN = "CHECKED_IN"
    CHECKED_OUT = "CHECKED_OUT"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"
    REFUNDED = "REFUNDED"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"
    PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED"
    SUCCEEDED = "SUCCEEDED"


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    STAFF = "STAFF"
    GUEST = "GUEST"


# Statuses that never block a room for a date range
NON_BLOCKING_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.NO_SHOW})

TERMINAL_STATUSES = frozenset({
    BookingStatus.CHECKED_OUT,
    BookingStatus.CANCELLED,
    BookingStatus.NO_SHOW,
    BookingStatus.REFUNDED,
})

SETTLED_PAYMENT_STATUSES = frozenset({PaymentStatus.COMPLETED, PaymentStatus.SUCCEEDED})
