"""Domain Entities - Aggregates"""
from pydantic import BaseModel, Field
from uuid import UUID, uuid4
from datetime import datetime, date, timezone
from typing import Optional
from decimal import Decimal
import secrets

from domain.enums import BookingStatus, PaymentStatus, NON_BLOCKING_STATUSES, TERMINAL_STATUSES
from domain.exceptions import BookingValidationError
from domain.value_objects import DateRange, CancellationDecision, refund_share


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Lifecycle transitions the core performs. NO_SHOW and REFUNDED are set by
# outside processes and only ever read here.
BOOKING_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.CHECKED_IN, BookingStatus.CANCELLED},
    BookingStatus.CHECKED_IN: {BookingStatus.CHECKED_OUT},
    BookingStatus.CHECKED_OUT: set(),
    BookingStatus.CANCELLED: set(),
    BookingStatus.NO_SHOW: set(),
    BookingStatus.REFUNDED: set(),
}


def customer_display_name(first_name: Optional[str], is_vip: bool = False) -> str:
    """Name shown to staff for a customer record"""
    name = first_name or "Unknown Guest"
    return f"{name} (VIP)" if is_vip else name


class Room(BaseModel):
    """Room Entity (inventory is managed outside the booking core)"""

    room_id: UUID = Field(default_factory=uuid4)
    room_number: int = Field(ge=1)
    name: str
    room_type: str = "Standard"
    base_price: Decimal = Field(gt=0)
    dynamic_price: Optional[Decimal] = Field(default=None, gt=0)
    capacity: int = Field(default=2, ge=1, le=10)
    is_available: bool = True

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    class Config:
        from_attributes = True

    @property
    def current_price(self) -> Decimal:
        """Effective nightly rate"""
        if self.dynamic_price is not None:
            return self.dynamic_price
        return self.base_price

    def can_accommodate(self, guest_count: int) -> bool:
        return guest_count <= self.capacity


class Customer(BaseModel):
    """Customer Entity"""

    customer_id: UUID = Field(default_factory=uuid4)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: str
    phone: Optional[str] = None
    is_vip: bool = False
    created_at: datetime = Field(default_factory=_utcnow)

    class Config:
        from_attributes = True


class Booking(BaseModel):
    """Booking Aggregate Root Entity"""

    # Identity
    booking_id: UUID = Field(default_factory=uuid4)
    booking_reference: str

    # References to other aggregates
    room_id: UUID
    customer_id: UUID

    # Stay
    date_range: DateRange
    guest_count: int = Field(default=1, ge=1)
    children_count: int = Field(default=0, ge=0)
    special_requests: Optional[str] = None

    # Status and pricing
    status: BookingStatus = BookingStatus.PENDING
    total_price: Decimal = Field(ge=0)
    is_refundable: bool = True
    refund_percentage: Decimal = Field(default=Decimal("100"), ge=0, le=100)
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None

    # Metadata
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    version: int = 1

    class Config:
        from_attributes = True

    # ==================== FACTORY METHOD ====================
    @staticmethod
    def create(
        room_id: UUID,
        customer_id: UUID,
        date_range: DateRange,
        guest_count: int,
        total_price: Decimal,
        children_count: int = 0,
        special_requests: Optional[str] = None,
        is_refundable: bool = True,
        now: Optional[datetime] = None
    ) -> "Booking":
        """Create a new pending booking"""
        if guest_count < 1:
            raise BookingValidationError("At least 1 guest is required")
        if total_price < 0:
            raise BookingValidationError("Total price cannot be negative")

        now = now or _utcnow()
        return Booking(
            booking_reference=Booking.generate_booking_reference(now),
            room_id=room_id,
            customer_id=customer_id,
            date_range=date_range,
            guest_count=guest_count,
            children_count=children_count,
            special_requests=special_requests,
            total_price=total_price,
            is_refundable=is_refundable,
            status=BookingStatus.PENDING,
            created_at=now,
            updated_at=now
        )

    @staticmethod
    def generate_booking_reference(now: Optional[datetime] = None) -> str:
        """BK + date stamp + 48 random bits as hex"""
        now = now or _utcnow()
        return f"BK{now:%Y%m%d}{secrets.token_hex(6).upper()}"

    # ==================== STATE TRANSITION METHODS ====================
    def can_transition_to(self, target: BookingStatus) -> bool:
        return target in BOOKING_TRANSITIONS.get(self.status, set())

    def transition_to(self, target: BookingStatus) -> None:
        if not self.can_transition_to(target):
            raise BookingValidationError(
                f"Cannot move booking from {self.status.value} to {target.value}"
            )
        self.status = target
        self._touch()

    def confirm(self) -> None:
        """Confirm a pending booking"""
        if self.status != BookingStatus.PENDING:
            raise BookingValidationError("Only pending bookings can be confirmed")
        self.transition_to(BookingStatus.CONFIRMED)

    def check_in(self, today: date) -> None:
        """Mark guest as checked in"""
        if self.status != BookingStatus.CONFIRMED:
            raise BookingValidationError("Only confirmed bookings can be checked in")
        if self.date_range.check_in > today:
            raise BookingValidationError("Cannot check in before check-in date")
        self.transition_to(BookingStatus.CHECKED_IN)

    def check_out(self) -> None:
        """Process guest check-out"""
        if self.status != BookingStatus.CHECKED_IN:
            raise BookingValidationError("Only checked-in bookings can be checked out")
        self.transition_to(BookingStatus.CHECKED_OUT)

    def cancel(self, decision: CancellationDecision, reason: Optional[str] = None) -> None:
        """Cancel booking according to a policy decision"""
        if not self.is_cancellable():
            raise BookingValidationError(
                f"Cannot cancel booking with status {self.status.value}"
            )
        if not decision.allowed:
            message = "Cancellation not allowed per policy"
            if decision.reason:
                message = f"{message}: {decision.reason}"
            raise BookingValidationError(message)

        self.refund_percentage = decision.refund_percentage
        self.cancellation_reason = reason
        self.transition_to(BookingStatus.CANCELLED)
        self.cancelled_at = self.updated_at

    # ==================== MODIFICATION METHODS ====================
    def update_details(
        self,
        guest_count: Optional[int] = None,
        children_count: Optional[int] = None,
        special_requests: Optional[str] = None
    ) -> None:
        """Change guest details while the booking is still open"""
        if not self.is_cancellable():
            raise BookingValidationError(
                f"Booking cannot be modified in status {self.status.value}"
            )
        if guest_count is not None:
            if guest_count < 1:
                raise BookingValidationError("At least 1 guest is required")
            self.guest_count = guest_count
        if children_count is not None:
            if children_count < 0:
                raise BookingValidationError("Children count cannot be negative")
            self.children_count = children_count
        if special_requests is not None:
            self.special_requests = special_requests
        self._touch()

    # ==================== QUERY METHODS ====================
    def is_cancellable(self) -> bool:
        return self.status in (BookingStatus.PENDING, BookingStatus.CONFIRMED)

    def is_active(self) -> bool:
        return self.status in (BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN)

    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def blocks_room(self) -> bool:
        """Whether this booking occupies its room for its date range"""
        return self.status not in NON_BLOCKING_STATUSES

    def conflicts_with(self, room_id: UUID, date_range: DateRange) -> bool:
        return (
            self.room_id == room_id
            and self.blocks_room()
            and self.date_range.overlaps(date_range)
        )

    def get_nights(self) -> int:
        return self.date_range.nights()

    def refund_amount(self) -> Decimal:
        """Refund owed once cancelled"""
        if self.status != BookingStatus.CANCELLED:
            return Decimal("0.00")
        return refund_share(self.total_price, self.refund_percentage)

    def _touch(self) -> None:
        self.updated_at = _utcnow()
        self.version += 1


class Payment(BaseModel):
    """Payment Entity, one booking has zero or more"""

    payment_id: UUID = Field(default_factory=uuid4)
    booking_id: UUID
    amount: Decimal = Field(gt=0)
    payment_method: str
    status: PaymentStatus = PaymentStatus.PENDING
    status_message: str = ""
    transaction_id: str
    currency: str = "USD"

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    class Config:
        from_attributes = True

    def update_status(self, status: PaymentStatus, status_message: Optional[str] = None) -> None:
        self.status = status
        if status_message is not None:
            self.status_message = status_message
        self.updated_at = _utcnow()
