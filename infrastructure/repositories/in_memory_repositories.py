"""In-Memory Repository Implementations

Entities are stored and handed out as deep copies, so a caller mutating a
loaded entity never changes stored state until it is written back.
"""
import logging
from typing import Optional, List, Dict
from uuid import UUID
from datetime import date

from domain.repositories import RoomRepository, BookingRepository, PaymentRepository, CustomerRepository
from domain.entities import Room, Booking, Payment, Customer
from domain.enums import BookingStatus
from domain.exceptions import (
    BookingConflictError, BookingNotFoundError, RoomNotFoundError, PaymentNotFoundError, CustomerNotFoundError
)
from domain.value_objects import ranges_overlap

logger = logging.getLogger(__name__)


def _copy(entity):
    return entity.model_copy(deep=True)


class InMemoryRoomRepository(RoomRepository):
    """In-memory implementation of RoomRepository"""

    def __init__(self):
        self._storage: Dict[UUID, Room] = {}

    async def save(self, room: Room) -> Room:
        """Save room to memory"""
        self._storage[room.room_id] = _copy(room)
        return _copy(room)

    async def find_by_id(self, room_id: UUID) -> Optional[Room]:
        """Find room by ID"""
        room = self._storage.get(room_id)
        return _copy(room) if room else None

    async def find_all(self) -> List[Room]:
        """Find all rooms ordered by room number"""
        rooms = sorted(self._storage.values(), key=lambda r: r.room_number)
        return [_copy(r) for r in rooms]

    async def update(self, room: Room) -> Room:
        """Update room"""
        if room.room_id not in self._storage:
            raise RoomNotFoundError(room.room_id)
        self._storage[room.room_id] = _copy(room)
        return _copy(room)


class InMemoryBookingRepository(BookingRepository):
    """In-memory implementation of BookingRepository

    ``add`` behaves like an exclusion constraint on (room, stay) for bookings
    that still block their room; ``update`` is a compare-and-set on version.
    """

    def __init__(self):
        self._storage: Dict[UUID, Booking] = {}
        self._references: Dict[str, UUID] = {}

    async def add(self, booking: Booking) -> Booking:
        """Insert a new booking"""
        if booking.booking_id in self._storage:
            raise BookingConflictError(f"Booking {booking.booking_id} already exists")
        if booking.booking_reference in self._references:
            raise BookingConflictError(f"Booking reference {booking.booking_reference} already in use")
        if booking.blocks_room():
            self._check_exclusion(booking)

        self._storage[booking.booking_id] = _copy(booking)
        self._references[booking.booking_reference] = booking.booking_id
        return _copy(booking)

    async def update(self, booking: Booking, expected_version: int) -> Booking:
        """Store booking only if nobody changed it since it was loaded"""
        stored = self._storage.get(booking.booking_id)
        if stored is None:
            raise BookingNotFoundError(booking.booking_id)
        if stored.version != expected_version:
            logger.warning(
                "Stale write for booking %s: expected version %s, stored %s",
                booking.booking_id, expected_version, stored.version
            )
            raise BookingConflictError(
                f"Booking {booking.booking_reference} was modified concurrently"
            )
        if booking.blocks_room() and not stored.blocks_room():
            self._check_exclusion(booking)

        self._storage[booking.booking_id] = _copy(booking)
        return _copy(booking)

    async def find_by_id(self, booking_id: UUID) -> Optional[Booking]:
        """Find booking by ID"""
        booking = self._storage.get(booking_id)
        return _copy(booking) if booking else None

    async def find_by_reference(self, reference: str) -> Optional[Booking]:
        """Find booking by booking reference"""
        booking_id = self._references.get(reference)
        if booking_id is None:
            return None
        return await self.find_by_id(booking_id)

    async def find_by_customer(self, customer_id: UUID) -> List[Booking]:
        """Find bookings of a customer, newest first"""
        bookings = [b for b in self._storage.values() if b.customer_id == customer_id]
        bookings.sort(key=lambda b: b.created_at, reverse=True)
        return [_copy(b) for b in bookings]

    async def find_by_room(self, room_id: UUID) -> List[Booking]:
        """Find bookings of a room"""
        return self._sorted_copies(b for b in self._storage.values() if b.room_id == room_id)

    async def find_by_status(self, status: BookingStatus) -> List[Booking]:
        """Find bookings in a status"""
        return self._sorted_copies(b for b in self._storage.values() if b.status == status)

    async def find_overlapping(self, start_date: date, end_date: date, room_id: Optional[UUID] = None) -> List[Booking]:
        """Find bookings whose stay overlaps [start_date, end_date)"""
        return self._sorted_copies(
            b for b in self._storage.values()
            if (room_id is None or b.room_id == room_id)
            and ranges_overlap(b.date_range.check_in, b.date_range.check_out, start_date, end_date)
        )

    async def find_all(self) -> List[Booking]:
        """Find all bookings"""
        return self._sorted_copies(self._storage.values())

    def _check_exclusion(self, booking: Booking) -> None:
        for existing in self._storage.values():
            if existing.booking_id == booking.booking_id:
                continue
            if existing.conflicts_with(booking.room_id, booking.date_range):
                logger.warning(
                    "Overlapping booking rejected for room %s: %s clashes with %s",
                    booking.room_id, booking.booking_reference, existing.booking_reference
                )
                raise BookingConflictError(
                    f"Room is already booked between {existing.date_range.check_in} "
                    f"and {existing.date_range.check_out}"
                )

    @staticmethod
    def _sorted_copies(bookings) -> List[Booking]:
        return [_copy(b) for b in sorted(bookings, key=lambda b: (b.date_range.check_in, b.created_at))]


class InMemoryPaymentRepository(PaymentRepository):
    """In-memory implementation of PaymentRepository"""

    def __init__(self):
        self._storage: Dict[UUID, Payment] = {}

    async def save(self, payment: Payment) -> Payment:
        """Save payment to memory"""
        self._storage[payment.payment_id] = _copy(payment)
        return _copy(payment)

    async def find_by_id(self, payment_id: UUID) -> Optional[Payment]:
        """Find payment by ID"""
        payment = self._storage.get(payment_id)
        return _copy(payment) if payment else None

    async def find_by_booking(self, booking_id: UUID) -> List[Payment]:
        """Find payments of a booking in the order they were recorded"""
        payments = [p for p in self._storage.values() if p.booking_id == booking_id]
        payments.sort(key=lambda p: p.created_at)
        return [_copy(p) for p in payments]

    async def find_by_transaction_id(self, transaction_id: str) -> Optional[Payment]:
        """Find payment by gateway transaction ID"""
        for payment in self._storage.values():
            if payment.transaction_id == transaction_id:
                return _copy(payment)
        return None

    async def update(self, payment: Payment) -> Payment:
        """Update payment"""
        if payment.payment_id not in self._storage:
            raise PaymentNotFoundError(payment.payment_id)
        self._storage[payment.payment_id] = _copy(payment)
        return _copy(payment)


class InMemoryCustomerRepository(CustomerRepository):
    """In-memory implementation of CustomerRepository"""

    def __init__(self):
        self._storage: Dict[UUID, Customer] = {}

    async def save(self, customer: Customer) -> Customer:
        """Save customer to memory"""
        self._storage[customer.customer_id] = _copy(customer)
        return _copy(customer)

    async def find_by_id(self, customer_id: UUID) -> Optional[Customer]:
        """Find customer by ID"""
        customer = self._storage.get(customer_id)
        return _copy(customer) if customer else None

    async def find_by_email(self, email: str) -> Optional[Customer]:
        """Find customer by e-mail, case-insensitive"""
        email = email.lower()
        for customer in self._storage.values():
            if customer.email.lower() == email:
                return _copy(customer)
        return None

    async def find_all(self) -> List[Customer]:
        """Find all customers in registration order"""
        customers = sorted(self._storage.values(), key=lambda c: c.created_at)
        return [_copy(c) for c in customers]

    async def update(self, customer: Customer) -> Customer:
        """Update customer"""
        if customer.customer_id not in self._storage:
            raise CustomerNotFoundError(customer.customer_id)
        self._storage[customer.customer_id] = _copy(customer)
        return _copy(customer)
