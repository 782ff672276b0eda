"""Domain Repository Interfaces"""
from abc import ABC, abstractmethod
from typing import Optional, List
from uuid import UUID
from datetime import date

from domain.entities import Room, Booking, Payment, Customer
from domain.enums import BookingStatus


class RoomRepository(ABC):
    """Repository interface for Room inventory"""

    @abstractmethod
    async def save(self, room: Room) -> Room:
        """Save room"""
        pass

    @abstractmethod
    async def find_by_id(self, room_id: UUID) -> Optional[Room]:
        """Find room by ID"""
        pass

    @abstractmethod
    async def find_all(self) -> List[Room]:
        """Find all rooms"""
        pass

    @abstractmethod
    async def update(self, room: Room) -> Room:
        """Update room"""
        pass


class BookingRepository(ABC):
    """Repository interface for Booking Aggregate

    Implementations must reject an ``add`` that overlaps an active booking of
    the same room, and an ``update`` whose ``expected_version`` is stale, with
    ``BookingConflictError``. Returned bookings are detached copies.
    """

    @abstractmethod
    async def add(self, booking: Booking) -> Booking:
        """Insert a new booking"""
        pass

    @abstractmethod
    async def update(self, booking: Booking, expected_version: int) -> Booking:
        """Store a changed booking if the stored version still matches"""
        pass

    @abstractmethod
    async def find_by_id(self, booking_id: UUID) -> Optional[Booking]:
        """Find booking by ID"""
        pass

    @abstractmethod
    async def find_by_reference(self, reference: str) -> Optional[Booking]:
        """Find booking by booking reference"""
        pass

    @abstractmethod
    async def find_by_customer(self, customer_id: UUID) -> List[Booking]:
        """Find bookings of a customer"""
        pass

    @abstractmethod
    async def find_by_room(self, room_id: UUID) -> List[Booking]:
        """Find bookings of a room"""
        pass

    @abstractmethod
    async def find_by_status(self, status: BookingStatus) -> List[Booking]:
        """Find bookings in a status"""
        pass

    @abstractmethod
    async def find_overlapping(self, start_date: date, end_date: date, room_id: Optional[UUID] = None) -> List[Booking]:
        """Find bookings whose stay overlaps [start_date, end_date)"""
        pass

    @abstractmethod
    async def find_all(self) -> List[Booking]:
        """Find all bookings"""
        pass


class PaymentRepository(ABC):
    """Repository interface for Payment records"""

    @abstractmethod
    async def save(self, payment: Payment) -> Payment:
        """Save payment"""
        pass

    @abstractmethod
    async def find_by_id(self, payment_id: UUID) -> Optional[Payment]:
        """Find payment by ID"""
        pass

    @abstractmethod
    async def find_by_booking(self, booking_id: UUID) -> List[Payment]:
        """Find payments of a booking"""
        pass

    @abstractmethod
    async def find_by_transaction_id(self, transaction_id: str) -> Optional[Payment]:
        """Find payment by gateway transaction ID"""
        pass

    @abstractmethod
    async def update(self, payment: Payment) -> Payment:
        """Update payment"""
        pass


class CustomerRepository(ABC):
    """Repository interface for Customer records"""

    @abstractmethod
    async def save(self, customer: Customer) -> Customer:
        """Save customer"""
        pass

    @abstractmethod
    async def find_by_id(self, customer_id: UUID) -> Optional[Customer]:
        """Find customer by ID"""
        pass

    @abstractmethod
    async def find_by_email(self, email: str) -> Optional[Customer]:
        """Find customer by e-mail"""
        pass

    @abstractmethod
    async def find_all(self) -> List[Customer]:
        """Find all customers"""
        pass

    @abstractmethod
    async def update(self, customer: Customer) -> Customer:
        """Update customer"""
        pass
