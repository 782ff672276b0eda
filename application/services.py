"""Application Services - Business use cases"""
import asyncio
import logging
from uuid import UUID
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Awaitable, Callable, Dict, List, Optional, TypeVar

from pydantic import ValidationError

from application.policies import AvailabilityChecker, PricingCalculator, CancellationPolicyEngine
from domain.entities import Booking, Room, Payment, Customer, customer_display_name
from domain.enums import BookingStatus, PaymentStatus, SETTLED_PAYMENT_STATUSES
from domain.exceptions import (
    BookingError, BookingValidationError, BookingServiceError,
    RoomNotFoundError, BookingNotFoundError, CustomerNotFoundError, PaymentNotFoundError
)
from domain.notifications import BookingNotifier
from domain.repositories import RoomRepository, BookingRepository, PaymentRepository, CustomerRepository
from domain.value_objects import DateRange, CancellationPolicy, CancellationDecision

logger = logging.getLogger(__name__)

T = TypeVar("T")


def build_model(model: Callable[..., T], **fields) -> T:
    """Construct a pydantic model, reporting bad input as a validation error"""
    try:
        return model(**fields)
    except ValidationError as e:
        error = e.errors()[0]
        message = str(error.get("msg", e)).replace("Value error, ", "")
        raise BookingValidationError(message) from e


def paginate(items: List[T], page: int = 1, page_size: Optional[int] = None) -> List[T]:
    if page < 1:
        raise BookingValidationError("Page must be 1 or greater")
    if page_size is None:
        return items
    if page_size < 1:
        raise BookingValidationError("Page size must be 1 or greater")
    start = (page - 1) * page_size
    return items[start:start + page_size]


async def guard_persistence(operation: Awaitable[T], action: str) -> T:
    """Await a repository call, turning storage failures into BookingServiceError"""
    try:
        return await operation
    except BookingError:
        raise
    except Exception as e:
        logger.exception("Persistence failure while trying to %s", action)
        raise BookingServiceError(f"Failed to {action}") from e


class RoomLockRegistry:
    """One asyncio lock per room, held across availability check and insert"""

    def __init__(self):
        self._locks: Dict[UUID, asyncio.Lock] = {}

    def lock_for(self, room_id: UUID) -> asyncio.Lock:
        lock = self._locks.get(room_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[room_id] = lock
        return lock


class BookingService:
    """Service for the booking lifecycle: create, confirm, check-in, check-out, cancel"""

    def __init__(self,
                 booking_repo: BookingRepository,
                 room_repo: RoomRepository,
                 customer_repo: CustomerRepository,
                 notifier: Optional[BookingNotifier] = None,
                 cancellation_policy: Optional[CancellationPolicy] = None,
                 clock: Callable[[], date] = date.today,
                 room_locks: Optional[RoomLockRegistry] = None):
        self.booking_repo = booking_repo
        self.room_repo = room_repo
        self.customer_repo = customer_repo
        self.notifier = notifier
        self.clock = clock
        self.room_locks = room_locks or RoomLockRegistry()

        self.availability_checker = AvailabilityChecker(room_repo, booking_repo)
        self.pricing_calculator = PricingCalculator(room_repo)
        self.cancellation_engine = CancellationPolicyEngine(cancellation_policy or CancellationPolicy())

    # ==================== CREATION ====================
    async def create_booking(
        self,
        room_id: UUID,
        customer_id: UUID,
        check_in: date,
        check_out: date,
        guest_count: int = 1,
        children_count: int = 0,
        special_requests: Optional[str] = None,
        is_refundable: bool = True,
        is_admin: bool = False
    ) -> Booking:
        """Create a pending booking if the room is free and can hold the party"""
        date_range = build_model(DateRange, check_in=check_in, check_out=check_out)

        customer = await guard_persistence(self.customer_repo.find_by_id(customer_id), "load customer")
        if customer is None:
            raise CustomerNotFoundError(customer_id)

        room = await self._get_room(room_id)
        if guest_count < 1:
            raise BookingValidationError("At least 1 guest is required")
        if not is_admin and not room.can_accommodate(guest_count):
            logger.warning(
                "Guest count %s exceeds capacity %s for room %s",
                guest_count, room.capacity, room_id
            )
            raise BookingValidationError(
                f"Guest count {guest_count} exceeds room capacity {room.capacity}"
            )

        async with self.room_locks.lock_for(room_id):
            # Re-read inside the lock; an earlier reader may have just booked the room
            available = await guard_persistence(
                self.availability_checker.is_available(room_id, date_range.check_in, date_range.check_out),
                f"check availability for room {room_id}"
            )
            if not available:
                logger.warning(
                    "Room %s is not available for %s to %s",
                    room_id, date_range.check_in, date_range.check_out
                )
                raise BookingValidationError("Room is not available for the selected dates")

            total_price = await guard_persistence(
                self.pricing_calculator.calculate_price(room_id, date_range.check_in, date_range.check_out),
                f"calculate price for room {room_id}"
            )
            booking = Booking.create(
                room_id=room_id,
                customer_id=customer_id,
                date_range=date_range,
                guest_count=guest_count,
                children_count=children_count,
                special_requests=special_requests,
                total_price=total_price,
                is_refundable=is_refundable
            )
            booking = await guard_persistence(
                self.booking_repo.add(booking), f"create booking for room {room_id}"
            )

        logger.info("Booking created successfully: %s (%s)", booking.booking_id, booking.booking_reference)
        await self._notify(booking, "confirmation")
        return booking

    # ==================== TRANSITIONS ====================
    async def confirm_booking(self, booking_id: UUID) -> Booking:
        """Pending -> Confirmed"""
        booking = await self._transition(booking_id, "confirm", lambda b: b.confirm())
        logger.info("Booking confirmed: %s", booking_id)
        return booking

    async def check_in(self, booking_id: UUID, staff_user: Optional[str] = None) -> Booking:
        """Confirmed -> Checked in, not before the check-in date"""
        today = self.clock()
        booking = await self._transition(booking_id, "check in", lambda b: b.check_in(today))
        logger.info("Customer checked in for booking %s by staff %s", booking_id, staff_user)
        return booking

    async def check_out(self, booking_id: UUID, staff_user: Optional[str] = None) -> Booking:
        """Checked in -> Checked out"""
        booking = await self._transition(booking_id, "check out", lambda b: b.check_out())
        logger.info("Customer checked out for booking %s by staff %s", booking_id, staff_user)
        return booking

    async def evaluate_cancellation(self, booking_id: UUID, is_admin: bool = False) -> CancellationDecision:
        """Preview what cancelling now would mean, without changing anything"""
        booking = await self.get_booking(booking_id)
        if booking.status != BookingStatus.CANCELLED and not booking.is_cancellable():
            return CancellationDecision.deny(f"Cannot cancel booking with status {booking.status.value}")
        return self.cancellation_engine.evaluate(booking, is_admin, self.clock())

    async def cancel_booking(
        self,
        booking_id: UUID,
        is_admin: bool = False,
        reason: Optional[str] = None
    ) -> Booking:
        """Cancel a pending or confirmed booking when the policy allows it"""
        today = self.clock()

        def cancel(booking: Booking) -> None:
            decision = self.cancellation_engine.evaluate(booking, is_admin, today)
            booking.cancel(decision, reason)

        booking = await self._transition(booking_id, "cancel", cancel)
        logger.info("Booking cancelled: %s, refund %s%%", booking_id, booking.refund_percentage)
        await self._notify(booking, "cancellation")
        return booking

    async def update_booking(
        self,
        booking_id: UUID,
        guest_count: Optional[int] = None,
        children_count: Optional[int] = None,
        special_requests: Optional[str] = None,
        is_admin: bool = False
    ) -> Booking:
        """Change guest details of an open booking"""
        room_capacity = None
        if guest_count is not None and not is_admin:
            booking = await self.get_booking(booking_id)
            room_capacity = (await self._get_room(booking.room_id)).capacity

        def update(booking: Booking) -> None:
            if room_capacity is not None and guest_count > room_capacity:
                raise BookingValidationError(
                    f"Guest count {guest_count} exceeds room capacity {room_capacity}"
                )
            booking.update_details(guest_count, children_count, special_requests)

        booking = await self._transition(booking_id, "update", update)
        logger.info("Booking updated: %s", booking_id)
        return booking

    # ==================== QUERIES ====================
    async def get_booking(self, booking_id: UUID) -> Booking:
        booking = await guard_persistence(self.booking_repo.find_by_id(booking_id), f"load booking {booking_id}")
        if booking is None:
            logger.warning("Booking not found: %s", booking_id)
            raise BookingNotFoundError(booking_id)
        return booking

    async def get_booking_by_reference(self, reference: str) -> Booking:
        booking = await guard_persistence(
            self.booking_repo.find_by_reference(reference), f"load booking {reference}"
        )
        if booking is None:
            raise BookingNotFoundError(reference)
        return booking

    async def get_all_bookings(self) -> List[Booking]:
        return await guard_persistence(self.booking_repo.find_all(), "list bookings")

    async def get_bookings_by_customer(self, customer_id: UUID, page: int = 1, page_size: Optional[int] = None) -> List[Booking]:
        bookings = await guard_persistence(
            self.booking_repo.find_by_customer(customer_id), f"list bookings for customer {customer_id}"
        )
        return paginate(bookings, page, page_size)

    async def get_bookings_by_status(self, status: BookingStatus, page: int = 1, page_size: Optional[int] = None) -> List[Booking]:
        bookings = await guard_persistence(
            self.booking_repo.find_by_status(status), f"list bookings by status {status.value}"
        )
        return paginate(bookings, page, page_size)

    async def get_bookings_by_room(self, room_id: UUID) -> List[Booking]:
        return await guard_persistence(self.booking_repo.find_by_room(room_id), f"list bookings for room {room_id}")

    async def get_bookings_by_date_range(self, start_date: date, end_date: date) -> List[Booking]:
        """Bookings whose stay overlaps [start_date, end_date)"""
        if end_date <= start_date:
            raise BookingValidationError("End date must be after start date")
        return await guard_persistence(
            self.booking_repo.find_overlapping(start_date, end_date), "list bookings by date range"
        )

    async def get_todays_check_ins(self) -> List[Booking]:
        today = self.clock()
        confirmed = await self.get_bookings_by_status(BookingStatus.CONFIRMED)
        return [b for b in confirmed if b.date_range.check_in == today]

    async def get_todays_check_outs(self) -> List[Booking]:
        today = self.clock()
        in_house = await self.get_bookings_by_status(BookingStatus.CHECKED_IN)
        return [b for b in in_house if b.date_range.check_out == today]

    async def get_current_guests(self) -> List[Booking]:
        return await self.get_bookings_by_status(BookingStatus.CHECKED_IN)

    async def check_availability(self, room_id: UUID, check_in: date, check_out: date) -> bool:
        date_range = build_model(DateRange, check_in=check_in, check_out=check_out)
        return await self.availability_checker.is_available(room_id, date_range.check_in, date_range.check_out)

    async def quote_price(self, room_id: UUID, check_in: date, check_out: date) -> Decimal:
        date_range = build_model(DateRange, check_in=check_in, check_out=check_out)
        return await self.pricing_calculator.calculate_price(room_id, date_range.check_in, date_range.check_out)

    # ==================== HELPERS ====================
    async def _get_room(self, room_id: UUID) -> Room:
        room = await guard_persistence(self.room_repo.find_by_id(room_id), f"load room {room_id}")
        if room is None:
            logger.warning("Room not found: %s", room_id)
            raise RoomNotFoundError(room_id)
        return room

    async def _transition(self, booking_id: UUID, action: str, apply: Callable[[Booking], None]) -> Booking:
        """Load, change and store a booking with a version check"""
        booking = await self.get_booking(booking_id)
        expected_version = booking.version
        try:
            apply(booking)
        except BookingValidationError as e:
            logger.warning("Cannot %s booking %s: %s", action, booking_id, e)
            raise
        return await guard_persistence(
            self.booking_repo.update(booking, expected_version), f"{action} booking {booking_id}"
        )

    async def _notify(self, booking: Booking, kind: str) -> None:
        """Send a guest notification; failures are logged, never raised"""
        if self.notifier is None:
            return
        try:
            customer = await self.customer_repo.find_by_id(booking.customer_id)
            room = await self.room_repo.find_by_id(booking.room_id)
            if customer is None or room is None:
                logger.warning("Skipping %s notification for booking %s: customer or room missing",
                               kind, booking.booking_reference)
                return
            if kind == "confirmation":
                await self.notifier.send_booking_confirmation(customer.email, booking, room)
            else:
                await self.notifier.send_booking_cancellation(customer.email, booking, room)
        except Exception as e:
            logger.warning(
                "Failed to send %s notification for booking %s: %s",
                kind, booking.booking_reference, e, exc_info=True
            )


class RoomService:
    """Service for room inventory used by the booking core"""

    def __init__(self, room_repo: RoomRepository, booking_repo: BookingRepository):
        self.room_repo = room_repo
        self.availability_checker = AvailabilityChecker(room_repo, booking_repo)

    async def add_room(
        self,
        room_number: int,
        name: str,
        base_price: Decimal,
        capacity: int = 2,
        room_type: str = "Standard",
        dynamic_price: Optional[Decimal] = None,
        is_available: bool = True
    ) -> Room:
        """Register a room"""
        for existing in await self.get_all_rooms():
            if existing.room_number == room_number:
                raise BookingValidationError(f"Room number {room_number} already exists")

        room = build_model(
            Room,
            room_number=room_number,
            name=name,
            room_type=room_type,
            base_price=base_price,
            dynamic_price=dynamic_price,
            capacity=capacity,
            is_available=is_available
        )
        room = await guard_persistence(self.room_repo.save(room), f"add room {room_number}")
        logger.info("Added room %s with ID %s", room.room_number, room.room_id)
        return room

    async def get_room(self, room_id: UUID) -> Room:
        room = await guard_persistence(self.room_repo.find_by_id(room_id), f"load room {room_id}")
        if room is None:
            raise RoomNotFoundError(room_id)
        return room

    async def get_all_rooms(self) -> List[Room]:
        return await guard_persistence(self.room_repo.find_all(), "list rooms")

    async def get_rooms_by_type(self, room_type: str) -> List[Room]:
        return [r for r in await self.get_all_rooms() if r.room_type == room_type]

    async def update_room_rates(
        self,
        room_id: UUID,
        base_price: Optional[Decimal] = None,
        dynamic_price: Optional[Decimal] = None,
        clear_dynamic_price: bool = False
    ) -> Room:
        """Change nightly rates; existing bookings keep their stored price"""
        room = await self.get_room(room_id)
        fields = room.model_dump()
        if base_price is not None:
            fields["base_price"] = base_price
        if clear_dynamic_price:
            fields["dynamic_price"] = None
        elif dynamic_price is not None:
            fields["dynamic_price"] = dynamic_price
        fields["updated_at"] = datetime.now(timezone.utc)
        updated = build_model(Room, **fields)
        room = await guard_persistence(self.room_repo.update(updated), f"update rates of room {room_id}")
        logger.info("Updated rates for room %s: base %s, dynamic %s",
                    room_id, room.base_price, room.dynamic_price)
        return room

    async def set_room_availability(self, room_id: UUID, is_available: bool) -> Room:
        room = await self.get_room(room_id)
        room.is_available = is_available
        room.updated_at = datetime.now(timezone.utc)
        room = await guard_persistence(self.room_repo.update(room), f"update availability of room {room_id}")
        logger.info("Room %s availability set to %s", room_id, is_available)
        return room

    async def search_rooms(
        self,
        check_in: Optional[date] = None,
        check_out: Optional[date] = None,
        room_type: Optional[str] = None,
        min_capacity: Optional[int] = None,
        max_price: Optional[Decimal] = None
    ) -> List[Room]:
        """
        Rooms matching every given criterion.

        With both dates, only rooms free for the whole stay are returned;
        max_price is compared with the effective nightly rate.
        """
        if (check_in is None) != (check_out is None):
            raise BookingValidationError("Check-in and check-out dates must be given together")
        date_range = None
        if check_in is not None:
            date_range = build_model(DateRange, check_in=check_in, check_out=check_out)

        matches = []
        for room in await self.get_all_rooms():
            if room_type and room.room_type != room_type:
                continue
            if min_capacity is not None and room.capacity < min_capacity:
                continue
            if max_price is not None and room.current_price > max_price:
                continue
            if date_range is not None:
                free = await guard_persistence(
                    self.availability_checker.is_room_free(room, date_range.check_in, date_range.check_out),
                    f"check availability for room {room.room_id}"
                )
                if not free:
                    continue
            matches.append(room)
        return matches

    async def find_available_rooms(
        self,
        check_in: date,
        check_out: date,
        guest_count: Optional[int] = None
    ) -> List[Room]:
        """Rooms free for the whole stay, optionally large enough for the party"""
        return await self.search_rooms(check_in, check_out, min_capacity=guest_count)


class PaymentService:
    """Records payment attempts; gateway protocols live outside the core"""

    def __init__(self,
                 repository: PaymentRepository,
                 booking_repo: BookingRepository,
                 default_currency: str = "USD"):
        self.repository = repository
        self.booking_repo = booking_repo
        self.default_currency = default_currency

    async def record_payment(
        self,
        booking_id: UUID,
        amount: Decimal,
        payment_method: str,
        transaction_id: str,
        status: PaymentStatus = PaymentStatus.PENDING,
        currency: Optional[str] = None
    ) -> Payment:
        """Record a payment attempt against a booking"""
        booking = await guard_persistence(self.booking_repo.find_by_id(booking_id), f"load booking {booking_id}")
        if booking is None:
            raise BookingNotFoundError(booking_id)

        payment = build_model(
            Payment,
            booking_id=booking_id,
            amount=amount,
            payment_method=payment_method,
            transaction_id=transaction_id,
            status=status,
            currency=currency or self.default_currency
        )
        payment = await guard_persistence(
            self.repository.save(payment), f"record payment for booking {booking_id}"
        )
        logger.info("Payment recorded: %s for booking %s", payment.payment_id, booking_id)
        return payment

    async def update_payment_status(
        self,
        payment_id: UUID,
        status: PaymentStatus,
        status_message: Optional[str] = None
    ) -> Payment:
        """Apply a status reported by the payment gateway"""
        payment = await guard_persistence(self.repository.find_by_id(payment_id), f"load payment {payment_id}")
        if payment is None:
            logger.warning("Payment %s not found for status update", payment_id)
            raise PaymentNotFoundError(payment_id)

        payment.update_status(status, status_message)
        payment = await guard_persistence(
            self.repository.update(payment), f"update payment {payment_id}"
        )
        logger.info("Payment %s status updated to %s", payment_id, status.value)
        return payment

    async def get_payments_for_booking(self, booking_id: UUID) -> List[Payment]:
        return await guard_persistence(
            self.repository.find_by_booking(booking_id), f"list payments for booking {booking_id}"
        )

    async def get_payment_by_transaction_id(self, transaction_id: str) -> Payment:
        payment = await guard_persistence(
            self.repository.find_by_transaction_id(transaction_id), f"load payment {transaction_id}"
        )
        if payment is None:
            raise PaymentNotFoundError(transaction_id)
        return payment

    async def total_paid(self, booking_id: UUID) -> Decimal:
        """Sum of settled payments for a booking"""
        payments = await self.get_payments_for_booking(booking_id)
        return sum((p.amount for p in payments if p.status in SETTLED_PAYMENT_STATUSES), Decimal("0"))


class CustomerService:
    """Service for guest records"""

    def __init__(self, repository: CustomerRepository):
        self.repository = repository

    async def register_customer(
        self,
        email: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        phone: Optional[str] = None,
        is_vip: bool = False
    ) -> Customer:
        if await self.find_by_email(email) is not None:
            raise BookingValidationError(f"Customer with email {email} already exists")

        customer = build_model(
            Customer,
            email=email,
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            is_vip=is_vip
        )
        customer = await guard_persistence(self.repository.save(customer), "register customer")
        logger.info("Customer registered: %s", customer.customer_id)
        return customer

    async def update_customer(
        self,
        customer_id: UUID,
        email: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        phone: Optional[str] = None,
        is_vip: Optional[bool] = None
    ) -> Customer:
        """Change the given fields of a customer record"""
        customer = await self.get_customer(customer_id)
        if email is not None and email.lower() != customer.email.lower():
            if await self.find_by_email(email) is not None:
                raise BookingValidationError(f"Customer with email {email} already exists")

        changes = {
            "email": email,
            "first_name": first_name,
            "last_name": last_name,
            "phone": phone,
            "is_vip": is_vip,
        }
        fields = customer.model_dump()
        fields.update({k: v for k, v in changes.items() if v is not None})
        updated = build_model(Customer, **fields)
        customer = await guard_persistence(self.repository.update(updated), f"update customer {customer_id}")
        logger.info("Customer updated: %s", customer_id)
        return customer

    async def get_customer(self, customer_id: UUID) -> Customer:
        customer = await guard_persistence(self.repository.find_by_id(customer_id), f"load customer {customer_id}")
        if customer is None:
            raise CustomerNotFoundError(customer_id)
        return customer

    async def find_by_email(self, email: str) -> Optional[Customer]:
        return await guard_persistence(self.repository.find_by_email(email), "look up customer by email")

    async def get_all_customers(self, page: int = 1, page_size: Optional[int] = None) -> List[Customer]:
        customers = await guard_persistence(self.repository.find_all(), "list customers")
        return paginate(customers, page, page_size)

    @staticmethod
    def display_name(customer: Customer) -> str:
        return customer_display_name(customer.first_name, customer.is_vip)
