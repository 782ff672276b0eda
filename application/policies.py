"""Availability, pricing and cancellation rules used by the booking service"""
import logging
from uuid import UUID
from datetime import date
from decimal import Decimal

from domain.entities import Booking, Room
from domain.enums import BookingStatus
from domain.exceptions import RoomNotFoundError
from domain.repositories import RoomRepository, BookingRepository
from domain.value_objects import DateRange, CancellationPolicy, CancellationDecision

logger = logging.getLogger(__name__)


def price_for_stay(nightly_rate: Decimal, nights: int) -> Decimal:
    """Total for a stay at a flat nightly rate"""
    return nightly_rate * nights


class AvailabilityChecker:
    """Decides whether a room is free for a date range"""

    def __init__(self, room_repo: RoomRepository, booking_repo: BookingRepository):
        self.room_repo = room_repo
        self.booking_repo = booking_repo

    async def is_available(self, room_id: UUID, check_in: date, check_out: date) -> bool:
        room = await self.room_repo.find_by_id(room_id)
        if room is None:
            raise RoomNotFoundError(room_id)
        return await self.is_room_free(room, check_in, check_out)

    async def is_room_free(self, room: Room, check_in: date, check_out: date) -> bool:
        """Availability for an already loaded room"""
        if not room.is_available:
            return False

        candidates = await self.booking_repo.find_overlapping(check_in, check_out, room_id=room.room_id)
        conflicts = [b for b in candidates if b.blocks_room()]
        if conflicts:
            logger.debug(
                "Room %s has %d overlapping booking(s) for %s to %s",
                room.room_id, len(conflicts), check_in, check_out
            )
        return not conflicts


class PricingCalculator:
    """Computes the price of a stay from a room's effective rate"""

    def __init__(self, room_repo: RoomRepository):
        self.room_repo = room_repo

    async def calculate_price(self, room_id: UUID, check_in: date, check_out: date) -> Decimal:
        room = await self.room_repo.find_by_id(room_id)
        if room is None:
            logger.warning("Room not found: %s", room_id)
            raise RoomNotFoundError(room_id)
        return self.price_for_room(room, check_in, check_out)

    @staticmethod
    def price_for_room(room: Room, check_in: date, check_out: date) -> Decimal:
        nights = (check_out - check_in).days
        return price_for_stay(room.current_price, nights)


class CancellationPolicyEngine:
    """
    Decides whether a booking may be cancelled and what share is refunded.

    Rules, first match wins:
        already cancelled                -> denied
        stay already over                -> denied
        admin                            -> allowed, full refund
        non-refundable booking           -> denied
        >= full_refund_days before stay  -> allowed, full refund
        >= partial_refund_days           -> allowed, partial refund
        otherwise                        -> denied
    """

    def __init__(self, policy: CancellationPolicy):
        self.policy = policy

    def evaluate(self, booking: Booking, is_admin: bool, today: date) -> CancellationDecision:
        return self.decide(
            status=booking.status,
            date_range=booking.date_range,
            is_refundable=booking.is_refundable,
            is_admin=is_admin,
            today=today
        )

    def decide(
        self,
        status: BookingStatus,
        date_range: DateRange,
        is_refundable: bool,
        is_admin: bool,
        today: date
    ) -> CancellationDecision:
        if status == BookingStatus.CANCELLED:
            return CancellationDecision.deny("Booking is already cancelled")

        if date_range.check_out < today:
            return CancellationDecision.deny("Booking has already ended")

        if is_admin:
            return CancellationDecision.allow(Decimal("100"), "Administrator override")

        if not is_refundable:
            return CancellationDecision.deny("Booking is non-refundable")

        days_until_check_in = (date_range.check_in - today).days
        if days_until_check_in >= self.policy.full_refund_days:
            return CancellationDecision.allow(self.policy.full_refund_percentage, "Full refund window")
        if days_until_check_in >= self.policy.partial_refund_days:
            return CancellationDecision.allow(self.policy.partial_refund_percentage, "Partial refund window")
        return CancellationDecision.deny("Too late to cancel")
