"""Notifier Implementations"""
import logging
from typing import List, NamedTuple

from domain.entities import Booking, Room
from domain.notifications import BookingNotifier

logger = logging.getLogger(__name__)


class LoggingNotifier(BookingNotifier):
    """Writes guest notifications to the application log"""

    async def send_booking_confirmation(self, recipient: str, booking: Booking, room: Room) -> None:
        logger.info(
            "Booking confirmation to %s: %s for room %s, %s to %s, total %s",
            recipient, booking.booking_reference, room.room_number,
            booking.date_range.check_in, booking.date_range.check_out, booking.total_price
        )

    async def send_booking_cancellation(self, recipient: str, booking: Booking, room: Room) -> None:
        logger.info(
            "Booking cancellation to %s: %s for room %s, refund %s%%",
            recipient, booking.booking_reference, room.room_number, booking.refund_percentage
        )


class SentNotification(NamedTuple):
    kind: str
    recipient: str
    booking_reference: str


class RecordingNotifier(LoggingNotifier):
    """Keeps every notification it sends, for the demo app and tests"""

    def __init__(self):
        self.sent: List[SentNotification] = []

    async def send_booking_confirmation(self, recipient: str, booking: Booking, room: Room) -> None:
        await super().send_booking_confirmation(recipient, booking, room)
        self.sent.append(SentNotification("confirmation", recipient, booking.booking_reference))

    async def send_booking_cancellation(self, recipient: str, booking: Booking, room: Room) -> None:
        await super().send_booking_cancellation(recipient, booking, room)
        self.sent.append(SentNotification("cancellation", recipient, booking.booking_reference))
