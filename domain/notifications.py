"""Domain Notifier Interface"""
from abc import ABC, abstractmethod

from domain.entities import Booking, Room


class BookingNotifier(ABC):
    """Outbound guest notifications, fire-and-forget for the booking core"""

    @abstractmethod
    async def send_booking_confirmation(self, recipient: str, booking: Booking, room: Room) -> None:
        """Tell the guest their booking was received"""
        pass

    @abstractmethod
    async def send_booking_cancellation(self, recipient: str, booking: Booking, room: Room) -> None:
        """Tell the guest their booking was cancelled"""
        pass
