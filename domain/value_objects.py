"""Domain Value Objects"""
from pydantic import BaseModel, Field, validator
from datetime import date
from decimal import Decimal


def ranges_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """Half-open interval overlap: [a_start, a_end) and [b_start, b_end)"""
    return a_start < b_end and b_start < a_end


def refund_share(total_price: Decimal, refund_percentage: Decimal) -> Decimal:
    return (total_price * refund_percentage / Decimal("100")).quantize(Decimal("0.01"))


class DateRange(BaseModel):
    """Value Object for a stay, check-out is exclusive"""
    check_in: date
    check_out: date

    @validator('check_out')
    def check_out_after_check_in(cls, v, values):
        if 'check_in' in values and v <= values['check_in']:
            raise ValueError('Check-out date must be after check-in date')
        return v

    def nights(self) -> int:
        """Calculate number of nights"""
        return (self.check_out - self.check_in).days

    def overlaps(self, other: "DateRange") -> bool:
        return ranges_overlap(self.check_in, self.check_out, other.check_in, other.check_out)

    def contains(self, day: date) -> bool:
        return self.check_in <= day < self.check_out

    class Config:
        frozen = True


class CancellationPolicy(BaseModel):
    """Refund tiers applied to guest cancellations"""
    full_refund_days: int = Field(default=7, ge=0)
    partial_refund_days: int = Field(default=3, ge=0)
    full_refund_percentage: Decimal = Field(default=Decimal("100"), ge=0, le=100)
    partial_refund_percentage: Decimal = Field(default=Decimal("50"), ge=0, le=100)

    @validator('partial_refund_days')
    def partial_window_inside_full_window(cls, v, values):
        if 'full_refund_days' in values and v > values['full_refund_days']:
            raise ValueError('Partial refund window cannot exceed the full refund window')
        return v

    class Config:
        frozen = True


class CancellationDecision(BaseModel):
    """Outcome of a cancellation policy evaluation"""
    allowed: bool
    refund_percentage: Decimal = Field(ge=0, le=100)
    reason: str = ""

    class Config:
        frozen = True

    def refund_for(self, total_price: Decimal) -> Decimal:
        """Refund owed on a booking of the given total, to the cent"""
        if not self.allowed:
            return Decimal("0.00")
        return refund_share(total_price, self.refund_percentage)

    @classmethod
    def deny(cls, reason: str) -> "CancellationDecision":
        return cls(allowed=False, refund_percentage=Decimal("0"), reason=reason)

    @classmethod
    def allow(cls, refund_percentage: Decimal, reason: str = "") -> "CancellationDecision":
        return cls(allowed=True, refund_percentage=refund_percentage, reason=reason)
