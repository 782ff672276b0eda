"""API Schemas - Request and Response DTOs"""
from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from typing import Optional

from domain.enums import PaymentStatus, UserRole


# ============================================================================
# ROOM SCHEMAS
# ============================================================================

class CreateRoomRequest(BaseModel):
    """Create room request DTO"""
    room_number: int = Field(ge=1)
    name: str
    room_type: str = "Standard"
    base_price: Decimal = Field(gt=0)
    dynamic_price: Optional[Decimal] = Field(None, gt=0)
    capacity: int = Field(default=2, ge=1, le=10)
    is_available: bool = True


class UpdateRoomRatesRequest(BaseModel):
    """Update room rates request DTO"""
    base_price: Optional[Decimal] = Field(None, gt=0)
    dynamic_price: Optional[Decimal] = Field(None, gt=0)
    clear_dynamic_price: bool = False


class RoomAvailabilityRequest(BaseModel):
    """Toggle room availability flag request DTO"""
    is_available: bool


class RoomResponse(BaseModel):
    """Room response DTO"""
    room_id: UUID
    room_number: int
    name: str
    room_type: str
    base_price: Decimal
    dynamic_price: Optional[Decimal] = None
    current_price: Decimal
    capacity: int
    is_available: bool


class AvailabilityResponse(BaseModel):
    """Availability check response DTO"""
    room_id: UUID
    check_in: date
    check_out: date
    available: bool


class PriceQuoteResponse(BaseModel):
    """Price quote response DTO"""
    room_id: UUID
    check_in: date
    check_out: date
    nights: int
    total_price: Decimal


# ============================================================================
# CUSTOMER SCHEMAS
# ============================================================================

class CreateCustomerRequest(BaseModel):
    """Create customer request DTO"""
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    is_vip: bool = False


class UpdateCustomerRequest(BaseModel):
    """Update customer request DTO"""
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    is_vip: Optional[bool] = None


class CustomerResponse(BaseModel):
    """Customer response DTO"""
    customer_id: UUID
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    is_vip: bool
    display_name: str


# ============================================================================
# BOOKING SCHEMAS
# ============================================================================

class CreateBookingRequest(BaseModel):
    """Create booking request DTO"""
    room_id: UUID
    customer_id: UUID
    check_in: date
    check_out: date
    guest_count: int = Field(default=1, ge=1)
    children_count: int = Field(default=0, ge=0)
    special_requests: Optional[str] = None
    is_refundable: bool = True


class UpdateBookingRequest(BaseModel):
    """Update booking request DTO"""
    guest_count: Optional[int] = Field(None, ge=1)
    children_count: Optional[int] = Field(None, ge=0)
    special_requests: Optional[str] = None


class CancelBookingRequest(BaseModel):
    """Cancel booking request DTO"""
    reason: Optional[str] = None


class BookingResponse(BaseModel):
    """Booking response DTO"""
    booking_id: UUID
    booking_reference: str
    room_id: UUID
    customer_id: UUID
    check_in: date
    check_out: date
    nights: int
    guest_count: int
    children_count: int
    special_requests: Optional[str] = None
    status: str
    total_price: Decimal
    is_refundable: bool
    refund_percentage: Decimal
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    version: int


class CancellationDecisionResponse(BaseModel):
    """Cancellation policy decision DTO"""
    booking_id: UUID
    allowed: bool
    refund_percentage: Decimal
    refund_amount: Decimal
    reason: str


# ============================================================================
# PAYMENT SCHEMAS
# ============================================================================

class RecordPaymentRequest(BaseModel):
    """Record payment request DTO"""
    booking_id: UUID
    amount: Decimal = Field(gt=0)
    payment_method: str
    transaction_id: str
    status: PaymentStatus = PaymentStatus.PENDING
    currency: Optional[str] = None


class UpdatePaymentStatusRequest(BaseModel):
    """Update payment status request DTO"""
    status: PaymentStatus
    status_message: Optional[str] = None


class PaymentResponse(BaseModel):
    """Payment response DTO"""
    payment_id: UUID
    booking_id: UUID
    amount: Decimal
    payment_method: str
    status: str
    status_message: str
    transaction_id: str
    currency: str
    created_at: datetime
    updated_at: datetime


# ============================================================================
# AUTH SCHEMAS
# ============================================================================

class Token(BaseModel):
    """Token response DTO"""
    access_token: str
    token_type: str


class TokenData(BaseModel):
    """Token payload DTO"""
    username: Optional[str] = None


class UserResponse(BaseModel):
    """User response DTO"""
    user_id: UUID
    username: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    role: UserRole
    disabled: bool
