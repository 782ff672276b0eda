import logging

from fastapi import FastAPI, HTTPException, Depends, Request
from fastapi.responses import JSONResponse
from uuid import UUID
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional
from fastapi.security import OAuth2PasswordRequestForm

from api.schemas import (
    # Rooms
    CreateRoomRequest, UpdateRoomRatesRequest, RoomAvailabilityRequest,
    RoomResponse, AvailabilityResponse, PriceQuoteResponse,
    # Customers
    CreateCustomerRequest, UpdateCustomerRequest, CustomerResponse,
    # Bookings
    CreateBookingRequest, UpdateBookingRequest, CancelBookingRequest,
    BookingResponse, CancellationDecisionResponse,
    # Payments
    RecordPaymentRequest, UpdatePaymentStatusRequest, PaymentResponse,
    # Auth
    Token, UserResponse
)

from api.dependencies import (
    get_current_active_user, get_current_staff_user, ensure_customer_access, fake_users_db, get_user
)
from infrastructure.config import LOG_LEVEL, ACCESS_TOKEN_EXPIRE_MINUTES, DEFAULT_CURRENCY, default_cancellation_policy
from infrastructure.security import verify_password, create_access_token
from infrastructure.notifications import LoggingNotifier
from domain.auth import User
from domain.entities import Booking, Room, Payment, Customer
from domain.enums import BookingStatus, PaymentStatus, UserRole
from domain.exceptions import (
    BookingValidationError, NotFoundError, BookingConflictError, BookingServiceError
)

from application.services import BookingService, RoomService, PaymentService, CustomerService, RoomLockRegistry
from infrastructure.repositories.in_memory_repositories import (
    InMemoryRoomRepository, InMemoryBookingRepository, InMemoryPaymentRepository, InMemoryCustomerRepository
)

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Hotel Booking API",
    description="Room availability, booking lifecycle and payments for a hotel",
    version="1.0.0"
)

# Initialize repositories
room_repo = InMemoryRoomRepository()
booking_repo = InMemoryBookingRepository()
payment_repo = InMemoryPaymentRepository()
customer_repo = InMemoryCustomerRepository()

# Shared across requests so concurrent bookings of a room serialize
room_locks = RoomLockRegistry()
notifier = LoggingNotifier()
cancellation_policy = default_cancellation_policy()


# Dependency injection
def get_booking_service() -> BookingService:
    return BookingService(
        booking_repo, room_repo, customer_repo,
        notifier=notifier,
        cancellation_policy=cancellation_policy,
        room_locks=room_locks
    )


def get_room_service() -> RoomService:
    return RoomService(room_repo, booking_repo)


def get_payment_service() -> PaymentService:
    return PaymentService(payment_repo, booking_repo, default_currency=DEFAULT_CURRENCY)


def get_customer_service() -> CustomerService:
    return CustomerService(customer_repo)

# ============================================================================
# ERROR HANDLERS
# ============================================================================

@app.exception_handler(BookingValidationError)
async def validation_error_handler(request: Request, exc: BookingValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(NotFoundError)
async def not_found_error_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(BookingConflictError)
async def conflict_error_handler(request: Request, exc: BookingConflictError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(BookingServiceError)
async def service_error_handler(request: Request, exc: BookingServiceError):
    logger.error("Service error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "An error occurred.", "error": str(exc)})

# ============================================================================
# HEALTH & ENUM REFERENCE ENDPOINTS
# ============================================================================

@app.get("/api/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "message": "API is running"}

@app.get("/api/enums/booking-status", tags=["Enum Reference"])
async def get_booking_statuses():
    """Get all BookingStatus enum values"""
    return {
        "values": [item.value for item in BookingStatus],
        "description": "Booking status values: PENDING, CONFIRMED, CHECKED_IN, CHECKED_OUT, CANCELLED, NO_SHOW, REFUNDED"
    }

@app.get("/api/enums/payment-status", tags=["Enum Reference"])
async def get_payment_statuses():
    """Get all PaymentStatus enum values"""
    return {
        "values": [item.value for item in PaymentStatus],
        "description": "Payment status values: PENDING, PROCESSING, COMPLETED, FAILED, CANCELLED, REFUNDED, PARTIALLY_REFUNDED, SUCCEEDED"
    }

# ============================================================================
# AUTH ENDPOINTS
# ============================================================================

@app.post("/token", response_model=Token, tags=["Auth"])
async def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends()):
    user = get_user(fake_users_db, form_data.username)
    if not user or not verify_password(form_data.password, user.hashed_password):
        raise HTTPException(
            status_code=401,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    access_token = create_access_token(
        data={"sub": user.username, "role": user.role.value},
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    return {"access_token": access_token, "token_type": "bearer"}

@app.get("/users/me", response_model=UserResponse, tags=["Auth"])
async def read_users_me(current_user: User = Depends(get_current_active_user)):
    return current_user

# ============================================================================
# ROOM ENDPOINTS
# ============================================================================

@app.post("/api/rooms", response_model=RoomResponse, status_code=201, tags=["Rooms"])
async def create_room(
    request: CreateRoomRequest,
    service: RoomService = Depends(get_room_service),
    current_user: User = Depends(get_current_staff_user)
):
    """Register a room"""
    room = await service.add_room(
        room_number=request.room_number,
        name=request.name,
        base_price=request.base_price,
        capacity=request.capacity,
        room_type=request.room_type,
        dynamic_price=request.dynamic_price,
        is_available=request.is_available
    )
    return _room_to_response(room)

@app.get("/api/rooms", response_model=List[RoomResponse], tags=["Rooms"])
async def get_all_rooms(
    service: RoomService = Depends(get_room_service),
    current_user: User = Depends(get_current_active_user)
):
    """Get all rooms"""
    rooms = await service.get_all_rooms()
    return [_room_to_response(r) for r in rooms]

@app.get("/api/rooms/available", response_model=List[RoomResponse], tags=["Rooms"])
async def search_available_rooms(
    check_in: date,
    check_out: date,
    guest_count: Optional[int] = None,
    service: RoomService = Depends(get_room_service),
    current_user: User = Depends(get_current_active_user)
):
    """Rooms free for the whole stay"""
    rooms = await service.find_available_rooms(check_in, check_out, guest_count)
    return [_room_to_response(r) for r in rooms]

@app.get("/api/rooms/search", response_model=List[RoomResponse], tags=["Rooms"])
async def search_rooms(
    check_in: Optional[date] = None,
    check_out: Optional[date] = None,
    room_type: Optional[str] = None,
    min_capacity: Optional[int] = None,
    max_price: Optional[Decimal] = None,
    service: RoomService = Depends(get_room_service),
    current_user: User = Depends(get_current_active_user)
):
    """Rooms by type, capacity, nightly rate and optionally free dates"""
    rooms = await service.search_rooms(check_in, check_out, room_type, min_capacity, max_price)
    return [_room_to_response(r) for r in rooms]

@app.get("/api/rooms/{room_id}", response_model=RoomResponse, tags=["Rooms"])
async def get_room(
    room_id: UUID,
    service: RoomService = Depends(get_room_service),
    current_user: User = Depends(get_current_active_user)
):
    """Get room by ID"""
    return _room_to_response(await service.get_room(room_id))

@app.put("/api/rooms/{room_id}/rates", response_model=RoomResponse, tags=["Rooms"])
async def update_room_rates(
    room_id: UUID,
    request: UpdateRoomRatesRequest,
    service: RoomService = Depends(get_room_service),
    current_user: User = Depends(get_current_staff_user)
):
    """Change nightly rates"""
    room = await service.update_room_rates(
        room_id=room_id,
        base_price=request.base_price,
        dynamic_price=request.dynamic_price,
        clear_dynamic_price=request.clear_dynamic_price
    )
    return _room_to_response(room)

@app.put("/api/rooms/{room_id}/availability", response_model=RoomResponse, tags=["Rooms"])
async def set_room_availability(
    room_id: UUID,
    request: RoomAvailabilityRequest,
    service: RoomService = Depends(get_room_service),
    current_user: User = Depends(get_current_staff_user)
):
    """Take a room in or out of service"""
    room = await service.set_room_availability(room_id, request.is_available)
    return _room_to_response(room)

@app.get("/api/rooms/{room_id}/availability", response_model=AvailabilityResponse, tags=["Rooms"])
async def check_room_availability(
    room_id: UUID,
    check_in: date,
    check_out: date,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    """Check if a room is free for a date range"""
    available = await service.check_availability(room_id, check_in, check_out)
    return AvailabilityResponse(room_id=room_id, check_in=check_in, check_out=check_out, available=available)

@app.get("/api/rooms/{room_id}/price", response_model=PriceQuoteResponse, tags=["Rooms"])
async def quote_room_price(
    room_id: UUID,
    check_in: date,
    check_out: date,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    """Price of a stay at the room's current rate"""
    total_price = await service.quote_price(room_id, check_in, check_out)
    return PriceQuoteResponse(
        room_id=room_id,
        check_in=check_in,
        check_out=check_out,
        nights=(check_out - check_in).days,
        total_price=total_price
    )

# ============================================================================
# CUSTOMER ENDPOINTS
# ============================================================================

@app.post("/api/customers", response_model=CustomerResponse, status_code=201, tags=["Customers"])
async def create_customer(
    request: CreateCustomerRequest,
    service: CustomerService = Depends(get_customer_service),
    current_user: User = Depends(get_current_active_user)
):
    """Register a customer; guests can only register their own e-mail"""
    if current_user.role == UserRole.GUEST and request.email.lower() != (current_user.email or "").lower():
        raise HTTPException(status_code=403, detail="Guests can only register their own e-mail")
    customer = await service.register_customer(
        email=request.email,
        first_name=request.first_name,
        last_name=request.last_name,
        phone=request.phone,
        is_vip=request.is_vip and current_user.role != UserRole.GUEST
    )
    return _customer_to_response(customer)

@app.get("/api/customers", response_model=List[CustomerResponse], tags=["Customers"])
async def get_customers(
    page: int = 1,
    page_size: Optional[int] = None,
    service: CustomerService = Depends(get_customer_service),
    current_user: User = Depends(get_current_staff_user)
):
    """List customers in registration order"""
    return [_customer_to_response(c) for c in await service.get_all_customers(page, page_size)]

@app.get("/api/customers/me", response_model=CustomerResponse, tags=["Customers"])
async def get_my_customer(
    service: CustomerService = Depends(get_customer_service),
    current_user: User = Depends(get_current_active_user)
):
    """Customer record for the logged-in user's e-mail"""
    customer = await service.find_by_email(current_user.email or "")
    if customer is None:
        raise HTTPException(status_code=404, detail="No customer record for this user")
    return _customer_to_response(customer)

@app.get("/api/customers/{customer_id}", response_model=CustomerResponse, tags=["Customers"])
async def get_customer(
    customer_id: UUID,
    service: CustomerService = Depends(get_customer_service),
    current_user: User = Depends(get_current_active_user)
):
    """Get customer by ID"""
    await ensure_customer_access(customer_id, current_user, service)
    return _customer_to_response(await service.get_customer(customer_id))

@app.put("/api/customers/{customer_id}", response_model=CustomerResponse, tags=["Customers"])
async def update_customer(
    customer_id: UUID,
    request: UpdateCustomerRequest,
    service: CustomerService = Depends(get_customer_service),
    current_user: User = Depends(get_current_active_user)
):
    """Update customer details; only staff can change e-mail or VIP status"""
    await ensure_customer_access(customer_id, current_user, service)
    if current_user.role == UserRole.GUEST and (request.email is not None or request.is_vip is not None):
        raise HTTPException(status_code=403, detail="Staff access required")
    customer = await service.update_customer(
        customer_id,
        email=request.email,
        first_name=request.first_name,
        last_name=request.last_name,
        phone=request.phone,
        is_vip=request.is_vip
    )
    return _customer_to_response(customer)

# ============================================================================
# BOOKING ENDPOINTS
# ============================================================================

@app.post("/api/bookings", response_model=BookingResponse, status_code=201, tags=["Bookings"])
async def create_booking(
    request: CreateBookingRequest,
    service: BookingService = Depends(get_booking_service),
    customers: CustomerService = Depends(get_customer_service),
    current_user: User = Depends(get_current_active_user)
):
    """Create new booking"""
    await ensure_customer_access(request.customer_id, current_user, customers)
    booking = await service.create_booking(
        room_id=request.room_id,
        customer_id=request.customer_id,
        check_in=request.check_in,
        check_out=request.check_out,
        guest_count=request.guest_count,
        children_count=request.children_count,
        special_requests=request.special_requests,
        is_refundable=request.is_refundable,
        is_admin=current_user.is_admin
    )
    return _booking_to_response(booking)

@app.get("/api/bookings", response_model=List[BookingResponse], tags=["Bookings"])
async def get_bookings(
    status: Optional[BookingStatus] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    page: int = 1,
    page_size: Optional[int] = None,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_staff_user)
):
    """List bookings, optionally by status or by stays overlapping a date range"""
    if (start_date is None) != (end_date is None):
        raise HTTPException(status_code=400, detail="start_date and end_date must be given together")
    if status is not None:
        bookings = await service.get_bookings_by_status(status, page, page_size)
    elif start_date is not None and end_date is not None:
        bookings = await service.get_bookings_by_date_range(start_date, end_date)
    else:
        bookings = await service.get_all_bookings()
    return [_booking_to_response(b) for b in bookings]

@app.get("/api/bookings/today/check-ins", response_model=List[BookingResponse], tags=["Front Desk"])
async def get_todays_check_ins(
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_staff_user)
):
    """Confirmed bookings arriving today"""
    return [_booking_to_response(b) for b in await service.get_todays_check_ins()]

@app.get("/api/bookings/today/check-outs", response_model=List[BookingResponse], tags=["Front Desk"])
async def get_todays_check_outs(
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_staff_user)
):
    """Checked-in bookings departing today"""
    return [_booking_to_response(b) for b in await service.get_todays_check_outs()]

@app.get("/api/bookings/current-guests", response_model=List[BookingResponse], tags=["Front Desk"])
async def get_current_guests(
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_staff_user)
):
    """Bookings currently checked in"""
    return [_booking_to_response(b) for b in await service.get_current_guests()]

@app.get("/api/bookings/reference/{booking_reference}", response_model=BookingResponse, tags=["Bookings"])
async def get_booking_by_reference(
    booking_reference: str,
    service: BookingService = Depends(get_booking_service),
    customers: CustomerService = Depends(get_customer_service),
    current_user: User = Depends(get_current_active_user)
):
    """Get booking by booking reference"""
    booking = await service.get_booking_by_reference(booking_reference)
    await ensure_customer_access(booking.customer_id, current_user, customers)
    return _booking_to_response(booking)

@app.get("/api/bookings/customer/{customer_id}", response_model=List[BookingResponse], tags=["Bookings"])
async def get_customer_bookings(
    customer_id: UUID,
    page: int = 1,
    page_size: Optional[int] = None,
    service: BookingService = Depends(get_booking_service),
    customers: CustomerService = Depends(get_customer_service),
    current_user: User = Depends(get_current_active_user)
):
    """Get all bookings for a customer, newest first"""
    await ensure_customer_access(customer_id, current_user, customers)
    bookings = await service.get_bookings_by_customer(customer_id, page, page_size)
    return [_booking_to_response(b) for b in bookings]

@app.get("/api/bookings/room/{room_id}", response_model=List[BookingResponse], tags=["Bookings"])
async def get_room_bookings(
    room_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_staff_user)
):
    """Get all bookings for a room"""
    return [_booking_to_response(b) for b in await service.get_bookings_by_room(room_id)]

@app.get("/api/bookings/{booking_id}", response_model=BookingResponse, tags=["Bookings"])
async def get_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    customers: CustomerService = Depends(get_customer_service),
    current_user: User = Depends(get_current_active_user)
):
    """Get booking by ID"""
    return _booking_to_response(await _load_accessible_booking(booking_id, service, customers, current_user))

@app.put("/api/bookings/{booking_id}", response_model=BookingResponse, tags=["Bookings"])
async def update_booking(
    booking_id: UUID,
    request: UpdateBookingRequest,
    service: BookingService = Depends(get_booking_service),
    customers: CustomerService = Depends(get_customer_service),
    current_user: User = Depends(get_current_active_user)
):
    """Change guest details of an open booking"""
    await _load_accessible_booking(booking_id, service, customers, current_user)
    booking = await service.update_booking(
        booking_id=booking_id,
        guest_count=request.guest_count,
        children_count=request.children_count,
        special_requests=request.special_requests,
        is_admin=current_user.is_admin
    )
    return _booking_to_response(booking)

@app.post("/api/bookings/{booking_id}/confirm", response_model=BookingResponse, tags=["Bookings"])
async def confirm_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_staff_user)
):
    """Confirm a pending booking"""
    return _booking_to_response(await service.confirm_booking(booking_id))

@app.post("/api/bookings/{booking_id}/check-in", response_model=BookingResponse, tags=["Front Desk"])
async def check_in_guest(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_staff_user)
):
    """Check in guest"""
    return _booking_to_response(await service.check_in(booking_id, staff_user=current_user.username))

@app.post("/api/bookings/{booking_id}/check-out", response_model=BookingResponse, tags=["Front Desk"])
async def check_out_guest(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_staff_user)
):
    """Check out guest"""
    return _booking_to_response(await service.check_out(booking_id, staff_user=current_user.username))

@app.get("/api/bookings/{booking_id}/cancellation", response_model=CancellationDecisionResponse, tags=["Bookings"])
async def preview_cancellation(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    customers: CustomerService = Depends(get_customer_service),
    current_user: User = Depends(get_current_active_user)
):
    """What cancelling now would refund"""
    booking = await _load_accessible_booking(booking_id, service, customers, current_user)
    decision = await service.evaluate_cancellation(booking_id, is_admin=current_user.is_admin)
    return CancellationDecisionResponse(
        booking_id=booking_id,
        allowed=decision.allowed,
        refund_percentage=decision.refund_percentage,
        refund_amount=decision.refund_for(booking.total_price),
        reason=decision.reason
    )

@app.post("/api/bookings/{booking_id}/cancel", response_model=BookingResponse, tags=["Bookings"])
async def cancel_booking(
    booking_id: UUID,
    request: CancelBookingRequest,
    service: BookingService = Depends(get_booking_service),
    customers: CustomerService = Depends(get_customer_service),
    current_user: User = Depends(get_current_active_user)
):
    """Cancel booking per cancellation policy"""
    await _load_accessible_booking(booking_id, service, customers, current_user)
    booking = await service.cancel_booking(
        booking_id=booking_id,
        is_admin=current_user.is_admin,
        reason=request.reason
    )
    return _booking_to_response(booking)

# ============================================================================
# PAYMENT ENDPOINTS
# ============================================================================

@app.post("/api/payments", response_model=PaymentResponse, status_code=201, tags=["Payments"])
async def record_payment(
    request: RecordPaymentRequest,
    service: PaymentService = Depends(get_payment_service),
    current_user: User = Depends(get_current_staff_user)
):
    """Record a payment attempt"""
    payment = await service.record_payment(
        booking_id=request.booking_id,
        amount=request.amount,
        payment_method=request.payment_method,
        transaction_id=request.transaction_id,
        status=request.status,
        currency=request.currency
    )
    return _payment_to_response(payment)

@app.put("/api/payments/{payment_id}/status", response_model=PaymentResponse, tags=["Payments"])
async def update_payment_status(
    payment_id: UUID,
    request: UpdatePaymentStatusRequest,
    service: PaymentService = Depends(get_payment_service),
    current_user: User = Depends(get_current_staff_user)
):
    """Apply a gateway status update"""
    payment = await service.update_payment_status(payment_id, request.status, request.status_message)
    return _payment_to_response(payment)

@app.get("/api/payments/booking/{booking_id}", response_model=List[PaymentResponse], tags=["Payments"])
async def get_booking_payments(
    booking_id: UUID,
    service: PaymentService = Depends(get_payment_service),
    current_user: User = Depends(get_current_staff_user)
):
    """Get all payments for a booking"""
    return [_payment_to_response(p) for p in await service.get_payments_for_booking(booking_id)]

# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

async def _load_accessible_booking(
    booking_id: UUID,
    service: BookingService,
    customers: CustomerService,
    current_user: User
) -> Booking:
    """Load a booking, refusing guests who do not own it"""
    booking = await service.get_booking(booking_id)
    await ensure_customer_access(booking.customer_id, current_user, customers)
    return booking

def _room_to_response(room: Room) -> RoomResponse:
    """Convert Room entity to RoomResponse"""
    return RoomResponse(
        room_id=room.room_id,
        room_number=room.room_number,
        name=room.name,
        room_type=room.room_type,
        base_price=room.base_price,
        dynamic_price=room.dynamic_price,
        current_price=room.current_price,
        capacity=room.capacity,
        is_available=room.is_available
    )

def _customer_to_response(customer: Customer) -> CustomerResponse:
    """Convert Customer entity to CustomerResponse"""
    return CustomerResponse(
        customer_id=customer.customer_id,
        email=customer.email,
        first_name=customer.first_name,
        last_name=customer.last_name,
        phone=customer.phone,
        is_vip=customer.is_vip,
        display_name=CustomerService.display_name(customer)
    )

def _booking_to_response(booking: Booking) -> BookingResponse:
    """Convert Booking entity to BookingResponse"""
    return BookingResponse(
        booking_id=booking.booking_id,
        booking_reference=booking.booking_reference,
        room_id=booking.room_id,
        customer_id=booking.customer_id,
        check_in=booking.date_range.check_in,
        check_out=booking.date_range.check_out,
        nights=booking.get_nights(),
        guest_count=booking.guest_count,
        children_count=booking.children_count,
        special_requests=booking.special_requests,
        status=booking.status.value,
        total_price=booking.total_price,
        is_refundable=booking.is_refundable,
        refund_percentage=booking.refund_percentage,
        cancelled_at=booking.cancelled_at,
        cancellation_reason=booking.cancellation_reason,
        created_at=booking.created_at,
        updated_at=booking.updated_at,
        version=booking.version
    )

def _payment_to_response(payment: Payment) -> PaymentResponse:
    """Convert Payment entity to PaymentResponse"""
    return PaymentResponse(
        payment_id=payment.payment_id,
        booking_id=payment.booking_id,
        amount=payment.amount,
        payment_method=payment.payment_method,
        status=payment.status.value,
        status_message=payment.status_message,
        transaction_id=payment.transaction_id,
        currency=payment.currency,
        created_at=payment.created_at,
        updated_at=payment.updated_at
    )

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
