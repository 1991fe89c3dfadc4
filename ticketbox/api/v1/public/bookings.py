from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session, joinedload

from ticketbox.db.session import get_db
from ticketbox.core.exceptions import AuthorizationError
from ticketbox.api.deps import get_current_user, get_booking_finalizer
from ticketbox.models.user import User
from ticketbox.models.booking import Booking
from ticketbox.schemas.booking import (
    BookingCreate,
    Booking as BookingSchema,
    BookingCancelResponse,
    PaymentStatusUpdate,
)
from ticketbox.schemas.common import PaginatedResponse
from ticketbox.services.booking import BookingFinalizer, load_booking

router = APIRouter(prefix="/bookings", tags=["Bookings"])


# ---------------------------------------------------------------------------
# POST /bookings — turn held seats into a booking
# ---------------------------------------------------------------------------


@router.post("/", response_model=BookingSchema, status_code=status.HTTP_201_CREATED)
def create_booking(
    data: BookingCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    finalizer: BookingFinalizer = Depends(get_booking_finalizer),
):
    """
    Create a pending booking from seats the current user holds.
    - Every seat must be held by the caller and unexpired.
    - Total = seat prices captured at hold time + combo unit price × quantity.
    - Seats move to booked in the same transaction as the booking insert.
    """
    return finalizer.create_booking(db, current_user.id, data)


# ---------------------------------------------------------------------------
# GET /bookings — list current user's bookings
# ---------------------------------------------------------------------------


@router.get("/", response_model=PaginatedResponse[BookingSchema])
def list_my_bookings(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Return the authenticated user's bookings, newest first."""
    query = db.query(Booking).filter(Booking.user_id == current_user.id)

    total = query.count()
    bookings = (
        query.options(joinedload(Booking.seats), joinedload(Booking.combos))
        .order_by(Booking.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return PaginatedResponse(
        data=[BookingSchema.model_validate(b) for b in bookings],
        total=total,
        page=page,
        limit=limit,
        total_pages=-(-total // limit) if total else 0,
    )


# ---------------------------------------------------------------------------
# GET /bookings/{id} — single booking detail
# ---------------------------------------------------------------------------


@router.get("/{booking_id}", response_model=BookingSchema)
def get_booking(
    booking_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Return a single booking. Only the owning user or an admin can access it."""
    booking = load_booking(db, booking_id)
    if booking.user_id != current_user.id and current_user.role != "admin":
        raise AuthorizationError("Not authorized to view this booking")
    return booking


# ---------------------------------------------------------------------------
# PUT /bookings/{id}/payment — payment status callback
# ---------------------------------------------------------------------------


@router.put("/{booking_id}/payment", response_model=BookingSchema)
def update_payment_status(
    booking_id: UUID,
    body: PaymentStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    finalizer: BookingFinalizer = Depends(get_booking_finalizer),
):
    """
    Record the payment outcome.
    - completed: booking becomes confirmed.
    - failed: booking is cancelled and its seats are released.
    """
    return finalizer.update_payment_status(
        db, booking_id, current_user.id, body.payment_status, body.transaction_id
    )


# ---------------------------------------------------------------------------
# PUT /bookings/{id}/cancel
# ---------------------------------------------------------------------------


@router.put("/{booking_id}/cancel", response_model=BookingCancelResponse)
def cancel_booking(
    booking_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    finalizer: BookingFinalizer = Depends(get_booking_finalizer),
):
    """
    Cancel a pending or confirmed booking.
    Releases every seat the booking holds back to available.
    """
    booking = finalizer.cancel_booking(db, booking_id, current_user.id)
    return BookingCancelResponse(
        id=booking.id,
        booking_number=booking.booking_number,
        booking_status=booking.booking_status,
        cancelled_at=booking.cancelled_at,
        message="Booking cancelled successfully",
    )
