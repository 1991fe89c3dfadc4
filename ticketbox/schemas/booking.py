from typing import Annotated, Literal, Optional, List
from pydantic import BaseModel, Field, UUID4
from decimal import Decimal
from datetime import datetime

from ticketbox.core.config import settings
from ticketbox.models.booking import BookingStatus, PaymentStatus


class ComboSelection(BaseModel):
    item_id: UUID4
    unit_price: Annotated[Decimal, Field(ge=0, decimal_places=2)]
    quantity: Annotated[int, Field(ge=1)]


# Booking — Create (POST /bookings)
class BookingCreate(BaseModel):
    showtime_id: UUID4
    seat_ids: Annotated[List[UUID4], Field(min_length=1, max_length=settings.MAX_SEATS_PER_REQUEST)]
    combos: List[ComboSelection] = []
    voucher_id: Optional[UUID4] = None
    payment_method: Annotated[str, Field(min_length=1, max_length=30)]


class BookingSeatResponse(BaseModel):
    seat_id: UUID4
    row_label: str
    seat_number: int
    seat_type: str
    price: Decimal

    class Config:
        from_attributes = True


class BookingComboResponse(BaseModel):
    item_id: UUID4
    unit_price: Decimal
    quantity: int

    class Config:
        from_attributes = True


# Booking — Full response (POST /bookings, GET /bookings/{id})
class Booking(BaseModel):
    id: UUID4
    booking_number: str
    transaction_id: str
    user_id: UUID4
    showtime_id: UUID4
    seats: List[BookingSeatResponse] = []
    combos: List[BookingComboResponse] = []
    total_amount: Decimal
    voucher_id: Optional[UUID4] = None
    payment_method: str
    payment_status: PaymentStatus
    booking_status: BookingStatus
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Payment callback (PUT /bookings/{id}/payment)
class PaymentStatusUpdate(BaseModel):
    payment_status: Literal["completed", "failed"]
    transaction_id: Optional[Annotated[str, Field(min_length=1, max_length=64)]] = None


# Booking — Cancel response (PUT /bookings/{id}/cancel)
class BookingCancelResponse(BaseModel):
    id: UUID4
    booking_number: str
    booking_status: BookingStatus
    cancelled_at: Optional[datetime] = None
    message: str


# Admin — reconciliation run (POST /admin/bookings/reconcile)
class ReconcileResponse(BaseModel):
    cancelled_booking_ids: List[UUID4]
