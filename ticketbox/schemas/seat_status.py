from typing import Annotated, Optional, List
from pydantic import BaseModel, Field, UUID4, field_validator
from decimal import Decimal
from datetime import datetime

from ticketbox.core.config import settings
from ticketbox.models.seat import SeatState, SeatType


# --- Seat map (seat selection screen) ---

class SeatMapSeat(BaseModel):
    id: UUID4
    number: int
    seat_type: SeatType
    price: Decimal
    status: SeatState
    reservation_expires: Optional[datetime] = None


class SeatMapRow(BaseModel):
    label: str
    seats: List[SeatMapSeat]


class SeatMapResponse(BaseModel):
    showtime_id: UUID4
    hall_id: UUID4
    rows: List[SeatMapRow]


# --- Reservation ---

class ReserveRequest(BaseModel):
    seat_ids: Annotated[List[UUID4], Field(min_length=1, max_length=settings.MAX_SEATS_PER_REQUEST)]
    reservation_minutes: Optional[int] = None

    @field_validator("reservation_minutes")
    @classmethod
    def check_hold_bounds(cls, v):
        if v is None:
            return v
        if not settings.MIN_HOLD_MINUTES <= v <= settings.MAX_HOLD_MINUTES:
            raise ValueError(
                f"reservation_minutes must be between {settings.MIN_HOLD_MINUTES} "
                f"and {settings.MAX_HOLD_MINUTES}"
            )
        return v


class HeldSeat(BaseModel):
    seat_id: UUID4
    price: Decimal
    expires_at: datetime


class ReservationResponse(BaseModel):
    showtime_id: UUID4
    seats: List[HeldSeat]
    expires_at: datetime
    ttl_seconds: int


class ReleaseRequest(BaseModel):
    # Empty means every hold the caller has on this showtime
    seat_ids: Annotated[List[UUID4], Field(max_length=settings.MAX_SEATS_PER_REQUEST)] = []


class SeatReleaseResponse(BaseModel):
    released_seats: List[UUID4]


# --- Admin: eager initialization ---

class SeatStatusInitResponse(BaseModel):
    showtime_id: UUID4
    created_count: int
