from typing import List, Literal, Optional
from pydantic import BaseModel, Field, UUID4
from datetime import datetime

from ticketbox.utils.clock import utcnow

SeatEventType = Literal["seats-reserved", "seats-booked", "seats-released"]

ReleaseReason = Literal[
    "payment-failed",
    "booking-cancelled",
    "reservation-expired",
    "reservation-released",
    "booking-reconciled",
]


# Seat-state change pushed to everyone watching a showtime
class SeatChangeEvent(BaseModel):
    type: SeatEventType
    showtime_id: UUID4
    seat_ids: List[UUID4]
    user_id: Optional[UUID4] = None
    booking_id: Optional[UUID4] = None
    reason: Optional[ReleaseReason] = None
    expires_at: Optional[datetime] = None
    timestamp: datetime = Field(default_factory=utcnow)
