from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ticketbox.db.session import get_db
from ticketbox.api.deps import get_current_admin_user
from ticketbox.core.exceptions import BookingValidationError
from ticketbox.models.user import User
from ticketbox.models.seat import SeatStatus
from ticketbox.schemas.seat_status import SeatStatusInitResponse
from ticketbox.services import seat_status
from ticketbox.services.reservation import load_showtime

router = APIRouter(prefix="/admin/showtimes", tags=["Admin - Showtimes"])


@router.post(
    "/{showtime_id}/seat-statuses",
    response_model=SeatStatusInitResponse,
    status_code=status.HTTP_201_CREATED,
)
def initialize_seat_statuses(
    showtime_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user),
):
    """
    Create one available seat-status row per active seat in the showtime's hall.
    Rows are otherwise created on the first reservation attempt; this seeds
    them up front. Rejected once any row exists for the showtime.
    """
    showtime = load_showtime(db, showtime_id)
    exists = db.query(SeatStatus.id).filter(SeatStatus.showtime_id == showtime.id).first()
    if exists:
        raise BookingValidationError("Seat statuses already initialized for this showtime")

    seats = seat_status.hall_seats(db, showtime)
    try:
        created = seat_status.ensure_seat_statuses(db, showtime, seats)
        db.commit()
    except Exception:
        db.rollback()
        raise

    return SeatStatusInitResponse(showtime_id=showtime.id, created_count=created)
