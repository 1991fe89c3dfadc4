from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ticketbox.db.session import get_db
from ticketbox.api.deps import get_current_user, get_reservation_manager
from ticketbox.models.user import User
from ticketbox.models.seat import SeatState, SeatStatus
from ticketbox.schemas.common import SeatsUnavailableError
from ticketbox.schemas.seat_status import (
    SeatMapResponse,
    SeatMapRow,
    SeatMapSeat,
    ReserveRequest,
    ReservationResponse,
    ReleaseRequest,
    SeatReleaseResponse,
)
from ticketbox.services import seat_status
from ticketbox.services.reservation import ReservationManager, load_showtime
from ticketbox.utils.clock import as_utc, utcnow

router = APIRouter(prefix="/showtimes", tags=["Seats"])


# ---------------------------------------------------------------------------
# Public: Seat map (seat selection screen)
# ---------------------------------------------------------------------------


@router.get("/{showtime_id}/seats", response_model=SeatMapResponse)
def get_seat_map(
    showtime_id: UUID,
    db: Session = Depends(get_db),
):
    """
    Returns the seat map for a showtime, grouped by row.
    Expired holds are reported as available whether or not the sweeper
    has released them yet. Does not require authentication.
    """
    showtime = load_showtime(db, showtime_id)
    seats = seat_status.hall_seats(db, showtime)
    rows_by_seat = {
        s.seat_id: s
        for s in db.query(SeatStatus).filter(SeatStatus.showtime_id == showtime.id).all()
    }

    now = utcnow()
    rows_dict: dict[str, list] = {}
    for seat in seats:
        row = rows_by_seat.get(seat.id)
        state = seat_status.effective_state(row, now)
        if state == SeatState.available:
            price = seat_status.price_for_seat(showtime, seat.seat_type)
        else:
            price = row.price  # snapshot taken when the hold was placed
        rows_dict.setdefault(seat.row_label, []).append(SeatMapSeat(
            id=seat.id,
            number=seat.seat_number,
            seat_type=seat.seat_type,
            price=price,
            status=state,
            reservation_expires=as_utc(row.reservation_expires) if state == SeatState.reserved else None,
        ))

    return SeatMapResponse(
        showtime_id=showtime.id,
        hall_id=showtime.hall_id,
        rows=[SeatMapRow(label=label, seats=seats) for label, seats in rows_dict.items()],
    )


# ---------------------------------------------------------------------------
# Seat holds (auth required)
# ---------------------------------------------------------------------------


@router.post(
    "/{showtime_id}/seats/reserve",
    response_model=ReservationResponse,
    status_code=status.HTTP_200_OK,
    responses={status.HTTP_409_CONFLICT: {"model": SeatsUnavailableError}},
)
def reserve_seats(
    showtime_id: UUID,
    body: ReserveRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    manager: ReservationManager = Depends(get_reservation_manager),
):
    """
    Hold a set of seats for the authenticated user.
    All requested seats are held or none are; a 409 names the seats that
    someone else holds or has booked. Re-requesting your own seats before
    they expire restarts the hold.
    """
    return manager.reserve(
        db, showtime_id, body.seat_ids, current_user.id, minutes=body.reservation_minutes
    )


@router.post("/{showtime_id}/seats/release", response_model=SeatReleaseResponse)
def release_seats(
    showtime_id: UUID,
    body: ReleaseRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    manager: ReservationManager = Depends(get_reservation_manager),
):
    """Release the current user's holds on this showtime (all of them if no seat_ids)."""
    released = manager.release(db, showtime_id, current_user.id, body.seat_ids)
    return SeatReleaseResponse(released_seats=released)
