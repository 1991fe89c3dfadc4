import logging
from datetime import timedelta
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from ticketbox.core.config import settings
from ticketbox.core.exceptions import BookingValidationError, NotFoundError, SeatsUnavailableError
from ticketbox.models.showtime import Showtime
from ticketbox.schemas.events import SeatChangeEvent
from ticketbox.schemas.seat_status import HeldSeat, ReservationResponse
from ticketbox.services import seat_status
from ticketbox.services.notifier import EventNotifier, notify
from ticketbox.utils.clock import utcnow

logger = logging.getLogger(__name__)


def _unique(ids: Sequence[UUID]) -> List[UUID]:
    return list(dict.fromkeys(ids))


def load_showtime(db: Session, showtime_id: UUID) -> Showtime:
    showtime = (
        db.query(Showtime)
        .filter(Showtime.id == showtime_id, Showtime.is_active == True)  # noqa: E712
        .first()
    )
    if not showtime:
        raise NotFoundError("Showtime not found")
    return showtime


class ReservationManager:
    """Places time-limited, all-or-nothing holds on a set of seats."""

    def __init__(self, notifier: EventNotifier, hold_minutes: int = settings.HOLD_MINUTES):
        self.notifier = notifier
        self.hold_minutes = hold_minutes

    def reserve(
        self,
        db: Session,
        showtime_id: UUID,
        seat_ids: Sequence[UUID],
        user_id: UUID,
        minutes: Optional[int] = None,
    ) -> ReservationResponse:
        """
        Hold every requested seat for ``user_id`` or none of them.

        Each seat is claimed with its own conditional update inside one
        transaction. If any claim loses, the transaction is rolled back, which
        also undoes the claims this call already won, and the losing seats
        are reported.
        """
        seat_ids = _unique(seat_ids)
        if not seat_ids:
            raise BookingValidationError("No seats requested")

        showtime = load_showtime(db, showtime_id)
        seats = seat_status.hall_seats(db, showtime, seat_ids)
        if len(seats) != len(seat_ids):
            raise BookingValidationError("One or more seats do not belong to this showtime")

        minutes = minutes or self.hold_minutes
        now = utcnow()
        expires_at = now + timedelta(minutes=minutes)

        held = {}
        unavailable = set()
        try:
            seat_status.ensure_seat_statuses(db, showtime, seats)
            # Stable claim order so overlapping requests cannot deadlock
            for seat in sorted(seats, key=lambda s: str(s.id)):
                price = seat_status.price_for_seat(showtime, seat.seat_type)
                if seat_status.claim_seat(db, showtime.id, seat.id, user_id, price, now, expires_at):
                    held[seat.id] = price
                else:
                    unavailable.add(seat.id)

            if unavailable:
                db.rollback()
                raise SeatsUnavailableError([sid for sid in seat_ids if sid in unavailable])
            db.commit()
        except SeatsUnavailableError:
            raise
        except Exception:
            db.rollback()
            raise

        logger.debug(
            "User %s holds %d seat(s) for showtime %s until %s",
            user_id, len(held), showtime.id, expires_at,
        )
        notify(self.notifier, SeatChangeEvent(
            type="seats-reserved",
            showtime_id=showtime.id,
            seat_ids=seat_ids,
            user_id=user_id,
            expires_at=expires_at,
        ))

        return ReservationResponse(
            showtime_id=showtime.id,
            seats=[
                HeldSeat(seat_id=sid, price=held[sid], expires_at=expires_at)
                for sid in seat_ids
            ],
            expires_at=expires_at,
            ttl_seconds=minutes * 60,
        )

    def release(
        self,
        db: Session,
        showtime_id: UUID,
        user_id: UUID,
        seat_ids: Optional[Sequence[UUID]] = None,
    ) -> List[UUID]:
        """Drop the caller's own holds on a showtime (all of them if no ids given)."""
        showtime = load_showtime(db, showtime_id)
        try:
            released = seat_status.release_holds(
                db, showtime.id, user_id, _unique(seat_ids) if seat_ids else None
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        if released:
            notify(self.notifier, SeatChangeEvent(
                type="seats-released",
                showtime_id=showtime.id,
                seat_ids=released,
                user_id=user_id,
                reason="reservation-released",
            ))
        return released
