import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from ticketbox.core.config import settings
from ticketbox.db.session import SessionLocal
from ticketbox.models.booking import Booking, BookingSeat, BookingStatus, PaymentStatus
from ticketbox.models.seat import SeatState, SeatStatus
from ticketbox.schemas.events import SeatChangeEvent
from ticketbox.services import seat_status
from ticketbox.services.notifier import EventNotifier, notify
from ticketbox.utils.clock import utcnow

logger = logging.getLogger(__name__)


class BookingReconciler:
    """
    Consistency check for pending bookings.

    A pending booking whose seat rows no longer all point at it (a failed
    write, a manual repair, a crash on a store without transactions) can
    never be paid for correctly. Such bookings are cancelled and whatever
    seats still reference them are released. Running it again finds nothing.
    """

    def __init__(
        self,
        notifier: EventNotifier,
        grace_seconds: int = settings.RECONCILE_GRACE_SECONDS,
        session_factory: Callable[[], Session] = SessionLocal,
    ):
        self.notifier = notifier
        self.grace = timedelta(seconds=grace_seconds)
        self.session_factory = session_factory

    def find_diverged(self, db: Session, now: datetime) -> List[Booking]:
        booked_seats = (
            select(func.count(SeatStatus.id))
            .where(SeatStatus.booking_id == Booking.id, SeatStatus.status == SeatState.booked)
            .correlate(Booking)
            .scalar_subquery()
        )
        snapshot_seats = (
            select(func.count(BookingSeat.id))
            .where(BookingSeat.booking_id == Booking.id)
            .correlate(Booking)
            .scalar_subquery()
        )
        return (
            db.query(Booking)
            .filter(
                Booking.booking_status == BookingStatus.pending,
                Booking.created_at < now - self.grace,
                booked_seats < snapshot_seats,
            )
            .all()
        )

    def reconcile(self, db: Session, now: Optional[datetime] = None) -> List[UUID]:
        now = now or utcnow()
        cancelled = []
        for booking in self.find_diverged(db, now):
            # Conditional so a payment callback that lands first wins
            moved = db.execute(
                update(Booking)
                .where(Booking.id == booking.id, Booking.booking_status == BookingStatus.pending)
                .values(
                    booking_status=BookingStatus.cancelled,
                    payment_status=PaymentStatus.failed,
                    cancelled_at=now,
                )
                .execution_options(synchronize_session=False)
            ).rowcount
            if moved != 1:
                db.rollback()
                continue

            seat_status.release_booking_seats(db, booking.id)
            db.commit()
            logger.warning(
                "Cancelled diverged pending booking %s (showtime %s)",
                booking.id, booking.showtime_id,
            )
            notify(self.notifier, SeatChangeEvent(
                type="seats-released",
                showtime_id=booking.showtime_id,
                seat_ids=[s.seat_id for s in booking.seats],
                user_id=booking.user_id,
                booking_id=booking.id,
                reason="booking-reconciled",
            ))
            cancelled.append(booking.id)
        return cancelled

    def run_once(self) -> int:
        try:
            db = self.session_factory()
            try:
                cancelled = self.reconcile(db)
            finally:
                db.close()
        except Exception:
            logger.exception("Error during booking reconciliation.")
            return 0
        return len(cancelled)
