"""
Booking Finalizer.

Turns a set of seats held by a user into a Booking, and drives the booking
through payment and cancellation:

    pending --(payment completed)--> confirmed
    pending --(payment failed)-----> cancelled   (seats released)
    pending/confirmed --(cancel)---> cancelled   (seats released)

Booking creation and the reserved -> booked seat transition commit in the
same transaction; a modified-count mismatch rolls both back.
"""
import logging
import random
import secrets
import string
from decimal import Decimal
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from ticketbox.core.exceptions import (
    AuthorizationError,
    BookingValidationError,
    NotFoundError,
    StateConflictError,
)
from ticketbox.models.booking import Booking, BookingCombo, BookingSeat, BookingStatus, PaymentStatus
from ticketbox.models.seat import SeatState, SeatStatus
from ticketbox.schemas.booking import BookingCreate
from ticketbox.schemas.events import SeatChangeEvent
from ticketbox.services import seat_status
from ticketbox.services.notifier import EventNotifier, notify
from ticketbox.services.reservation import load_showtime
from ticketbox.utils.clock import utcnow

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _generate_booking_number(db: Session) -> str:
    """Generate a unique 'TBX-XXXXXXXX' booking reference."""
    chars = string.ascii_uppercase + string.digits
    while True:
        number = "TBX-" + "".join(random.choices(chars, k=8))
        if not db.query(Booking.id).filter(Booking.booking_number == number).first():
            return number


def _generate_transaction_id() -> str:
    return f"txn_{secrets.token_hex(16)}"


def compute_total(seat_prices: Iterable[Decimal], combos) -> Decimal:
    """Seat prices plus combo unit_price x quantity, to the cent."""
    seat_total = sum((Decimal(p) for p in seat_prices), Decimal("0"))
    combo_total = sum(
        (Decimal(c.unit_price) * c.quantity for c in combos), Decimal("0")
    )
    return (seat_total + combo_total).quantize(seat_status.CENT)


def load_booking(db: Session, booking_id: UUID) -> Booking:
    booking = (
        db.query(Booking)
        .options(joinedload(Booking.seats), joinedload(Booking.combos))
        .filter(Booking.id == booking_id)
        .first()
    )
    if not booking:
        raise NotFoundError("Booking not found")
    return booking


class BookingFinalizer:
    def __init__(self, notifier: EventNotifier):
        self.notifier = notifier

    # -----------------------------------------------------------------------
    # Create
    # -----------------------------------------------------------------------

    def create_booking(self, db: Session, user_id: UUID, data: BookingCreate) -> Booking:
        seat_ids = list(dict.fromkeys(data.seat_ids))
        showtime = load_showtime(db, data.showtime_id)
        now = utcnow()

        # Re-validate the holds: the sweeper may have released them since
        held = (
            db.query(SeatStatus)
            .options(joinedload(SeatStatus.seat))
            .filter(
                SeatStatus.showtime_id == showtime.id,
                SeatStatus.seat_id.in_(seat_ids),
                SeatStatus.status == SeatState.reserved,
                SeatStatus.reserved_by == user_id,
                SeatStatus.reservation_expires > now,
            )
            .all()
        )
        if len(held) != len(seat_ids):
            logger.info(
                "Booking rejected for user %s: %d of %d seats held on showtime %s",
                user_id, len(held), len(seat_ids), showtime.id,
            )
            raise BookingValidationError("Some seats are not reserved by you or have expired")

        by_seat = {row.seat_id: row for row in held}
        ordered = [by_seat[sid] for sid in seat_ids]

        booking = Booking(
            user_id=user_id,
            showtime_id=showtime.id,
            booking_number=_generate_booking_number(db),
            transaction_id=_generate_transaction_id(),
            total_amount=compute_total((row.price for row in ordered), data.combos),
            voucher_id=data.voucher_id,
            payment_method=data.payment_method,
            payment_status=PaymentStatus.pending,
            booking_status=BookingStatus.pending,
        )
        booking.seats = [
            BookingSeat(
                seat_id=row.seat_id,
                position=i,
                row_label=row.seat.row_label,
                seat_number=row.seat.seat_number,
                seat_type=row.seat.seat_type.value,
                price=row.price,
            )
            for i, row in enumerate(ordered)
        ]
        booking.combos = [
            BookingCombo(
                item_id=combo.item_id,
                position=i,
                unit_price=combo.unit_price,
                quantity=combo.quantity,
            )
            for i, combo in enumerate(data.combos)
        ]

        try:
            db.add(booking)
            db.flush()  # get booking.id

            modified = seat_status.book_held_seats(db, showtime.id, seat_ids, user_id, booking.id)
            if modified != len(seat_ids):
                db.rollback()
                logger.error(
                    "Seat transition mismatch on showtime %s for user %s: expected %d, modified %d (seats %s)",
                    showtime.id, user_id, len(seat_ids), modified, seat_ids,
                )
                raise StateConflictError(
                    "Failed to update seat statuses", expected=len(seat_ids), modified=modified
                )
            db.commit()
        except StateConflictError:
            raise
        except Exception:
            db.rollback()
            raise

        booking = load_booking(db, booking.id)
        notify(self.notifier, SeatChangeEvent(
            type="seats-booked",
            showtime_id=booking.showtime_id,
            seat_ids=seat_ids,
            user_id=user_id,
            booking_id=booking.id,
        ))
        return booking

    # -----------------------------------------------------------------------
    # Payment callback and cancellation
    # -----------------------------------------------------------------------

    def _load_owned(self, db: Session, booking_id: UUID, user_id: UUID, action: str) -> Booking:
        booking = load_booking(db, booking_id)
        if booking.user_id != user_id:
            raise AuthorizationError(f"Not authorized to {action} this booking")
        return booking

    def _transition(self, db: Session, booking: Booking, from_status: BookingStatus, **values) -> None:
        """Move booking out of from_status; fails if another writer moved it first."""
        stmt = (
            update(Booking)
            .where(Booking.id == booking.id, Booking.booking_status == from_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        modified = db.execute(stmt).rowcount
        if modified != 1:
            db.rollback()
            logger.error(
                "Booking %s left %s concurrently; transition to %s aborted",
                booking.id, from_status.value, values.get("booking_status"),
            )
            raise StateConflictError(
                "Booking status changed concurrently", expected=1, modified=modified
            )

    def _release(self, db: Session, booking: Booking, user_id: UUID, reason: str, always_notify: bool) -> List[UUID]:
        released = seat_status.release_booking_seats(db, booking.id)
        db.commit()
        if released or always_notify:
            notify(self.notifier, SeatChangeEvent(
                type="seats-released",
                showtime_id=booking.showtime_id,
                seat_ids=[s.seat_id for s in booking.seats],
                user_id=user_id,
                booking_id=booking.id,
                reason=reason,
            ))
        return released

    def update_payment_status(
        self,
        db: Session,
        booking_id: UUID,
        user_id: UUID,
        payment_status: str,
        transaction_id: Optional[str] = None,
    ) -> Booking:
        booking = self._load_owned(db, booking_id, user_id, "update")
        new_status = PaymentStatus(payment_status)
        current = BookingStatus(booking.booking_status)
        extra = {"transaction_id": transaction_id} if transaction_id else {}

        try:
            if current == BookingStatus.completed:
                raise BookingValidationError("Cannot update payment of a completed booking")

            if new_status == PaymentStatus.completed:
                if current == BookingStatus.cancelled:
                    raise BookingValidationError("Booking is cancelled")
                if current == BookingStatus.pending:
                    self._transition(
                        db, booking, BookingStatus.pending,
                        payment_status=PaymentStatus.completed,
                        booking_status=BookingStatus.confirmed,
                        **extra,
                    )
                elif extra:
                    booking.transaction_id = transaction_id
                db.commit()

            else:
                if current == BookingStatus.confirmed:
                    raise BookingValidationError("Cannot fail payment of a confirmed booking; cancel it instead")
                if current == BookingStatus.pending:
                    self._transition(
                        db, booking, BookingStatus.pending,
                        payment_status=PaymentStatus.failed,
                        booking_status=BookingStatus.cancelled,
                        cancelled_at=utcnow(),
                        **extra,
                    )
                # Repeated failure callbacks land here too: releasing
                # already-available seats is a no-op.
                self._release(
                    db, booking, user_id, "payment-failed",
                    always_notify=current == BookingStatus.pending,
                )
        except (BookingValidationError, StateConflictError):
            raise
        except IntegrityError:
            # transaction_id is unique across bookings
            db.rollback()
            logger.info("Booking %s: transaction id %s already in use", booking_id, transaction_id)
            raise BookingValidationError("Transaction id is already used by another booking")
        except Exception:
            db.rollback()
            raise

        return load_booking(db, booking.id)

    def cancel_booking(self, db: Session, booking_id: UUID, user_id: UUID) -> Booking:
        booking = self._load_owned(db, booking_id, user_id, "cancel")
        current = BookingStatus(booking.booking_status)
        if current == BookingStatus.cancelled:
            raise BookingValidationError("Booking is already cancelled")
        if current == BookingStatus.completed:
            raise BookingValidationError("Cannot cancel completed booking")

        try:
            self._transition(
                db, booking, current,
                booking_status=BookingStatus.cancelled,
                cancelled_at=utcnow(),
            )
            self._release(db, booking, user_id, "booking-cancelled", always_notify=True)
        except StateConflictError:
            raise
        except Exception:
            db.rollback()
            raise

        return load_booking(db, booking.id)
