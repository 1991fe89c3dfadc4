from datetime import timedelta

import pytest
from sqlalchemy import update

from ticketbox.models.booking import Booking, BookingStatus, PaymentStatus
from ticketbox.models.seat import SeatState, SeatStatus
from ticketbox.schemas.booking import BookingCreate
from ticketbox.services.booking import BookingFinalizer
from ticketbox.services.reconciliation import BookingReconciler
from ticketbox.services.reservation import ReservationManager
from ticketbox.utils.clock import utcnow


@pytest.fixture
def booking(db, notifier, showtime, seats, alice):
    seat_ids = [seats["A1"].id, seats["A2"].id]
    ReservationManager(notifier).reserve(db, showtime.id, seat_ids, alice.id)
    created = BookingFinalizer(notifier).create_booking(
        db, alice.id,
        BookingCreate(showtime_id=showtime.id, seat_ids=seat_ids, payment_method="card"),
    )
    notifier.events.clear()
    return created


def _later():
    return utcnow() + timedelta(minutes=10)


def _lose_seat(db, seat):
    db.execute(
        update(SeatStatus)
        .where(SeatStatus.seat_id == seat.id)
        .values(status=SeatState.available, booking_id=None)
    )
    db.commit()


def test_consistent_booking_is_left_alone(db, notifier, booking):
    assert BookingReconciler(notifier).reconcile(db, now=_later()) == []
    db.expire_all()
    assert db.get(Booking, booking.id).booking_status == BookingStatus.pending


def test_diverged_pending_booking_is_cancelled(db, notifier, booking, seats, showtime, seat_row):
    _lose_seat(db, seats["A2"])

    cancelled = BookingReconciler(notifier).reconcile(db, now=_later())

    assert cancelled == [booking.id]
    db.expire_all()
    stored = db.get(Booking, booking.id)
    assert stored.booking_status == BookingStatus.cancelled
    assert stored.payment_status == PaymentStatus.failed
    assert seat_row(showtime, seats["A1"]).status == SeatState.available

    [event] = notifier.events
    assert event["reason"] == "booking-reconciled"


def test_recent_booking_is_within_grace(db, notifier, booking, seats):
    _lose_seat(db, seats["A2"])
    assert BookingReconciler(notifier, grace_seconds=3600).reconcile(db, now=_later()) == []


def test_reconcile_is_idempotent(db, notifier, booking, seats):
    _lose_seat(db, seats["A2"])
    reconciler = BookingReconciler(notifier)

    assert reconciler.reconcile(db, now=_later()) == [booking.id]
    assert reconciler.reconcile(db, now=_later()) == []


def test_confirmed_booking_is_not_reconciled(db, notifier, booking, seats, alice):
    BookingFinalizer(notifier).update_payment_status(db, booking.id, alice.id, "completed")
    _lose_seat(db, seats["A2"])

    assert BookingReconciler(notifier).reconcile(db, now=_later()) == []
