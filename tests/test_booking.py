import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
from pydantic import ValidationError
from sqlalchemy import update

from ticketbox.core.exceptions import (
    AuthorizationError,
    BookingValidationError,
    NotFoundError,
    StateConflictError,
)
from ticketbox.models.booking import Booking, BookingStatus, PaymentStatus
from ticketbox.models.seat import SeatState, SeatStatus
from ticketbox.schemas.booking import BookingCreate, ComboSelection
from ticketbox.services import seat_status
from ticketbox.services.booking import BookingFinalizer, compute_total
from ticketbox.services.reservation import ReservationManager
from ticketbox.utils.clock import utcnow

POPCORN = uuid.uuid4()
SODA = uuid.uuid4()


@pytest.fixture
def finalizer(notifier):
    return BookingFinalizer(notifier)


@pytest.fixture
def held(db, notifier, showtime, seats, alice):
    """Alice holds A1 (standard, 10.00) and B1 (vip, 12.00)."""
    ReservationManager(notifier).reserve(db, showtime.id, [seats["A1"].id, seats["B1"].id], alice.id)
    notifier.events.clear()
    return [seats["A1"].id, seats["B1"].id]


def _request(showtime, seat_ids, combos=()):
    return BookingCreate(
        showtime_id=showtime.id,
        seat_ids=seat_ids,
        combos=list(combos),
        payment_method="card",
    )


@pytest.fixture
def booking(db, finalizer, notifier, showtime, held, alice):
    created = finalizer.create_booking(db, alice.id, _request(showtime, held))
    notifier.events.clear()
    return created


# -----------------------------------------------------------------------------
# Create
# -----------------------------------------------------------------------------


def test_total_is_seats_plus_combos(db, finalizer, notifier, showtime, held, alice, seat_row, seats):
    combos = [
        ComboSelection(item_id=POPCORN, unit_price=Decimal("5"), quantity=2),
        ComboSelection(item_id=SODA, unit_price=Decimal("3"), quantity=1),
    ]
    booking = finalizer.create_booking(db, alice.id, _request(showtime, held, combos))

    assert booking.total_amount == Decimal("35.00")
    assert booking.payment_status == PaymentStatus.pending
    assert booking.booking_status == BookingStatus.pending
    assert booking.booking_number.startswith("TBX-")
    assert booking.transaction_id
    assert [s.seat_id for s in booking.seats] == held
    assert [s.price for s in booking.seats] == [Decimal("10.00"), Decimal("12.00")]
    assert [(c.item_id, c.quantity) for c in booking.combos] == [(POPCORN, 2), (SODA, 1)]

    for label in ("A1", "B1"):
        row = seat_row(showtime, seats[label])
        assert row.status == SeatState.booked
        assert row.booking_id == booking.id
        assert row.reserved_by is None
        assert row.reservation_expires is None

    [event] = notifier.events
    assert event["type"] == "seats-booked"
    assert event["booking_id"] == str(booking.id)


def test_compute_total_is_exact_to_the_cent():
    combos = [ComboSelection(item_id=POPCORN, unit_price=Decimal("2.50"), quantity=3)]
    assert compute_total([Decimal("9.99"), Decimal("0.10")], combos) == Decimal("17.59")


def test_expired_hold_cannot_be_booked(db, finalizer, showtime, held, alice):
    db.execute(
        update(SeatStatus)
        .where(SeatStatus.seat_id == held[0])
        .values(reservation_expires=utcnow() - timedelta(seconds=1))
    )
    db.commit()

    with pytest.raises(BookingValidationError):
        finalizer.create_booking(db, alice.id, _request(showtime, held))
    assert db.query(Booking).count() == 0


def test_cannot_book_someone_elses_hold(db, finalizer, showtime, held, bob):
    with pytest.raises(BookingValidationError):
        finalizer.create_booking(db, bob.id, _request(showtime, held))


def test_cannot_book_unheld_seat(db, finalizer, showtime, held, seats, alice):
    with pytest.raises(BookingValidationError):
        finalizer.create_booking(db, alice.id, _request(showtime, held + [seats["A2"].id]))


def test_transition_mismatch_rolls_back_booking(db, finalizer, notifier, showtime, held, alice, seat_row, seats, monkeypatch):
    # Another writer takes one seat between validation and the booked transition
    real = seat_status.book_held_seats

    def lose_one(db, showtime_id, seat_ids, user_id, booking_id):
        return real(db, showtime_id, seat_ids[:1], user_id, booking_id)

    monkeypatch.setattr(seat_status, "book_held_seats", lose_one)

    with pytest.raises(StateConflictError) as exc:
        finalizer.create_booking(db, alice.id, _request(showtime, held))
    assert exc.value.expected == 2
    assert exc.value.modified == 1

    assert db.query(Booking).count() == 0
    for label in ("A1", "B1"):
        row = seat_row(showtime, seats[label])
        assert row.status == SeatState.reserved
        assert row.reserved_by == alice.id
    assert notifier.events == []


# -----------------------------------------------------------------------------
# Payment callback
# -----------------------------------------------------------------------------


def test_payment_completed_confirms(db, finalizer, booking, alice, seat_row, showtime, seats):
    updated = finalizer.update_payment_status(db, booking.id, alice.id, "completed", "gw_123")

    assert updated.payment_status == PaymentStatus.completed
    assert updated.booking_status == BookingStatus.confirmed
    assert updated.transaction_id == "gw_123"
    assert seat_row(showtime, seats["A1"]).status == SeatState.booked


def test_payment_completed_twice_is_noop(db, finalizer, booking, alice):
    finalizer.update_payment_status(db, booking.id, alice.id, "completed")
    again = finalizer.update_payment_status(db, booking.id, alice.id, "completed")
    assert again.booking_status == BookingStatus.confirmed


def test_payment_failed_cancels_and_releases(db, finalizer, notifier, booking, alice, seat_row, showtime, seats):
    updated = finalizer.update_payment_status(db, booking.id, alice.id, "failed")

    assert updated.payment_status == PaymentStatus.failed
    assert updated.booking_status == BookingStatus.cancelled
    assert updated.cancelled_at is not None
    for label in ("A1", "B1"):
        row = seat_row(showtime, seats[label])
        assert row.status == SeatState.available
        assert row.booking_id is None

    [event] = notifier.events
    assert event["type"] == "seats-released"
    assert event["reason"] == "payment-failed"


def test_repeated_failure_callback_is_noop(db, finalizer, notifier, booking, alice):
    finalizer.update_payment_status(db, booking.id, alice.id, "failed")
    notifier.events.clear()

    again = finalizer.update_payment_status(db, booking.id, alice.id, "failed")
    assert again.booking_status == BookingStatus.cancelled
    assert notifier.events == []


def test_repeated_failure_does_not_touch_reused_seats(db, finalizer, notifier, booking, alice, bob, seat_row, showtime, seats):
    finalizer.update_payment_status(db, booking.id, alice.id, "failed")
    ReservationManager(notifier).reserve(db, showtime.id, [seats["A1"].id], bob.id)

    finalizer.update_payment_status(db, booking.id, alice.id, "failed")
    assert seat_row(showtime, seats["A1"]).reserved_by == bob.id


@pytest.mark.parametrize(
    "first, second",
    [
        ("completed", "failed"),
        ("failed", "completed"),
    ],
)
def test_forbidden_payment_transitions(db, finalizer, booking, alice, first, second):
    finalizer.update_payment_status(db, booking.id, alice.id, first)
    with pytest.raises(BookingValidationError):
        finalizer.update_payment_status(db, booking.id, alice.id, second)


def test_completed_booking_rejects_payment_updates(db, finalizer, booking, alice):
    db.execute(
        update(Booking).where(Booking.id == booking.id).values(booking_status=BookingStatus.completed)
    )
    db.commit()
    with pytest.raises(BookingValidationError):
        finalizer.update_payment_status(db, booking.id, alice.id, "completed")


def test_payment_update_by_other_user(db, finalizer, booking, bob, seat_row, showtime, seats):
    with pytest.raises(AuthorizationError):
        finalizer.update_payment_status(db, booking.id, bob.id, "failed")
    assert seat_row(showtime, seats["A1"]).status == SeatState.booked


def test_payment_update_unknown_booking(db, finalizer, alice):
    with pytest.raises(NotFoundError):
        finalizer.update_payment_status(db, uuid.uuid4(), alice.id, "completed")


# -----------------------------------------------------------------------------
# Cancel
# -----------------------------------------------------------------------------


def test_cancel_releases_exactly_the_booking_seats(db, finalizer, notifier, booking, alice, bob, seat_row, showtime, seats):
    ReservationManager(notifier).reserve(db, showtime.id, [seats["A2"].id], bob.id)
    notifier.events.clear()

    cancelled = finalizer.cancel_booking(db, booking.id, alice.id)

    assert cancelled.booking_status == BookingStatus.cancelled
    assert cancelled.cancelled_at is not None
    assert seat_row(showtime, seats["A1"]).status == SeatState.available
    assert seat_row(showtime, seats["B1"]).status == SeatState.available
    assert seat_row(showtime, seats["A2"]).reserved_by == bob.id

    [event] = notifier.events
    assert event["reason"] == "booking-cancelled"
    assert set(event["seat_ids"]) == {str(seats["A1"].id), str(seats["B1"].id)}


def test_cancel_confirmed_booking(db, finalizer, booking, alice):
    finalizer.update_payment_status(db, booking.id, alice.id, "completed")
    cancelled = finalizer.cancel_booking(db, booking.id, alice.id)
    assert cancelled.booking_status == BookingStatus.cancelled


def test_cancel_twice_is_rejected(db, finalizer, booking, alice):
    finalizer.cancel_booking(db, booking.id, alice.id)
    with pytest.raises(BookingValidationError):
        finalizer.cancel_booking(db, booking.id, alice.id)


def test_cancel_completed_is_rejected(db, finalizer, booking, alice):
    db.execute(
        update(Booking).where(Booking.id == booking.id).values(booking_status=BookingStatus.completed)
    )
    db.commit()
    with pytest.raises(BookingValidationError):
        finalizer.cancel_booking(db, booking.id, alice.id)


def test_cancel_by_other_user(db, finalizer, booking, bob):
    with pytest.raises(AuthorizationError):
        finalizer.cancel_booking(db, booking.id, bob.id)


# -----------------------------------------------------------------------------
# Money and transaction ids
# -----------------------------------------------------------------------------


def test_combo_price_is_limited_to_cents():
    with pytest.raises(ValidationError):
        ComboSelection(item_id=POPCORN, unit_price=Decimal("0.333"), quantity=3)


def test_total_matches_stored_snapshot(db, finalizer, showtime, held, alice):
    combos = [ComboSelection(item_id=POPCORN, unit_price=Decimal("0.33"), quantity=3)]
    created = finalizer.create_booking(db, alice.id, _request(showtime, held, combos))

    db.expire_all()
    stored = db.get(Booking, created.id)
    snapshot = sum((s.price for s in stored.seats), Decimal("0")) + sum(
        (c.unit_price * c.quantity for c in stored.combos), Decimal("0")
    )
    assert stored.total_amount == snapshot == Decimal("22.99")


def test_transaction_id_in_use_is_rejected(db, finalizer, notifier, booking, showtime, seats, alice):
    ReservationManager(notifier).reserve(db, showtime.id, [seats["A2"].id], alice.id)
    other = finalizer.create_booking(db, alice.id, _request(showtime, [seats["A2"].id]))
    finalizer.update_payment_status(db, booking.id, alice.id, "completed", "gw_shared")

    with pytest.raises(BookingValidationError):
        finalizer.update_payment_status(db, other.id, alice.id, "completed", "gw_shared")

    db.expire_all()
    assert db.get(Booking, other.id).booking_status == BookingStatus.pending
