"""
Seat Status Store access.

Every write to ``seat_statuses`` goes through one of the conditional updates
below. Each is a single ``UPDATE ... WHERE <expected prior state>`` so the
database decides which of two racing writers wins; callers inspect the
affected row count instead of re-reading state.
"""
import uuid
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import and_, or_, update
from sqlalchemy.orm import Session

from ticketbox.core.config import settings
from ticketbox.models.seat import Seat, SeatState, SeatStatus, SeatType
from ticketbox.models.showtime import Showtime
from ticketbox.utils.clock import as_utc

CENT = Decimal("0.01")

# Column values for a seat with no hold and no booking
_AVAILABLE = {
    "status": SeatState.available,
    "reserved_by": None,
    "reserved_at": None,
    "reservation_expires": None,
    "booking_id": None,
}


# ---------------------------------------------------------------------------
# Pricing and reading
# ---------------------------------------------------------------------------


def price_for_seat(showtime: Showtime, seat_type) -> Decimal:
    """Showtime price for a seat type; vip/couple fall back to a base multiple."""
    base = Decimal(showtime.base_price)
    if seat_type == SeatType.vip:
        price = showtime.vip_price or base * Decimal(str(settings.VIP_PRICE_MULTIPLIER))
    elif seat_type == SeatType.couple:
        price = showtime.couple_price or base * Decimal(str(settings.COUPLE_PRICE_MULTIPLIER))
    else:
        price = base
    return Decimal(price).quantize(CENT, rounding=ROUND_HALF_UP)


def effective_state(row: Optional[SeatStatus], now: datetime) -> SeatState:
    """
    State a reader must act on. A reserved row past its expiry is available
    even if the sweeper has not reached it yet.
    """
    if row is None:
        return SeatState.available
    if row.status == SeatState.reserved:
        expires = as_utc(row.reservation_expires)
        if expires is None or expires <= now:
            return SeatState.available
    return SeatState(row.status)


def hall_seats(db: Session, showtime: Showtime, seat_ids: Optional[Iterable[UUID]] = None) -> List[Seat]:
    query = db.query(Seat).filter(Seat.hall_id == showtime.hall_id, Seat.is_active == True)  # noqa: E712
    if seat_ids is not None:
        query = query.filter(Seat.id.in_(list(seat_ids)))
    return query.order_by(Seat.row_label, Seat.seat_number).all()


# ---------------------------------------------------------------------------
# Row creation
# ---------------------------------------------------------------------------


def _insert_ignoring_duplicates(db: Session, rows: List[dict]) -> int:
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise RuntimeError(f"Unsupported database dialect for seat statuses: {dialect}")

    stmt = (
        insert(SeatStatus)
        .values(rows)
        .on_conflict_do_nothing(index_elements=["showtime_id", "seat_id"])
    )
    return db.execute(stmt).rowcount


def ensure_seat_statuses(db: Session, showtime: Showtime, seats: Sequence[Seat]) -> int:
    """Create missing available rows for the given seats; concurrent callers are safe."""
    if not seats:
        return 0
    rows = [
        {
            "id": uuid.uuid4(),
            "showtime_id": showtime.id,
            "seat_id": seat.id,
            "status": SeatState.available,
            "price": price_for_seat(showtime, seat.seat_type),
        }
        for seat in seats
    ]
    return _insert_ignoring_duplicates(db, rows)


# ---------------------------------------------------------------------------
# Conditional transitions
# ---------------------------------------------------------------------------


def claim_seat(
    db: Session,
    showtime_id: UUID,
    seat_id: UUID,
    user_id: UUID,
    price: Decimal,
    now: datetime,
    expires_at: datetime,
) -> bool:
    """
    available (or expired hold, or the caller's own hold) -> reserved by user.

    Returns False when another writer owns the seat.
    """
    stmt = (
        update(SeatStatus)
        .where(
            SeatStatus.showtime_id == showtime_id,
            SeatStatus.seat_id == seat_id,
            or_(
                SeatStatus.status == SeatState.available,
                and_(
                    SeatStatus.status == SeatState.reserved,
                    or_(
                        SeatStatus.reservation_expires <= now,
                        SeatStatus.reserved_by == user_id,
                    ),
                ),
            ),
        )
        .values(
            status=SeatState.reserved,
            price=price,
            reserved_by=user_id,
            reserved_at=now,
            reservation_expires=expires_at,
            booking_id=None,
        )
        .execution_options(synchronize_session=False)
    )
    return db.execute(stmt).rowcount == 1


def release_holds(
    db: Session,
    showtime_id: UUID,
    user_id: UUID,
    seat_ids: Optional[Sequence[UUID]] = None,
) -> List[UUID]:
    """reserved by user -> available. Returns the released seat ids."""
    stmt = update(SeatStatus).where(
        SeatStatus.showtime_id == showtime_id,
        SeatStatus.status == SeatState.reserved,
        SeatStatus.reserved_by == user_id,
    )
    if seat_ids:
        stmt = stmt.where(SeatStatus.seat_id.in_(list(seat_ids)))
    stmt = (
        stmt.values(**_AVAILABLE)
        .returning(SeatStatus.seat_id)
        .execution_options(synchronize_session=False)
    )
    return [row.seat_id for row in db.execute(stmt)]


def book_held_seats(
    db: Session,
    showtime_id: UUID,
    seat_ids: Sequence[UUID],
    user_id: UUID,
    booking_id: UUID,
) -> int:
    """reserved by user -> booked for booking_id. Returns the modified count."""
    stmt = (
        update(SeatStatus)
        .where(
            SeatStatus.showtime_id == showtime_id,
            SeatStatus.seat_id.in_(list(seat_ids)),
            SeatStatus.status == SeatState.reserved,
            SeatStatus.reserved_by == user_id,
        )
        .values(
            status=SeatState.booked,
            booking_id=booking_id,
            reserved_by=None,
            reserved_at=None,
            reservation_expires=None,
        )
        .execution_options(synchronize_session=False)
    )
    return db.execute(stmt).rowcount


def release_booking_seats(db: Session, booking_id: UUID) -> List[UUID]:
    """Every row still pointing at booking_id -> available. Idempotent."""
    stmt = (
        update(SeatStatus)
        .where(SeatStatus.booking_id == booking_id)
        .values(**_AVAILABLE)
        .returning(SeatStatus.seat_id)
        .execution_options(synchronize_session=False)
    )
    return [row.seat_id for row in db.execute(stmt)]


def release_expired(db: Session, now: datetime) -> List[Tuple[UUID, UUID]]:
    """
    Expired reserved rows -> available in one statement.

    The expiry predicate is evaluated at write time, so a hold renewed after
    the caller computed ``now`` is left alone.
    Returns (showtime_id, seat_id) pairs that were released.
    """
    stmt = (
        update(SeatStatus)
        .where(
            SeatStatus.status == SeatState.reserved,
            SeatStatus.reservation_expires < now,
        )
        .values(**_AVAILABLE)
        .returning(SeatStatus.showtime_id, SeatStatus.seat_id)
        .execution_options(synchronize_session=False)
    )
    return [(row.showtime_id, row.seat_id) for row in db.execute(stmt)]
