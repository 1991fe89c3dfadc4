"""
Test configuration and fixtures.

The environment must be set before any ticketbox module is imported: the
engine and settings are built at import time.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["BACKGROUND_JOBS_ENABLED"] = "false"

from datetime import timedelta  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from ticketbox.core.security import create_access_token  # noqa: E402
from ticketbox.db.base import Base  # noqa: E402
from ticketbox.db.session import SessionLocal, engine  # noqa: E402
from ticketbox.models.hall import Hall  # noqa: E402
from ticketbox.models.seat import Seat, SeatStatus, SeatType  # noqa: E402
from ticketbox.models.showtime import Showtime  # noqa: E402
from ticketbox.models.user import User  # noqa: E402
from ticketbox.utils.clock import utcnow  # noqa: E402


class RecordingNotifier:
    """Collects published payloads in order."""

    def __init__(self):
        self.events = []

    def publish(self, showtime_id, payload):
        self.events.append(payload)

    def of_type(self, event_type):
        return [e for e in self.events if e["type"] == event_type]


# =============================================================================
# Database
# =============================================================================


@pytest.fixture(autouse=True)
def schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def notifier():
    return RecordingNotifier()


# =============================================================================
# Users, hall, showtime
# =============================================================================


def _make_user(db, email, role="user"):
    user = User(email=email, full_name=email.split("@")[0], role=role)
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def alice(db):
    return _make_user(db, "alice@example.com")


@pytest.fixture
def bob(db):
    return _make_user(db, "bob@example.com")


@pytest.fixture
def admin(db):
    return _make_user(db, "admin@example.com", role="admin")


@pytest.fixture
def hall(db):
    hall = Hall(name="Hall 1", screen_type="regular")
    layout = [
        ("A", 1, SeatType.standard),
        ("A", 2, SeatType.standard),
        ("A", 3, SeatType.standard),
        ("A", 4, SeatType.standard),
        ("B", 1, SeatType.vip),
        ("B", 2, SeatType.vip),
        ("C", 1, SeatType.couple),
    ]
    hall.seats = [Seat(row_label=r, seat_number=n, seat_type=t) for r, n, t in layout]
    db.add(hall)
    db.commit()
    return hall


@pytest.fixture
def seats(hall):
    """Seats keyed by label, e.g. seats["A1"]."""
    return {f"{s.row_label}{s.seat_number}": s for s in hall.seats}


@pytest.fixture
def showtime(db, hall):
    showtime = Showtime(
        hall_id=hall.id,
        movie_title="The Long Take",
        starts_at=utcnow() + timedelta(days=1),
        base_price=Decimal("10.00"),
        vip_price=Decimal("12.00"),
    )
    db.add(showtime)
    db.commit()
    return showtime


@pytest.fixture
def seat_row(db):
    """Fresh read of a seat's status row."""

    def _read(showtime, seat):
        db.expire_all()
        return (
            db.query(SeatStatus)
            .filter(SeatStatus.showtime_id == showtime.id, SeatStatus.seat_id == seat.id)
            .first()
        )

    return _read


# =============================================================================
# HTTP
# =============================================================================


@pytest.fixture
def client():
    from ticketbox.main import app

    return TestClient(app)


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}

    return _headers
