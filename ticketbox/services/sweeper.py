import logging
from collections import defaultdict
from datetime import datetime
from typing import Callable, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from ticketbox.db.session import SessionLocal
from ticketbox.schemas.events import SeatChangeEvent
from ticketbox.services import seat_status
from ticketbox.services.notifier import EventNotifier, notify
from ticketbox.utils.clock import utcnow

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """
    Releases holds whose reservation_expires has passed.

    Uses the same conditional-update discipline as every other seat writer,
    so it can run beside live reservations. Sweeping twice is harmless.
    """

    def __init__(self, notifier: EventNotifier, session_factory: Callable[[], Session] = SessionLocal):
        self.notifier = notifier
        self.session_factory = session_factory

    def sweep(self, db: Session, now: Optional[datetime] = None) -> Dict[UUID, List[UUID]]:
        """Release expired holds; one seats-released event per affected showtime."""
        released = seat_status.release_expired(db, now or utcnow())
        db.commit()

        by_showtime: Dict[UUID, List[UUID]] = defaultdict(list)
        for showtime_id, seat_id in released:
            by_showtime[showtime_id].append(seat_id)

        for showtime_id, seat_ids in by_showtime.items():
            notify(self.notifier, SeatChangeEvent(
                type="seats-released",
                showtime_id=showtime_id,
                seat_ids=seat_ids,
                reason="reservation-expired",
            ))
        return dict(by_showtime)

    def run_once(self) -> int:
        """One scheduled pass. Errors are logged and swallowed; the next interval retries."""
        try:
            db = self.session_factory()
            try:
                released = self.sweep(db)
            finally:
                db.close()
        except Exception:
            logger.exception("Error during expired-hold sweep.")
            return 0

        count = sum(len(seats) for seats in released.values())
        if count:
            logger.info(
                "Released %d expired hold(s) across %d showtime(s).", count, len(released)
            )
        return count
