from typing import Iterable, List, Optional


class TicketboxError(Exception):
    """Base class for domain errors; each carries the HTTP status it maps to."""

    status_code = 400
    error = "error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotFoundError(TicketboxError):
    status_code = 404
    error = "not_found"


class BookingValidationError(TicketboxError):
    """The caller asked for something the current seat/booking state forbids."""

    status_code = 400
    error = "validation_error"


class SeatsUnavailableError(TicketboxError):
    status_code = 409
    error = "seats_unavailable"

    def __init__(self, seat_ids: Iterable, message: Optional[str] = None) -> None:
        self.unavailable_seat_ids: List[str] = [str(s) for s in seat_ids]
        super().__init__(
            message
            or "Seats unavailable: " + ", ".join(self.unavailable_seat_ids)
        )


class AuthorizationError(TicketboxError):
    status_code = 403
    error = "forbidden"


class StateConflictError(TicketboxError):
    """
    A conditional update touched fewer rows than expected.

    Raised when two writers collided on the same seat or booking rows. Kept apart from
    validation errors so operators can tell a race from a bad request.
    """

    status_code = 500
    error = "state_conflict"

    def __init__(self, message: str, expected: int, modified: int) -> None:
        self.expected = expected
        self.modified = modified
        super().__init__(message)
