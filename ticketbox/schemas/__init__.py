from ticketbox.schemas.common import PaginatedResponse, ErrorResponse, SeatsUnavailableError
from ticketbox.schemas.seat_status import (
    SeatMapResponse, SeatMapRow, SeatMapSeat,
    ReserveRequest, ReservationResponse, HeldSeat,
    ReleaseRequest, SeatReleaseResponse, SeatStatusInitResponse,
)
from ticketbox.schemas.booking import (
    Booking, BookingCreate, BookingCancelResponse, BookingSeatResponse,
    BookingComboResponse, ComboSelection, PaymentStatusUpdate, ReconcileResponse,
)
from ticketbox.schemas.events import SeatChangeEvent
