from ticketbox.db.session import Base
from ticketbox.models.user import User
from ticketbox.models.hall import Hall
from ticketbox.models.showtime import Showtime
from ticketbox.models.seat import Seat, SeatStatus
from ticketbox.models.booking import Booking, BookingSeat, BookingCombo
