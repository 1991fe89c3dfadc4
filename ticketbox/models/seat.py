import enum
import uuid
from sqlalchemy import (
    Column, String, Boolean, Integer, DECIMAL, ForeignKey, DateTime, Enum, Uuid,
    UniqueConstraint, Index,
)
from sqlalchemy.orm import relationship
from ticketbox.db.session import Base

class SeatType(str, enum.Enum):
    standard = "standard"
    vip = "vip"
    couple = "couple"

class SeatState(str, enum.Enum):
    available = "available"
    reserved = "reserved"
    booked = "booked"

class Seat(Base):
    __tablename__ = "seats"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    hall_id = Column(Uuid(as_uuid=True), ForeignKey("halls.id"), nullable=False, index=True)
    row_label = Column(String(5), nullable=False)
    seat_number = Column(Integer, nullable=False)
    seat_type = Column(Enum(SeatType, name="seat_type"), nullable=False, default=SeatType.standard)
    is_active = Column(Boolean, default=True)

    hall = relationship("Hall", back_populates="seats")
    statuses = relationship("SeatStatus", back_populates="seat")

class SeatStatus(Base):
    """
    Per-(showtime, seat) state. Exactly one of these holds:
      - available: no hold fields, no booking
      - reserved:  reserved_by + reserved_at + reservation_expires set
      - booked:    booking_id set
    A reserved row whose reservation_expires has passed counts as available.
    """
    __tablename__ = "seat_statuses"
    __table_args__ = (
        UniqueConstraint("showtime_id", "seat_id", name="uq_seat_status_showtime_seat"),
        Index("ix_seat_status_state_expires", "status", "reservation_expires"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    showtime_id = Column(Uuid(as_uuid=True), ForeignKey("showtimes.id"), nullable=False, index=True)
    seat_id = Column(Uuid(as_uuid=True), ForeignKey("seats.id"), nullable=False, index=True)
    status = Column(Enum(SeatState, name="seat_state"), nullable=False, default=SeatState.available)
    price = Column(DECIMAL(10, 2), nullable=False) # snapshot at hold time
    reserved_by = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)
    reserved_at = Column(DateTime(timezone=True), nullable=True)
    reservation_expires = Column(DateTime(timezone=True), nullable=True)
    booking_id = Column(Uuid(as_uuid=True), ForeignKey("bookings.id"), nullable=True, index=True)

    showtime = relationship("Showtime", back_populates="seat_statuses")
    seat = relationship("Seat", back_populates="statuses")
