import enum
import uuid
from sqlalchemy import Column, String, DateTime, func, DECIMAL, Integer, ForeignKey, Enum, Uuid
from sqlalchemy.orm import relationship
from ticketbox.db.session import Base

class PaymentStatus(str, enum.Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"

class BookingStatus(str, enum.Enum):
    pending = "pending"
    confirmed = "confirmed"
    cancelled = "cancelled"
    completed = "completed"

class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    showtime_id = Column(Uuid(as_uuid=True), ForeignKey("showtimes.id"), nullable=False, index=True)
    booking_number = Column(String(20), unique=True, nullable=False, index=True)
    transaction_id = Column(String(64), unique=True, nullable=False)
    total_amount = Column(DECIMAL(10, 2), nullable=False) # fixed at creation
    voucher_id = Column(Uuid(as_uuid=True), nullable=True) # owned by the voucher service
    payment_method = Column(String(30), nullable=False)
    payment_status = Column(Enum(PaymentStatus, name="payment_status"), nullable=False, default=PaymentStatus.pending, index=True)
    booking_status = Column(Enum(BookingStatus, name="booking_status"), nullable=False, default=BookingStatus.pending, index=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    # Relationships
    user = relationship("User")
    showtime = relationship("Showtime", back_populates="bookings")
    seats = relationship(
        "BookingSeat", back_populates="booking", cascade="all, delete-orphan",
        order_by="BookingSeat.position",
    )
    combos = relationship(
        "BookingCombo", back_populates="booking", cascade="all, delete-orphan",
        order_by="BookingCombo.position",
    )

class BookingSeat(Base):
    """Denormalized seat snapshot taken when the booking is created."""
    __tablename__ = "booking_seats"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    booking_id = Column(Uuid(as_uuid=True), ForeignKey("bookings.id"), nullable=False, index=True)
    seat_id = Column(Uuid(as_uuid=True), ForeignKey("seats.id"), nullable=False)
    position = Column(Integer, nullable=False)
    row_label = Column(String(5), nullable=False)
    seat_number = Column(Integer, nullable=False)
    seat_type = Column(String(20), nullable=False)
    price = Column(DECIMAL(10, 2), nullable=False)

    booking = relationship("Booking", back_populates="seats")

class BookingCombo(Base):
    __tablename__ = "booking_combos"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    booking_id = Column(Uuid(as_uuid=True), ForeignKey("bookings.id"), nullable=False, index=True)
    item_id = Column(Uuid(as_uuid=True), nullable=False) # concession catalog item
    position = Column(Integer, nullable=False)
    unit_price = Column(DECIMAL(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False)

    booking = relationship("Booking", back_populates="combos")
