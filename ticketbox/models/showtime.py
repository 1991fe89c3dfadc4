import uuid
from sqlalchemy import Column, String, Boolean, DateTime, DECIMAL, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from ticketbox.db.session import Base

class Showtime(Base):
    __tablename__ = "showtimes"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    hall_id = Column(Uuid(as_uuid=True), ForeignKey("halls.id"), nullable=False, index=True)
    movie_title = Column(String(255), nullable=False)
    starts_at = Column(DateTime(timezone=True), nullable=False, index=True)
    # Standard seat price; vip/couple fall back to a multiple of it when unset
    base_price = Column(DECIMAL(10, 2), nullable=False)
    vip_price = Column(DECIMAL(10, 2), nullable=True)
    couple_price = Column(DECIMAL(10, 2), nullable=True)
    is_active = Column(Boolean, default=True)

    hall = relationship("Hall", back_populates="showtimes")
    seat_statuses = relationship("SeatStatus", back_populates="showtime")
    bookings = relationship("Booking", back_populates="showtime")
