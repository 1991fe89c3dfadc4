import uuid
from sqlalchemy import Column, String, Boolean, Uuid
from sqlalchemy.orm import relationship
from ticketbox.db.session import Base

class Hall(Base):
    __tablename__ = "halls"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    screen_type = Column(String(50), nullable=True) # 'imax', 'regular', etc.
    is_active = Column(Boolean, default=True)

    # Relationships
    seats = relationship("Seat", back_populates="hall", cascade="all, delete-orphan")
    showtimes = relationship("Showtime", back_populates="hall")
