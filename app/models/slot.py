from sqlalchemy import Column, Integer, ForeignKey, DateTime, Boolean
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base

class Slot(Base):
    """A bookable half-open interval [start_time, end_time) owned by one doctor."""

    __tablename__ = "slots"

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)

    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=False)

    # Set inside the booking transaction
    is_booked = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, server_default=func.now())

    # Relationships
    doctor = relationship("Doctor", back_populates="slots")
    appointments = relationship("Appointment", back_populates="slot")

    def __repr__(self):
        return f"<Slot(id={self.id}, doctor_id={self.doctor_id}, start='{self.start_time}')>"
