from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Boolean, Text, Float
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from ..core.database import Base

class ConsultationMode(str, enum.Enum):
    ONLINE = "online"
    IN_PERSON = "in_person"
    BOTH = "both"

class Doctor(Base):
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)

    # Professional information
    specialization = Column(String(100), nullable=False, index=True)
    experience = Column(Integer, nullable=True)
    qualifications = Column(String(255), nullable=True)
    bio = Column(Text, nullable=True)
    consultation_fee = Column(Float, nullable=False, default=0)
    mode = Column(String(20), nullable=False, default=ConsultationMode.BOTH.value)

    rating = Column(Float, default=0)
    total_reviews = Column(Integer, default=0)

    # Slots are only bookable for approved, active doctors
    is_approved = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="doctor")
    slots = relationship("Slot", back_populates="doctor", order_by="Slot.start_time")
    appointments = relationship("Appointment", back_populates="doctor")

    def __repr__(self):
        return f"<Doctor(id={self.id}, user_id={self.user_id}, specialization='{self.specialization}')>"
