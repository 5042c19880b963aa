from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Float, Text, Index, text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from ..core.database import Base

class AppointmentStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class AppointmentMode(str, enum.Enum):
    ONLINE = "online"
    IN_PERSON = "in_person"

class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        # At most one confirmed appointment per slot
        Index(
            "uq_appointments_confirmed_slot",
            "slot_id",
            unique=True,
            postgresql_where=text("status = 'confirmed'"),
            sqlite_where=text("status = 'confirmed'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)

    # Relationships
    patient_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False)
    slot_id = Column(Integer, ForeignKey("slots.id"), nullable=False)

    # Appointment details
    mode = Column(String(20), nullable=False)
    consultation_fee = Column(Float, nullable=False)
    status = Column(String(20), nullable=False, default=AppointmentStatus.PENDING.value)
    symptoms = Column(Text, nullable=True)
    confirmed_at = Column(DateTime, nullable=True)

    # Tracking
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    patient = relationship("User", back_populates="appointments")
    doctor = relationship("Doctor", back_populates="appointments")
    slot = relationship("Slot", back_populates="appointments")

    def __repr__(self):
        return f"<Appointment(id={self.id}, patient_id={self.patient_id}, slot_id={self.slot_id}, status='{self.status}')>"
