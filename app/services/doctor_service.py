from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload
from fastapi import HTTPException, status
from datetime import datetime, timezone
from typing import List, Optional
import logging

from ..core.exceptions import DoctorNotFoundError, ValidationError
from ..core.security import AuthorizationError, get_password_hash, issue_token, Token, UserRole
from ..models.doctor import ConsultationMode, Doctor
from ..models.slot import Slot
from ..models.user import User
from ..schemas.doctor import DoctorRegister, SlotCreate

logger = logging.getLogger(__name__)

def to_naive_utc(dt: datetime) -> datetime:
    """Convert to naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    if dt.tzinfo is not None:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt

class DoctorService:
    def __init__(self, db: Session):
        self.db = db

    def register_doctor(self, data: DoctorRegister) -> tuple[Doctor, Token]:
        """Create the doctor's user account and profile in one transaction.

        New doctors start unapproved and cannot publish slots until an admin
        approves them.
        """
        if self.db.query(User).filter(User.email == data.email).first():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email already registered"
            )

        try:
            user = User(
                email=data.email,
                password_hash=get_password_hash(data.password),
                first_name=data.first_name,
                last_name=data.last_name,
                phone=data.phone,
                role=UserRole.DOCTOR,
                is_active=True,
                is_verified=False,
            )
            self.db.add(user)
            self.db.flush()

            doctor = Doctor(
                user_id=user.id,
                specialization=data.specialization,
                experience=data.experience,
                consultation_fee=data.consultation_fee,
                mode=data.mode.value,
                bio=data.bio,
                qualifications=data.qualifications,
                rating=0,
                total_reviews=0,
                is_approved=False,
                is_active=True,
            )
            self.db.add(doctor)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(doctor)
        logger.info(f"Doctor registered id={doctor.id} user_id={user.id} pending approval")
        return doctor, issue_token(user.id, user.email, user.role)

    def list_doctors(self) -> List[Doctor]:
        return self.db.query(Doctor).options(joinedload(Doctor.user)).order_by(
            Doctor.created_at.desc(), Doctor.id.desc()
        ).all()

    def search_doctors(
        self,
        specialization: Optional[str] = None,
        mode: Optional[str] = None
    ) -> List[Doctor]:
        """Approved, active doctors, optionally filtered by specialization and mode."""
        query = self.db.query(Doctor).options(joinedload(Doctor.user)).filter(
            Doctor.is_approved == True,
            Doctor.is_active == True
        )
        if specialization:
            query = query.filter(func.lower(Doctor.specialization) == specialization.lower())
        if mode:
            # Doctors offering both modes match either one
            query = query.filter(Doctor.mode.in_([mode, ConsultationMode.BOTH.value]))
        return query.order_by(Doctor.id).all()

    def get_doctor(self, doctor_id: int) -> Doctor:
        doctor = self.db.query(Doctor).filter(Doctor.id == doctor_id).first()
        if not doctor:
            raise DoctorNotFoundError()
        return doctor

    def set_approval(self, doctor_id: int, is_approved: bool) -> Doctor:
        doctor = self.get_doctor(doctor_id)
        doctor.is_approved = is_approved
        self.db.commit()
        self.db.refresh(doctor)
        logger.info(f"Doctor approval updated id={doctor_id} approved={is_approved}")
        return doctor

    def create_slot(self, user: User, data: SlotCreate) -> Slot:
        """Publish a slot on the calling doctor's calendar."""
        doctor = self.db.query(Doctor).filter(Doctor.user_id == user.id).first()
        if not doctor:
            raise DoctorNotFoundError()

        start_time = to_naive_utc(data.start_time)
        end_time = to_naive_utc(data.end_time)
        if start_time >= end_time:
            raise ValidationError("startTime must be before endTime")

        if not doctor.is_active or not doctor.is_approved:
            raise AuthorizationError("Doctor is not active or approved")

        slot = Slot(
            doctor_id=doctor.id,
            start_time=start_time,
            end_time=end_time,
            is_booked=False,
        )
        self.db.add(slot)
        self.db.commit()
        self.db.refresh(slot)

        logger.info(f"Slot created id={slot.id} doctor_id={doctor.id}")
        return slot

    def list_slots(self, doctor_id: int) -> List[Slot]:
        return self.db.query(Slot).filter(
            Slot.doctor_id == doctor_id
        ).order_by(Slot.start_time.asc()).all()
