from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from ...core.database import get_db
from ...core.exceptions import ValidationError
from ...api.deps import get_admin_user, get_doctor_user
from ...models.doctor import ConsultationMode
from ...models.user import User
from ...schemas.doctor import (
    DoctorRegister, DoctorRegisterResponse, DoctorResponse, SlotCreate, SlotResponse
)
from ...services.doctor_service import DoctorService

router = APIRouter(prefix="/doctors", tags=["Doctors"])

@router.post("/register", response_model=DoctorRegisterResponse, status_code=status.HTTP_201_CREATED)
async def register_doctor(
    data: DoctorRegister,
    db: Session = Depends(get_db)
):
    """Register a doctor. The profile stays unapproved until an admin approves it."""
    doctor, token = DoctorService(db).register_doctor(data)
    return DoctorRegisterResponse(
        message="Doctor registered successfully. Awaiting admin approval.",
        access_token=token.access_token,
        doctor=DoctorResponse.model_validate(doctor)
    )

@router.get("/all", response_model=List[DoctorResponse])
async def list_all_doctors(db: Session = Depends(get_db)):
    return [DoctorResponse.model_validate(d) for d in DoctorService(db).list_doctors()]

@router.get("", response_model=List[DoctorResponse])
async def search_doctors(
    specialization: Optional[str] = None,
    mode: Optional[ConsultationMode] = None,
    db: Session = Depends(get_db)
):
    """Bookable doctors, filtered by specialization and consultation mode."""
    doctors = DoctorService(db).search_doctors(
        specialization=specialization,
        mode=mode.value if mode else None
    )
    return [DoctorResponse.model_validate(d) for d in doctors]

@router.get("/slots", response_model=List[SlotResponse])
async def list_doctor_slots(
    doctor_id: Optional[int] = Query(None, alias="doctorId"),
    db: Session = Depends(get_db)
):
    if doctor_id is None:
        raise ValidationError("doctorId is required")
    return [SlotResponse.model_validate(s) for s in DoctorService(db).list_slots(doctor_id)]

@router.post("/slots", response_model=SlotResponse, status_code=status.HTTP_201_CREATED)
async def create_slot(
    data: SlotCreate,
    current_user: User = Depends(get_doctor_user),
    db: Session = Depends(get_db)
):
    """Publish an availability slot for the current doctor."""
    return SlotResponse.model_validate(DoctorService(db).create_slot(current_user, data))

@router.patch("/{doctor_id}/approval", response_model=DoctorResponse)
async def update_doctor_approval(
    doctor_id: int,
    is_approved: bool,
    db: Session = Depends(get_db),
    _: User = Depends(get_admin_user)
):
    """Approve or revoke a doctor (admin only)."""
    return DoctorResponse.model_validate(DoctorService(db).set_approval(doctor_id, is_approved))
