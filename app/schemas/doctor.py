from pydantic import EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime

from .auth import check_password_strength
from .base import CamelModel
from ..core.security import UserRole
from ..models.doctor import ConsultationMode

class DoctorRegister(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)

    specialization: str = Field(..., min_length=1, max_length=100)
    experience: Optional[int] = Field(None, ge=0)
    consultation_fee: float = Field(..., ge=0)
    mode: ConsultationMode = ConsultationMode.BOTH
    bio: Optional[str] = None
    qualifications: Optional[str] = Field(None, max_length=255)

    @field_validator("password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        return check_password_strength(v)

class DoctorUserSummary(CamelModel):
    first_name: str
    last_name: Optional[str] = None
    email: EmailStr
    phone: Optional[str] = None
    role: UserRole

class DoctorResponse(CamelModel):
    id: int
    user_id: int
    specialization: str
    experience: Optional[int] = None
    consultation_fee: float
    mode: str
    bio: Optional[str] = None
    qualifications: Optional[str] = None
    rating: Optional[float] = None
    total_reviews: Optional[int] = None
    is_approved: bool
    is_active: bool
    created_at: Optional[datetime] = None
    user: Optional[DoctorUserSummary] = None

class DoctorRegisterResponse(CamelModel):
    success: bool = True
    message: str
    access_token: str
    doctor: DoctorResponse

class SlotCreate(CamelModel):
    start_time: datetime
    end_time: datetime

class SlotResponse(CamelModel):
    id: int
    doctor_id: int
    start_time: datetime
    end_time: datetime
    is_booked: bool
