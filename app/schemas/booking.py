from typing import Any, List, Optional
from datetime import datetime

from .base import CamelModel
from .doctor import DoctorResponse, SlotResponse

# Request fields are loosely typed: the booking service validates them in a
# fixed order and reports the first offending field.

class LockSlotRequest(CamelModel):
    slot_id: Optional[Any] = None

class OtpVerifyRequest(CamelModel):
    slot_id: Optional[Any] = None

class AppointmentCreateRequest(CamelModel):
    slot_id: Optional[Any] = None
    mode: Optional[Any] = None
    consultation_fee: Optional[Any] = None
    symptoms: Optional[str] = None
    otp_token: Optional[str] = None

class MessageResponse(CamelModel):
    success: bool = True
    message: str

class OtpVerifyResponse(MessageResponse):
    booking_token: Optional[str] = None

class AppointmentSlotResponse(SlotResponse):
    doctor: Optional[DoctorResponse] = None

class AppointmentResponse(CamelModel):
    id: int
    patient_id: int
    doctor_id: int
    slot_id: int
    mode: str
    consultation_fee: float
    status: str
    symptoms: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    slot: Optional[AppointmentSlotResponse] = None

class AppointmentCreatedResponse(CamelModel):
    success: bool = True
    appointment: AppointmentResponse

class AppointmentListResponse(CamelModel):
    success: bool = True
    appointments: List[AppointmentResponse]
