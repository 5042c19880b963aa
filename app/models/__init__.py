from .user import User
from .doctor import Doctor, ConsultationMode
from .slot import Slot
from .appointment import Appointment, AppointmentMode, AppointmentStatus

__all__ = [
    "User",
    "Doctor",
    "ConsultationMode",
    "Slot",
    "Appointment",
    "AppointmentMode",
    "AppointmentStatus",
]
