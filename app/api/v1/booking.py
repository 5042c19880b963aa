from fastapi import APIRouter, Depends, Header, status
from sqlalchemy.orm import Session
from typing import Optional

from ...core.database import get_db
from ...core.exceptions import ValidationError
from ...api.deps import get_booking_service, get_current_user, get_otp_manager
from ...models.user import User
from ...schemas.booking import (
    AppointmentCreateRequest, AppointmentCreatedResponse, AppointmentListResponse,
    AppointmentResponse, LockSlotRequest, MessageResponse, OtpVerifyRequest,
    OtpVerifyResponse
)
from ...services.auth_service import AuthService
from ...services.booking_service import BookingService, parse_slot_id
from ...services.otp_service import OtpChallengeManager

router = APIRouter(prefix="/auth", tags=["Booking"])

# Handlers are plain functions: Redis and SMTP calls block, so they run in the
# threadpool instead of on the event loop.

@router.post("/lock-slot", response_model=MessageResponse)
def lock_slot(
    body: LockSlotRequest,
    current_user: User = Depends(get_current_user),
    booking: BookingService = Depends(get_booking_service)
):
    """Hold a slot for the current user while they confirm the booking."""
    booking.request_lock(current_user, body.slot_id)
    return MessageResponse(message="Slot locked successfully")

@router.post("/otp/send", response_model=MessageResponse)
def send_otp(
    current_user: User = Depends(get_current_user),
    otp: OtpChallengeManager = Depends(get_otp_manager)
):
    """Email a one-time code to the current user's address."""
    otp.issue(current_user.email)
    return MessageResponse(message="OTP sent successfully")

@router.post("/otp/verify", response_model=OtpVerifyResponse)
def verify_otp(
    body: Optional[OtpVerifyRequest] = None,
    otp_code: Optional[str] = Header(None, alias="otp"),
    current_user: User = Depends(get_current_user),
    otp: OtpChallengeManager = Depends(get_otp_manager),
    db: Session = Depends(get_db)
):
    """Check the submitted code.

    When a slot id is supplied, the response carries a booking token that
    must accompany the appointment request for that slot.
    """
    if not otp_code:
        raise ValidationError("OTP is required")

    slot_id = None
    if body is not None and body.slot_id is not None:
        slot_id = parse_slot_id(body.slot_id)

    otp.verify(current_user.email, otp_code)
    AuthService(db).mark_verified(current_user.email)

    booking_token = None
    if slot_id is not None:
        booking_token = otp.grant_booking_pass(current_user.id, slot_id)

    return OtpVerifyResponse(message="OTP verified successfully!", booking_token=booking_token)

@router.post(
    "/appointments/create",
    response_model=AppointmentCreatedResponse,
    status_code=status.HTTP_201_CREATED
)
def create_appointment(
    body: AppointmentCreateRequest,
    current_user: User = Depends(get_current_user),
    booking: BookingService = Depends(get_booking_service)
):
    """Book the slot the current user holds the lock on."""
    appointment = booking.finalize_booking(
        current_user,
        slot_id=body.slot_id,
        mode=body.mode,
        consultation_fee=body.consultation_fee,
        symptoms=body.symptoms,
        otp_token=body.otp_token
    )
    return AppointmentCreatedResponse(appointment=AppointmentResponse.model_validate(appointment))

@router.get("/appointments", response_model=AppointmentListResponse)
def list_appointments(
    current_user: User = Depends(get_current_user),
    booking: BookingService = Depends(get_booking_service)
):
    """List the current user's appointments, newest first."""
    appointments = booking.list_appointments(current_user)
    return AppointmentListResponse(
        appointments=[AppointmentResponse.model_validate(a) for a in appointments]
    )
