from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from datetime import datetime
from typing import Any, List, Optional
import logging
import math

from ..core.exceptions import (
    DoctorUnavailableError, InfrastructureError, LockHeldByOtherError, LockNotHeldError,
    OtpRequiredError, SlotAlreadyBookedError, SlotNotFoundError, ValidationError
)
from ..core.security import AuthorizationError, UserRole
from ..models.appointment import Appointment, AppointmentMode, AppointmentStatus
from ..models.slot import Slot
from ..models.user import User
from .otp_service import OtpChallengeManager
from .slot_lock import SlotLockManager

logger = logging.getLogger(__name__)

BOOKING_MODES = {mode.value for mode in AppointmentMode}


def parse_slot_id(value: Any) -> int:
    """Accept a positive integer id, either as a number or a digit string."""
    if isinstance(value, bool):
        raise ValidationError("Invalid or missing slotId")
    if isinstance(value, int) and value > 0:
        return value
    if isinstance(value, str) and value.strip().isdecimal() and int(value) > 0:
        return int(value)
    raise ValidationError("Invalid or missing slotId")


def parse_mode(value: Any) -> str:
    if not isinstance(value, str) or value not in BOOKING_MODES:
        raise ValidationError("Invalid or missing mode")
    return value


def parse_fee(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError("Invalid or missing consultationFee")
    # JSON bodies may carry NaN or Infinity
    if not math.isfinite(value) or value < 0:
        raise ValidationError("Invalid or missing consultationFee")
    return float(value)


class BookingService:
    """Sequences slot lock, OTP gate and the durable appointment write."""

    def __init__(
        self,
        db: Session,
        locks: SlotLockManager,
        otp: OtpChallengeManager,
        require_otp: bool = True,
    ):
        self.db = db
        self.locks = locks
        self.otp = otp
        self.require_otp = require_otp

    def get_slot(self, slot_id: int) -> Slot:
        slot = self.db.query(Slot).filter(Slot.id == slot_id).first()
        if not slot:
            raise SlotNotFoundError()
        return slot

    def ensure_bookable(self, slot: Slot) -> None:
        doctor = slot.doctor
        if doctor is None or not (doctor.is_approved and doctor.is_active):
            raise DoctorUnavailableError()

    def confirmed_appointment_for(self, slot_id: int) -> Optional[Appointment]:
        return self.db.query(Appointment).filter(
            Appointment.slot_id == slot_id,
            Appointment.status == AppointmentStatus.CONFIRMED.value
        ).first()

    def request_lock(self, user: User, slot_id: Any) -> Slot:
        """Claim a slot for ``user`` for the lock TTL."""
        slot = self.get_slot(parse_slot_id(slot_id))
        if slot.is_booked:
            raise SlotAlreadyBookedError()
        self.ensure_bookable(slot)
        self.locks.acquire(slot.id, user.id)
        return slot

    def finalize_booking(
        self,
        user: User,
        slot_id: Any,
        mode: Any,
        consultation_fee: Any,
        symptoms: Optional[str] = None,
        otp_token: Optional[str] = None,
    ) -> Appointment:
        """Create the appointment for a slot the caller holds the lock on.

        All-or-nothing: either a confirmed appointment is committed and the
        lock is released, or nothing is written.
        """
        if user.role != UserRole.PATIENT:
            raise AuthorizationError("Only patients can book appointments")

        # Fields are checked in this order and the first failure is reported
        slot_id = parse_slot_id(slot_id)
        mode = parse_mode(mode)
        fee = parse_fee(consultation_fee)

        slot = self.get_slot(slot_id)
        self.ensure_bookable(slot)

        holder = self.locks.holder_of(slot.id)
        if holder is None:
            raise LockNotHeldError()
        if holder != str(user.id):
            raise LockHeldByOtherError()

        if self.require_otp and not self.otp.has_booking_pass(user.id, slot.id, otp_token):
            raise OtpRequiredError()

        try:
            if self.confirmed_appointment_for(slot.id) is not None:
                raise SlotAlreadyBookedError()

            appointment = Appointment(
                patient_id=user.id,
                doctor_id=slot.doctor_id,
                slot_id=slot.id,
                mode=mode,
                consultation_fee=fee,
                status=AppointmentStatus.CONFIRMED.value,
                symptoms=symptoms or None,
                confirmed_at=datetime.utcnow(),
            )
            slot.is_booked = True
            self.db.add(appointment)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            if self.confirmed_appointment_for(slot_id) is None:
                raise
            logger.info(f"Concurrent booking rejected slot={slot_id} patient={user.id}")
            raise SlotAlreadyBookedError()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(appointment)
        logger.info(f"Appointment confirmed id={appointment.id} slot={slot_id} patient={user.id}")

        # The appointment is durable; leftover keys expire on their own
        try:
            self.locks.release(slot_id)
        except InfrastructureError:
            logger.warning(f"Failed to release slot lock after booking slot={slot_id}")
        if self.require_otp:
            try:
                self.otp.revoke_booking_pass(user.id, slot_id)
            except InfrastructureError:
                logger.warning(f"Failed to revoke booking pass slot={slot_id} patient={user.id}")

        return appointment

    def list_appointments(self, user: User) -> List[Appointment]:
        return self.db.query(Appointment).filter(
            Appointment.patient_id == user.id
        ).order_by(Appointment.created_at.desc(), Appointment.id.desc()).all()
