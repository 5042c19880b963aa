"""
Error taxonomy for the booking protocol.

Every error is an HTTPException so services can raise them directly and the
handlers in ``app.main`` render them as ``{"success": false, "error": ...}``.
Authentication and authorization errors live in ``app.core.security``.
"""
from fastapi import HTTPException, status

from .security import AuthorizationError


class ValidationError(HTTPException):
    def __init__(self, detail: str = "Invalid request"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class NotFoundError(HTTPException):
    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class ConflictError(HTTPException):
    def __init__(self, detail: str = "Conflict"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class ExpiredError(HTTPException):
    def __init__(self, detail: str = "Expired"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class InfrastructureError(HTTPException):
    """A backing service (Redis, database, SMTP) failed. Never leaks internals."""

    def __init__(self, detail: str = "Service temporarily unavailable. Please try again."):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


# Slots and locks
class SlotNotFoundError(NotFoundError):
    def __init__(self):
        super().__init__("Slot not found")


class DoctorNotFoundError(NotFoundError):
    def __init__(self):
        super().__init__("Doctor not found")


class SlotAlreadyLockedError(ConflictError):
    def __init__(self):
        super().__init__("Slot already locked")


class SlotAlreadyBookedError(ConflictError):
    def __init__(self):
        super().__init__("Slot is already booked")


class LockNotHeldError(ConflictError):
    def __init__(self):
        super().__init__("Slot is not locked or lock expired")


class LockHeldByOtherError(ConflictError):
    def __init__(self):
        super().__init__("Slot is locked by another user")


class DoctorUnavailableError(ConflictError):
    def __init__(self):
        super().__init__("Doctor is not accepting bookings")


# OTP
class OtpExpiredError(ExpiredError):
    def __init__(self):
        super().__init__("OTP expired or not found. Please request a new one.")


class OtpMismatchError(ValidationError):
    def __init__(self):
        super().__init__("Invalid OTP. Please try again.")


class OtpRequiredError(AuthorizationError):
    def __init__(self):
        super().__init__("OTP verification is required before booking this slot")


class MailDeliveryError(InfrastructureError):
    def __init__(self):
        super().__init__("Failed to send OTP")
