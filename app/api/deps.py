from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import datetime

from ..core.config import settings
from ..core.database import get_db
from ..core.ephemeral_store import EphemeralStore
from ..core.security import (
    security, verify_token, AuthenticationError,
    AuthorizationError, UserRole, TokenPayload
)
from ..models.user import User
from ..services.booking_service import BookingService
from ..services.email_service import Mailer
from ..services.otp_service import OtpChallengeManager
from ..services.slot_lock import SlotLockManager

async def get_current_user_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> TokenPayload:
    """Extract and verify JWT token from Authorization header."""
    if not credentials or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Authorization token missing")

    token_payload = verify_token(credentials.credentials)
    if not token_payload:
        raise AuthenticationError("Invalid or expired token")

    if token_payload.token_type != "access":
        raise AuthenticationError("Invalid token type")

    return token_payload

async def get_current_user(
    token_payload: TokenPayload = Depends(get_current_user_token),
    db: Session = Depends(get_db)
) -> User:
    """Get current authenticated user from database."""
    if token_payload.user_id is None:
        raise AuthenticationError("Invalid token payload")

    user = db.query(User).filter(User.id == token_payload.user_id).first()
    if not user:
        raise AuthenticationError("User not found")

    if not user.is_active:
        raise AuthenticationError("User account is deactivated")

    user.last_login = datetime.utcnow()
    db.commit()

    return user

# Role-based access control dependencies
def require_role(allowed_roles: List[UserRole]):
    """Create a dependency that requires specific user roles."""
    async def role_checker(
        current_user: User = Depends(get_current_user)
    ) -> User:
        if current_user.role not in allowed_roles:
            raise AuthorizationError(
                f"Access denied. Required roles: {[role.value for role in allowed_roles]}"
            )
        return current_user

    return role_checker

async def get_admin_user(
    current_user: User = Depends(require_role([UserRole.ADMIN]))
) -> User:
    """Require admin role."""
    return current_user

async def get_doctor_user(
    current_user: User = Depends(require_role([UserRole.DOCTOR]))
) -> User:
    """Require doctor role."""
    return current_user

# Process-wide clients are built at startup and kept on app.state
def get_ephemeral_store(request: Request) -> EphemeralStore:
    return request.app.state.ephemeral_store

def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer

def get_slot_lock_manager(
    store: EphemeralStore = Depends(get_ephemeral_store)
) -> SlotLockManager:
    return SlotLockManager(store, ttl_seconds=settings.SLOT_LOCK_TTL_SECONDS)

def get_otp_manager(
    store: EphemeralStore = Depends(get_ephemeral_store),
    mailer: Mailer = Depends(get_mailer)
) -> OtpChallengeManager:
    return OtpChallengeManager(
        store,
        mailer,
        length=settings.OTP_LENGTH,
        ttl_seconds=settings.OTP_TTL_SECONDS
    )

def get_booking_service(
    db: Session = Depends(get_db),
    locks: SlotLockManager = Depends(get_slot_lock_manager),
    otp: OtpChallengeManager = Depends(get_otp_manager)
) -> BookingService:
    return BookingService(db, locks, otp, require_otp=settings.BOOKING_REQUIRES_OTP)
