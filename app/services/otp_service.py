import logging
import secrets
from typing import Optional

from ..core.ephemeral_store import EphemeralStore
from ..core.exceptions import InfrastructureError, OtpExpiredError, OtpMismatchError
from .email_service import Mailer

logger = logging.getLogger(__name__)

DEFAULT_OTP_LENGTH = 6
DEFAULT_OTP_TTL_SECONDS = 600


def generate_otp(length: int = DEFAULT_OTP_LENGTH) -> str:
    """Uniform numeric code in [0, 10**length), zero-padded to ``length`` digits."""
    if length < 1:
        raise ValueError("OTP length must be positive")
    return str(secrets.randbelow(10 ** length)).zfill(length)


def otp_key(email: str) -> str:
    return f"otp:{email}"


def booking_pass_key(user_id, slot_id) -> str:
    return f"otp_pass:{slot_id}:{user_id}"


class OtpChallengeManager:
    """Issues and verifies one-time codes bound to an email address.

    One live challenge per email: issuing again replaces the previous code.
    A verified challenge can also mint a booking pass, a short-lived token
    scoped to a (user, slot) pair that the booking service requires before
    it writes an appointment.
    """

    def __init__(
        self,
        store: EphemeralStore,
        mailer: Mailer,
        length: int = DEFAULT_OTP_LENGTH,
        ttl_seconds: int = DEFAULT_OTP_TTL_SECONDS,
    ):
        self.store = store
        self.mailer = mailer
        self.length = length
        self.ttl_seconds = ttl_seconds

    def issue(self, email: str) -> str:
        code = generate_otp(self.length)
        key = otp_key(email)
        # A store failure propagates before anything is mailed
        self.store.set(key, code, self.ttl_seconds)
        logger.info(f"OTP issued key={key} ttl={self.ttl_seconds}s")

        # On delivery failure the stored code stays valid so the caller can resend
        self.mailer.send_otp(email, code, self.ttl_seconds // 60)
        return code

    def verify(self, email: str, submitted_code: str) -> None:
        key = otp_key(email)
        stored = self.store.get(key)
        if stored is None:
            logger.info(f"OTP verification failed key={key} reason=expired")
            raise OtpExpiredError()
        if stored != str(submitted_code):
            logger.info(f"OTP verification failed key={key} reason=mismatch")
            raise OtpMismatchError()

        try:
            self.store.delete(key)
        except InfrastructureError:
            logger.warning(f"Failed to delete verified OTP key={key}")
        logger.info(f"OTP verified key={key}")

    def grant_booking_pass(self, user_id, slot_id) -> str:
        token = secrets.token_urlsafe(32)
        self.store.set(booking_pass_key(user_id, slot_id), token, self.ttl_seconds)
        return token

    def has_booking_pass(self, user_id, slot_id, token: Optional[str]) -> bool:
        if not token:
            return False
        stored = self.store.get(booking_pass_key(user_id, slot_id))
        return stored is not None and secrets.compare_digest(stored, token)

    def revoke_booking_pass(self, user_id, slot_id) -> None:
        self.store.delete(booking_pass_key(user_id, slot_id))
