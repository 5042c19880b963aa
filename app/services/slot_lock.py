import logging
from typing import Optional

from ..core.ephemeral_store import EphemeralStore
from ..core.exceptions import SlotAlreadyLockedError

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TTL_SECONDS = 600


def lock_key(slot_id) -> str:
    return f"lock:{slot_id}"


class SlotLockManager:
    """Exclusive, time-boxed claim on a slot for one holder.

    Locks are not reentrant: a holder cannot re-lock a slot it already holds
    until the lock expires or the booking completes.
    """

    def __init__(self, store: EphemeralStore, ttl_seconds: int = DEFAULT_LOCK_TTL_SECONDS):
        self.store = store
        self.ttl_seconds = ttl_seconds

    def acquire(self, slot_id, holder_id) -> None:
        key = lock_key(slot_id)
        if not self.store.set_if_absent(key, str(holder_id), self.ttl_seconds):
            logger.info(f"Slot lock contended key={key} holder={holder_id}")
            raise SlotAlreadyLockedError()
        logger.info(f"Slot lock acquired key={key} holder={holder_id} ttl={self.ttl_seconds}s")

    def holder_of(self, slot_id) -> Optional[str]:
        return self.store.get(lock_key(slot_id))

    def is_locked_by(self, slot_id, holder_id) -> bool:
        return self.holder_of(slot_id) == str(holder_id)

    def release(self, slot_id) -> None:
        self.store.delete(lock_key(slot_id))
        logger.info(f"Slot lock released key={lock_key(slot_id)}")
