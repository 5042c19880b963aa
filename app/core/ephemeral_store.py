"""
Short-lived key/value records with per-key expiry.

Slot locks and OTP challenges live here, never in the relational database.
Production runs against Redis; tests and local development use the
in-memory store, which honours the same TTL semantics and accepts an
injectable clock.
"""
import logging
import threading
import time
from typing import Callable, Dict, Optional, Tuple

import redis
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError
from redis.retry import Retry

from .config import Settings
from .exceptions import InfrastructureError

logger = logging.getLogger(__name__)


class EphemeralStore:
    """Per-key atomic operations the booking protocol relies on."""

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        raise NotImplementedError

    def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        """Atomically write ``key`` only if no live value exists. Returns True if written."""
        raise NotImplementedError

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass


class RedisEphemeralStore(EphemeralStore):
    def __init__(self, client: "redis.Redis"):
        self.client = client

    @classmethod
    def from_url(cls, url: str, max_retries: int = 3) -> "RedisEphemeralStore":
        client = redis.from_url(
            url,
            decode_responses=True,
            retry=Retry(ExponentialBackoff(), max_retries),
            retry_on_error=[RedisConnectionError, RedisTimeoutError],
        )
        return cls(client)

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            self.client.set(key, value, ex=ttl_seconds)
        except RedisError as e:
            logger.error(f"Redis SET failed key={key}: {e}")
            raise InfrastructureError() from e

    def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        try:
            return bool(self.client.set(key, value, nx=True, ex=ttl_seconds))
        except RedisError as e:
            logger.error(f"Redis SET NX failed key={key}: {e}")
            raise InfrastructureError() from e

    def get(self, key: str) -> Optional[str]:
        try:
            return self.client.get(key)
        except RedisError as e:
            logger.error(f"Redis GET failed key={key}: {e}")
            raise InfrastructureError() from e

    def delete(self, key: str) -> None:
        try:
            self.client.delete(key)
        except RedisError as e:
            logger.error(f"Redis DEL failed key={key}: {e}")
            raise InfrastructureError() from e

    def close(self) -> None:
        self.client.close()


class InMemoryEphemeralStore(EphemeralStore):
    """Dict-backed store for tests and single-process development.

    Expired entries are dropped when read and swept on every write, so keys
    that are never read again do not accumulate.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._data: Dict[str, Tuple[str, float]] = {}
        self._lock = threading.Lock()

    def _live(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self.clock() >= expires_at:
            del self._data[key]
            return None
        return value

    def _purge_expired(self) -> None:
        now = self.clock()
        expired = [key for key, (_, expires_at) in self._data.items() if now >= expires_at]
        for key in expired:
            del self._data[key]

    def size(self) -> int:
        """Number of entries held, including expired ones not yet swept."""
        with self._lock:
            return len(self._data)

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._lock:
            self._purge_expired()
            self._data[key] = (str(value), self.clock() + ttl_seconds)

    def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        with self._lock:
            self._purge_expired()
            if self._live(key) is not None:
                return False
            self._data[key] = (str(value), self.clock() + ttl_seconds)
            return True

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._live(key)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)


def create_ephemeral_store(settings: Settings) -> EphemeralStore:
    """Build the store for this process from settings."""
    if settings.TESTING or settings.REDIS_URL.startswith("memory://"):
        logger.info("Using in-memory ephemeral store")
        return InMemoryEphemeralStore()
    logger.info("Using Redis ephemeral store")
    return RedisEphemeralStore.from_url(settings.REDIS_URL, settings.REDIS_MAX_RETRIES)
