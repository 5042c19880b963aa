import threading
from unittest.mock import MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from app.core.ephemeral_store import InMemoryEphemeralStore, RedisEphemeralStore
from app.core.exceptions import InfrastructureError, SlotAlreadyLockedError
from app.services.slot_lock import SlotLockManager, lock_key


@pytest.fixture
def locks(store):
    return SlotLockManager(store, ttl_seconds=600)


class TestSlotLockManager:

    def test_acquire_records_holder(self, locks, store):
        locks.acquire(7, 42)

        assert store.get("lock:7") == "42"
        assert locks.is_locked_by(7, 42)
        assert not locks.is_locked_by(7, 43)

    def test_second_acquire_rejected_regardless_of_holder(self, locks):
        locks.acquire(7, 42)

        with pytest.raises(SlotAlreadyLockedError):
            locks.acquire(7, 43)
        # Not reentrant either
        with pytest.raises(SlotAlreadyLockedError) as exc_info:
            locks.acquire(7, 42)
        assert exc_info.value.status_code == 409

    def test_locks_are_per_slot(self, locks):
        locks.acquire(1, 42)
        locks.acquire(2, 43)

        assert locks.is_locked_by(1, 42)
        assert locks.is_locked_by(2, 43)

    def test_concurrent_acquire_has_single_winner(self, locks):
        contenders = 25
        barrier = threading.Barrier(contenders)
        winners = []
        losers = []

        def attempt(holder_id):
            barrier.wait()
            try:
                locks.acquire(99, holder_id)
                winners.append(holder_id)
            except SlotAlreadyLockedError:
                losers.append(holder_id)

        threads = [threading.Thread(target=attempt, args=(i,)) for i in range(contenders)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(winners) == 1
        assert len(losers) == contenders - 1
        assert locks.holder_of(99) == str(winners[0])

    def test_lock_expires_after_ttl(self, locks, clock):
        locks.acquire(7, 42)

        clock.advance(599)
        assert locks.is_locked_by(7, 42)

        clock.advance(1)
        assert locks.holder_of(7) is None
        assert not locks.is_locked_by(7, 42)

        # Slot is open again
        locks.acquire(7, 43)
        assert locks.is_locked_by(7, 43)

    def test_release_is_idempotent(self, locks):
        locks.acquire(7, 42)
        locks.release(7)
        locks.release(7)

        assert locks.holder_of(7) is None
        locks.acquire(7, 43)


class TestInMemoryEphemeralStore:

    def test_set_overwrites_and_resets_ttl(self, clock):
        store = InMemoryEphemeralStore(clock=clock)
        store.set("otp:a@example.com", "111111", 10)
        clock.advance(8)
        store.set("otp:a@example.com", "222222", 10)
        clock.advance(8)

        assert store.get("otp:a@example.com") == "222222"

    def test_set_if_absent_after_expiry(self, clock):
        store = InMemoryEphemeralStore(clock=clock)
        assert store.set_if_absent("k", "a", 5)
        assert not store.set_if_absent("k", "b", 5)
        clock.advance(5)
        assert store.set_if_absent("k", "b", 5)
        assert store.get("k") == "b"

    def test_writes_sweep_expired_keys(self, clock):
        store = InMemoryEphemeralStore(clock=clock)
        store.set("otp:a@example.com", "123456", 600)
        store.set("otp_pass:1:2", "token", 600)
        clock.advance(600)

        store.set_if_absent("lock:1", "2", 600)
        assert store.size() == 1

        clock.advance(600)
        store.set("otp:b@example.com", "654321", 600)
        assert store.size() == 1


class TestRedisEphemeralStore:

    def test_lock_uses_single_conditional_set(self):
        client = MagicMock()
        client.set.return_value = True
        locks = SlotLockManager(RedisEphemeralStore(client), ttl_seconds=600)

        locks.acquire(5, 42)

        client.set.assert_called_once_with(lock_key(5), "42", nx=True, ex=600)
        client.get.assert_not_called()

    def test_contended_lock(self):
        client = MagicMock()
        client.set.return_value = None
        locks = SlotLockManager(RedisEphemeralStore(client))

        with pytest.raises(SlotAlreadyLockedError):
            locks.acquire(5, 42)

    def test_redis_errors_surface_as_infrastructure_errors(self):
        client = MagicMock()
        client.set.side_effect = RedisConnectionError("connection refused")
        client.get.side_effect = RedisConnectionError("connection refused")
        store = RedisEphemeralStore(client)

        with pytest.raises(InfrastructureError) as exc_info:
            SlotLockManager(store).acquire(5, 42)
        assert exc_info.value.status_code == 500
        assert "refused" not in exc_info.value.detail

        with pytest.raises(InfrastructureError):
            store.get("lock:5")
