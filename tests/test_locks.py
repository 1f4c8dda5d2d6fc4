"""Tests for per-schedule lock management and the availability cache."""

import threading
import time as _time
from datetime import time

import pytest

from booking_engine.errors import ScheduleLockTimeout
from booking_engine.services.availability_service import AvailabilityCache
from booking_engine.services.locks import ScheduleLockManager
from tests.conftest import MONDAY, TUESDAY

KEY = ("anna", MONDAY)
OTHER = ("anna", TUESDAY)


class TestScheduleLockManager:
    def test_hold_and_release(self):
        locks = ScheduleLockManager(timeout_seconds=0.1)
        with locks.hold(KEY):
            assert locks.is_locked(KEY)
        assert not locks.is_locked(KEY)

    def test_unknown_key_is_not_locked(self):
        assert not ScheduleLockManager().is_locked(KEY)

    def test_held_key_times_out(self):
        locks = ScheduleLockManager(timeout_seconds=0.05)
        with locks.hold(KEY):
            with pytest.raises(ScheduleLockTimeout):
                with locks.hold(KEY):
                    pass

    def test_other_keys_are_independent(self):
        locks = ScheduleLockManager(timeout_seconds=0.05)
        with locks.hold(KEY):
            with locks.hold(OTHER):
                assert locks.is_locked(OTHER)

    def test_partial_acquisition_is_released(self):
        locks = ScheduleLockManager(timeout_seconds=0.05)
        with locks.hold(OTHER):
            with pytest.raises(ScheduleLockTimeout):
                with locks.hold(KEY, OTHER):
                    pass
            assert not locks.is_locked(KEY)

    def test_released_on_exception(self):
        locks = ScheduleLockManager()
        with pytest.raises(RuntimeError):
            with locks.hold(KEY):
                raise RuntimeError("boom")
        assert not locks.is_locked(KEY)
        assert len(locks) == 0

    def test_released_keys_are_discarded(self):
        locks = ScheduleLockManager()
        with locks.hold(KEY, OTHER):
            assert len(locks) == 2
        assert len(locks) == 0

    def test_timed_out_keys_are_discarded(self):
        locks = ScheduleLockManager(timeout_seconds=0.05)
        with locks.hold(OTHER):
            with pytest.raises(ScheduleLockTimeout):
                with locks.hold(KEY, OTHER):
                    pass
            assert len(locks) == 1
        assert len(locks) == 0

    def test_waiter_keeps_key_alive(self):
        locks = ScheduleLockManager(timeout_seconds=2.0)
        done = threading.Event()

        def waiter():
            with locks.hold(KEY):
                pass
            done.set()

        with locks.hold(KEY):
            thread = threading.Thread(target=waiter)
            thread.start()
            deadline = _time.monotonic() + 2.0
            while locks._locks[KEY].users < 2 and _time.monotonic() < deadline:
                _time.sleep(0.005)
            assert locks._locks[KEY].users == 2
            assert len(locks) == 1
        thread.join()
        assert done.is_set()
        assert len(locks) == 0

    def test_opposite_order_holders_do_not_deadlock(self):
        locks = ScheduleLockManager(timeout_seconds=2.0)
        barrier = threading.Barrier(2)
        errors = []

        def worker(keys):
            barrier.wait()
            try:
                for _ in range(50):
                    with locks.hold(*keys):
                        pass
            except ScheduleLockTimeout as exc:
                errors.append(exc)

        threads = [
            threading.Thread(target=worker, args=((KEY, OTHER),)),
            threading.Thread(target=worker, args=((OTHER, KEY),)),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert errors == []


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestAvailabilityCache:
    SLOTS = (time(9, 0), time(9, 30))

    def test_hit_on_same_version(self):
        cache = AvailabilityCache(ttl_seconds=30)
        cache.put(("anna", MONDAY, "haircut"), 1, self.SLOTS)
        assert cache.get(("anna", MONDAY, "haircut"), 1) == self.SLOTS

    def test_miss_on_newer_version(self):
        cache = AvailabilityCache(ttl_seconds=30)
        cache.put(("anna", MONDAY, "haircut"), 1, self.SLOTS)
        assert cache.get(("anna", MONDAY, "haircut"), 2) is None
        assert len(cache) == 0

    def test_expires_after_ttl(self):
        clock = FakeClock()
        cache = AvailabilityCache(ttl_seconds=30, clock=clock)
        cache.put(("anna", MONDAY, "haircut"), 0, self.SLOTS)
        clock.now = 29.0
        assert cache.get(("anna", MONDAY, "haircut"), 0) == self.SLOTS
        clock.now = 30.0
        assert cache.get(("anna", MONDAY, "haircut"), 0) is None

    def test_zero_ttl_disables(self):
        cache = AvailabilityCache(ttl_seconds=0)
        cache.put(("anna", MONDAY, "haircut"), 0, self.SLOTS)
        assert len(cache) == 0
        assert cache.get(("anna", MONDAY, "haircut"), 0) is None

    def test_invalidate_one_date(self):
        cache = AvailabilityCache()
        cache.put(("anna", MONDAY, "haircut"), 0, self.SLOTS)
        cache.put(("anna", MONDAY, "colour"), 0, self.SLOTS)
        cache.put(("anna", TUESDAY, "haircut"), 0, self.SLOTS)
        cache.invalidate_keys([KEY])
        assert len(cache) == 1

    def test_invalidate_provider(self):
        cache = AvailabilityCache()
        cache.put(("anna", MONDAY, "haircut"), 0, self.SLOTS)
        cache.put(("anna", TUESDAY, "haircut"), 0, self.SLOTS)
        cache.put(("marco", MONDAY, "haircut"), 0, self.SLOTS)
        cache.invalidate("anna")
        assert len(cache) == 1

    def test_put_evicts_expired_entries(self):
        clock = FakeClock()
        cache = AvailabilityCache(ttl_seconds=30, clock=clock)
        cache.put(("anna", MONDAY, "haircut"), 0, self.SLOTS)
        cache.put(("marco", MONDAY, "beard-trim"), 0, self.SLOTS)
        clock.now = 31.0
        cache.put(("anna", TUESDAY, "haircut"), 0, self.SLOTS)
        assert len(cache) == 1
        assert cache.get(("anna", TUESDAY, "haircut"), 0) == self.SLOTS
