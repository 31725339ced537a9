from __future__ import annotations

from datetime import date, time
import threading

import pytest

from servicebook.core import booking_lock
from servicebook.core.booking_lock import _LOCAL_LOCKS, slot_lock, slot_lock_key
from servicebook.core.exceptions import BookingTimeoutException


def test_slot_lock_key_normalizes_time() -> None:
    assert slot_lock_key("2", date(2025, 7, 7), "9:00") == "booking:2:2025-07-07:09:00"
    assert slot_lock_key("2", date(2025, 7, 7), time(9, 0, 30)) == "booking:2:2025-07-07:09:00"


def test_local_lock_is_released_after_block() -> None:
    key = "booking:test:release"
    with slot_lock(key, timeout_s=0.1):
        pass
    with slot_lock(key, timeout_s=0.1) as held:
        assert held == key
    assert len(_LOCAL_LOCKS) == 0


def test_local_lock_times_out_while_held() -> None:
    key = "booking:test:held"
    with slot_lock(key, timeout_s=0.1):
        with pytest.raises(BookingTimeoutException) as exc_info:
            with slot_lock(key, timeout_s=0.05):
                pass  # pragma: no cover

    assert exc_info.value.details == {"lock_key": key, "backend": "local"}
    # The holder still releases cleanly
    with slot_lock(key, timeout_s=0.1):
        pass


def test_distinct_keys_do_not_block_each_other() -> None:
    with slot_lock("booking:test:a", timeout_s=0.1):
        with slot_lock("booking:test:b", timeout_s=0.1):
            pass


def test_lock_serializes_threads() -> None:
    key = "booking:test:threads"
    inside = 0
    max_inside = 0
    guard = threading.Lock()

    def worker() -> None:
        nonlocal inside, max_inside
        with slot_lock(key, timeout_s=5):
            with guard:
                inside += 1
                max_inside = max(max_inside, inside)
            threading.Event().wait(0.01)
            with guard:
                inside -= 1

    threads = [threading.Thread(target=worker) for _ in range(5)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert max_inside == 1


def test_without_redis_url_no_client_is_created(monkeypatch) -> None:
    monkeypatch.setattr(booking_lock.settings, "redis_url", None)
    booking_lock.reset_lock_state()
    assert booking_lock._get_sync_redis() is None
