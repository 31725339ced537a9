"""
Per-occurrence booking lock.

Serializes booking attempts for one (provider, date, start time). Redis
``SET NX`` is used when ``redis_url`` is configured so API workers on
several hosts share the lock; without Redis, or when it is unreachable, an
in-process lock registry is used instead. The partial unique index on
appointments remains the final backstop either way.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date
import logging
import threading
import time
from typing import Dict, Iterator, Optional
import uuid

from redis import Redis

from servicebook.core.config import settings
from servicebook.core.exceptions import BookingTimeoutException
from servicebook.core.time_utils import TimeLike, format_hhmm, parse_time_of_day
from servicebook.monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

_POLL_INTERVAL_S = 0.02

# Delete only if we still own the key
_RELEASE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
end
return 0
"""

_SYNC_REDIS: Optional[Redis] = None
_SYNC_REDIS_LOCK = threading.Lock()


def slot_lock_key(provider_id: str, concrete_date: date, start_time: TimeLike) -> str:
    start = format_hhmm(parse_time_of_day(start_time))
    return f"booking:{provider_id}:{concrete_date.isoformat()}:{start}"


def _namespaced_key(key: str) -> str:
    return f"{settings.lock_namespace}:lock:{key}"


def _get_sync_redis() -> Optional[Redis]:
    global _SYNC_REDIS
    if not settings.redis_url:
        return None
    if _SYNC_REDIS is not None:
        return _SYNC_REDIS
    with _SYNC_REDIS_LOCK:
        if _SYNC_REDIS is not None:
            return _SYNC_REDIS
        try:
            client = Redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_timeout=2,
            )
            client.ping()
        except Exception as exc:
            logger.warning("booking_lock_sync_redis_unavailable: %s", exc)
            return None
        _SYNC_REDIS = client
        return _SYNC_REDIS


class _LocalLockRegistry:
    """Reference-counted per-key locks for a single process."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._refs: Dict[str, int] = {}

    def acquire(self, key: str, timeout_s: float) -> bool:
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._refs[key] = self._refs.get(key, 0) + 1
        acquired = lock.acquire(timeout=max(timeout_s, 0))
        if not acquired:
            self._drop_ref(key)
        return acquired

    def release(self, key: str) -> None:
        with self._guard:
            lock = self._locks.get(key)
        if lock is not None:
            lock.release()
        self._drop_ref(key)

    def _drop_ref(self, key: str) -> None:
        with self._guard:
            remaining = self._refs.get(key, 0) - 1
            if remaining <= 0:
                self._refs.pop(key, None)
                self._locks.pop(key, None)
            else:
                self._refs[key] = remaining

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


_LOCAL_LOCKS = _LocalLockRegistry()


def _acquire_redis(client: Redis, key: str, token: str, timeout_s: float, ttl_s: int) -> bool:
    deadline = time.monotonic() + timeout_s
    namespaced = _namespaced_key(key)
    while True:
        if client.set(namespaced, token, nx=True, ex=ttl_s):
            return True
        if time.monotonic() >= deadline:
            return False
        time.sleep(_POLL_INTERVAL_S)


def _release_redis(client: Redis, key: str, token: str) -> None:
    try:
        released = client.eval(_RELEASE_SCRIPT, 1, _namespaced_key(key), token)
        prometheus_metrics.record_booking_lock("release", "success" if released else "not_found")
    except Exception as exc:
        prometheus_metrics.record_booking_lock("release", "error")
        logger.warning(
            "booking_lock_sync_release_failed",
            extra={"lock_key": key, "error": str(exc), "error_type": type(exc).__name__},
        )


@contextmanager
def slot_lock(
    key: str,
    timeout_s: Optional[float] = None,
    ttl_s: Optional[int] = None,
) -> Iterator[str]:
    """
    Hold the lock for ``key`` for the duration of the block.

    Raises:
        BookingTimeoutException: The lock was not acquired within ``timeout_s``
    """
    timeout = settings.booking_commit_timeout_seconds if timeout_s is None else timeout_s
    ttl = ttl_s or settings.booking_lock_ttl_seconds

    client = _get_sync_redis()
    if client is not None:
        token = uuid.uuid4().hex
        try:
            acquired = _acquire_redis(client, key, token, timeout, ttl)
        except Exception as exc:
            prometheus_metrics.record_booking_lock("acquire", "error")
            logger.warning(
                "booking_lock_redis_acquire_failed, using local lock",
                extra={"lock_key": key, "error": str(exc), "error_type": type(exc).__name__},
            )
            client = None
        else:
            if not acquired:
                prometheus_metrics.record_booking_lock("acquire", "timeout")
                raise BookingTimeoutException(details={"lock_key": key, "backend": "redis"})
            prometheus_metrics.record_booking_lock("acquire", "success")
            try:
                yield key
            finally:
                _release_redis(client, key, token)
            return
    elif settings.redis_url:
        prometheus_metrics.record_booking_lock("acquire", "redis_unavailable")

    if not _LOCAL_LOCKS.acquire(key, timeout):
        prometheus_metrics.record_booking_lock("acquire", "timeout")
        raise BookingTimeoutException(details={"lock_key": key, "backend": "local"})
    prometheus_metrics.record_booking_lock("acquire", "success")
    try:
        yield key
    finally:
        _LOCAL_LOCKS.release(key)
        prometheus_metrics.record_booking_lock("release", "success")


def reset_lock_state() -> None:
    """Drop the cached Redis client (tests and settings reloads)."""
    global _SYNC_REDIS
    with _SYNC_REDIS_LOCK:
        _SYNC_REDIS = None
