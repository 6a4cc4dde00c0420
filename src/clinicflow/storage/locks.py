"""Per-key writer locks serializing check-in creation per patient."""

from __future__ import annotations

import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Protocol

import redis

if TYPE_CHECKING:
    from contextlib import AbstractContextManager

__all__ = [
    "InProcessKeyedLock",
    "KeyedLock",
    "LockBusy",
    "RedisKeyedLock",
    "get_redis_client",
]

_KEY_PREFIX = "clinicflow:lock:"

# Delete only if we still own the key
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class LockBusy(Exception):
    """Another writer holds the key."""

    def __init__(self, key: str) -> None:
        super().__init__(f"lock busy: {key}")
        self.key = key


class KeyedLock(Protocol):
    def hold(self, key: str) -> AbstractContextManager[None]:
        """Hold the lock for *key* for the duration of the block. Raises LockBusy."""
        ...


def get_redis_client(url: str, timeout: float = 2.0) -> redis.Redis:  # type: ignore[type-arg]
    """Create a Redis client with bounded socket timeouts."""
    return redis.Redis.from_url(
        url,
        decode_responses=True,
        socket_timeout=timeout,
        socket_connect_timeout=timeout,
    )


class InProcessKeyedLock:
    """Single-process lock table. Waits up to *timeout* seconds for the key."""

    def __init__(self, timeout: float = 10.0) -> None:
        self._timeout = timeout
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(key, threading.Lock())

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self._lock_for(key)
        if not lock.acquire(timeout=self._timeout):
            raise LockBusy(key)
        try:
            yield
        finally:
            lock.release()


class RedisKeyedLock:
    """``SET NX PX`` lock shared by every process pointing at the same Redis.

    Fails fast when the key is taken; the TTL bounds how long a crashed
    holder can block the key.
    """

    def __init__(self, client: redis.Redis, ttl_seconds: int = 10) -> None:  # type: ignore[type-arg]
        self._client = client
        self._ttl_ms = ttl_seconds * 1000

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        redis_key = _KEY_PREFIX + key
        token = uuid.uuid4().hex
        if not self._client.set(redis_key, token, nx=True, px=self._ttl_ms):
            raise LockBusy(key)
        try:
            yield
        finally:
            self._client.eval(_RELEASE_SCRIPT, 1, redis_key, token)
