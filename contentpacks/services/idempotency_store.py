"""
Idempotency store.

``try_create(key, ttl)`` is an atomic check-and-set: for a given key, exactly
one caller per TTL window gets True. Entries expire passively.

- InMemoryIdempotencyStore: single-process, lock protected
- RedisIdempotencyStore: ``SET key 1 NX PX ttl``, safe across processes
"""
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional

import redis

from contentpacks.core import config
from contentpacks.core.errors import IdempotencyStoreUnavailable

logger = logging.getLogger(__name__)

KEY_PREFIX = "idem:"


def _check_ttl(ttl: float):
    if ttl <= 0:
        raise ValueError(f"Idempotency TTL must be positive, got {ttl}")


class IdempotencyStore(ABC):
    """Records which keys have been seen within their TTL window."""

    @abstractmethod
    def try_create(self, key: str, ttl: float) -> bool:
        """
        Claim ``key`` for ``ttl`` seconds.

        Returns:
            True if this call created the key, False if it already existed
        """
        pass

    @abstractmethod
    def exists(self, key: str) -> bool:
        pass

    @abstractmethod
    def release(self, key: str):
        """Forget ``key`` so the operation it guards can be retried."""
        pass


class InMemoryIdempotencyStore(IdempotencyStore):
    """Process-local store; not shared between workers."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._expiries: Dict[str, float] = {}
        self._lock = threading.Lock()

    def _purge_expired(self, now: float):
        expired = [key for key, expires_at in self._expiries.items() if expires_at <= now]
        for key in expired:
            del self._expiries[key]

    def try_create(self, key: str, ttl: float) -> bool:
        _check_ttl(ttl)
        with self._lock:
            now = self._clock()
            self._purge_expired(now)
            if key in self._expiries:
                return False
            self._expiries[key] = now + ttl
            return True

    def exists(self, key: str) -> bool:
        with self._lock:
            expires_at = self._expiries.get(key)
            return expires_at is not None and expires_at > self._clock()

    def release(self, key: str):
        with self._lock:
            self._expiries.pop(key, None)


class RedisIdempotencyStore(IdempotencyStore):
    """
    Redis-backed store.

    When Redis cannot be reached, ``fail_open`` decides the outcome: True lets
    the operation proceed (duplicates possible while Redis is down), False
    raises IdempotencyStoreUnavailable.
    """

    def __init__(self, client: "redis.Redis", fail_open: Optional[bool] = None):
        self.redis_client = client
        self.fail_open = config.IDEMPOTENCY_FAIL_OPEN if fail_open is None else fail_open

    @classmethod
    def from_url(cls, redis_url: str, fail_open: Optional[bool] = None) -> "RedisIdempotencyStore":
        return cls(redis.from_url(redis_url, decode_responses=True), fail_open=fail_open)

    def _unavailable(self, operation: str, key: str, error: Exception):
        if not self.fail_open:
            logger.error(f"Idempotency store unavailable: operation={operation}, key={key}, error={error}")
            raise IdempotencyStoreUnavailable() from error
        logger.warning(
            f"Idempotency store unavailable, failing open: operation={operation}, key={key}, error={error}"
        )

    def try_create(self, key: str, ttl: float) -> bool:
        _check_ttl(ttl)
        try:
            created = self.redis_client.set(f"{KEY_PREFIX}{key}", "1", nx=True, px=max(1, int(ttl * 1000)))
        except redis.RedisError as e:
            self._unavailable("try_create", key, e)
            return True
        return bool(created)

    def exists(self, key: str) -> bool:
        try:
            return bool(self.redis_client.exists(f"{KEY_PREFIX}{key}"))
        except redis.RedisError as e:
            self._unavailable("exists", key, e)
            return False

    def release(self, key: str):
        try:
            self.redis_client.delete(f"{KEY_PREFIX}{key}")
        except redis.RedisError as e:
            self._unavailable("release", key, e)


# Global instance (lazy initialization)
_store: Optional[IdempotencyStore] = None
_store_lock = threading.Lock()


def get_idempotency_store() -> IdempotencyStore:
    """
    Get the process-wide idempotency store.

    Uses Redis when REDIS_URL is configured, otherwise an in-memory store.
    """
    global _store
    with _store_lock:
        if _store is None:
            if config.REDIS_URL:
                logger.info("Using Redis idempotency store")
                _store = RedisIdempotencyStore.from_url(config.REDIS_URL)
            else:
                logger.warning("REDIS_URL not set, using in-memory idempotency store (single process only)")
                _store = InMemoryIdempotencyStore()
        return _store
