"""
Tests for the idempotency stores.
"""
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

import pytest
import redis

from contentpacks.core import config
from contentpacks.core.errors import IdempotencyStoreUnavailable
from contentpacks.services import idempotency_store
from contentpacks.services.idempotency_store import (
    InMemoryIdempotencyStore,
    RedisIdempotencyStore,
    get_idempotency_store,
)


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_first_claim_wins():
    store = InMemoryIdempotencyStore()

    assert store.try_create("evt_1", 1000) is True
    assert store.try_create("evt_1", 1000) is False
    assert store.exists("evt_1")


def test_distinct_keys_are_independent():
    store = InMemoryIdempotencyStore()

    assert store.try_create("evt_1", 60) is True
    assert store.try_create("evt_2", 60) is True


def test_concurrent_claims_have_one_winner():
    store = InMemoryIdempotencyStore()

    with ThreadPoolExecutor(max_workers=50) as executor:
        results = list(executor.map(lambda _: store.try_create("evt_race", 60), range(50)))

    assert results.count(True) == 1


def test_key_expires_after_ttl():
    clock = FakeClock()
    store = InMemoryIdempotencyStore(clock=clock)

    assert store.try_create("evt_1", 10) is True
    clock.now = 9.9
    assert store.try_create("evt_1", 10) is False
    clock.now = 10.0
    assert not store.exists("evt_1")
    assert store.try_create("evt_1", 10) is True


def test_release_allows_retry():
    store = InMemoryIdempotencyStore()
    store.try_create("evt_1", 60)

    store.release("evt_1")

    assert not store.exists("evt_1")
    assert store.try_create("evt_1", 60) is True


@pytest.mark.parametrize("ttl", [0, -5])
def test_non_positive_ttl_rejected(ttl):
    with pytest.raises(ValueError):
        InMemoryIdempotencyStore().try_create("evt_1", ttl)


def test_redis_store_uses_set_nx_with_expiry():
    client = MagicMock()
    client.set.return_value = True
    store = RedisIdempotencyStore(client, fail_open=True)

    assert store.try_create("k", 1.5) is True

    client.set.assert_called_once_with("idem:k", "1", nx=True, px=1500)


def test_redis_store_reports_existing_key():
    client = MagicMock()
    client.set.return_value = None
    client.exists.return_value = 1
    store = RedisIdempotencyStore(client, fail_open=True)

    assert store.try_create("k", 60) is False
    assert store.exists("k") is True


def test_redis_release_deletes_key():
    client = MagicMock()
    store = RedisIdempotencyStore(client, fail_open=True)

    store.release("k")

    client.delete.assert_called_once_with("idem:k")


def test_redis_outage_fails_open():
    client = MagicMock()
    client.set.side_effect = redis.ConnectionError("connection refused")
    client.exists.side_effect = redis.ConnectionError("connection refused")
    store = RedisIdempotencyStore(client, fail_open=True)

    assert store.try_create("k", 60) is True
    assert store.exists("k") is False


def test_redis_outage_fails_closed():
    client = MagicMock()
    client.set.side_effect = redis.ConnectionError("connection refused")
    store = RedisIdempotencyStore(client, fail_open=False)

    with pytest.raises(IdempotencyStoreUnavailable):
        store.try_create("k", 60)


def test_get_idempotency_store_without_redis(monkeypatch):
    monkeypatch.setattr(config, "REDIS_URL", None)
    monkeypatch.setattr(idempotency_store, "_store", None)

    store = get_idempotency_store()

    assert isinstance(store, InMemoryIdempotencyStore)
    assert get_idempotency_store() is store
