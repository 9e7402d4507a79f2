"""Test the idempotency store."""
import pytest

from core.resilience.idempotency import (
    DuplicateInFlight,
    IdempotencyStatus,
    IdempotencyStore,
    generate_idempotency_key,
)


def test_keys_are_scoped_per_owner_and_operation():
    a = generate_idempotency_key("tasks.create", "u1", "k")
    assert a == generate_idempotency_key("tasks.create", "u1", "k")
    assert a != generate_idempotency_key("tasks.create", "u2", "k")
    assert a != generate_idempotency_key("tasks.comment", "u1", "k")


def test_reserve_then_complete():
    store = IdempotencyStore()
    assert store.reserve("k", "u1", "op") is not None
    assert store.reserve("k", "u1", "op") is None
    store.complete("k", {"id": 1})
    record = store.check("k")
    assert record.status == IdempotencyStatus.COMPLETED
    assert record.result == {"id": 1}


def test_expired_records_are_dropped():
    store = IdempotencyStore(default_ttl_seconds=0)
    store.reserve("k", "u1", "op")
    assert store.check("k") is None
    assert store.cleanup_expired() == 0


@pytest.mark.asyncio
async def test_run_once_replays_result():
    store = IdempotencyStore()
    calls = []

    async def create():
        calls.append(1)
        return "task-1"

    assert await store.run_once("k", "u1", "op", create) == ("task-1", False)
    assert await store.run_once("k", "u1", "op", create) == ("task-1", True)
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_run_once_without_key_always_runs():
    store = IdempotencyStore()
    calls = []

    async def create():
        calls.append(1)
        return len(calls)

    await store.run_once(None, "u1", "op", create)
    await store.run_once(None, "u1", "op", create)
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_failed_attempt_releases_key():
    store = IdempotencyStore()

    async def boom():
        raise RuntimeError("store down")

    async def ok():
        return "done"

    with pytest.raises(RuntimeError):
        await store.run_once("k", "u1", "op", boom)
    assert await store.run_once("k", "u1", "op", ok) == ("done", False)


@pytest.mark.asyncio
async def test_in_flight_duplicate_rejected():
    store = IdempotencyStore()
    store.reserve(generate_idempotency_key("op", "u1", "k"), "u1", "op")

    async def ok():
        return "done"

    with pytest.raises(DuplicateInFlight):
        await store.run_once("k", "u1", "op", ok)


def test_reserve_sweeps_expired_keys():
    store = IdempotencyStore(default_ttl_seconds=0)
    store.reserve("old", "u1", "op")
    store.reserve("new", "u1", "op")
    assert "old" not in store._records
    assert list(store._records) == ["new"]
