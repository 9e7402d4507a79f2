"""
Opsdesk Idempotency Store: dedup for non-idempotent mutations.

Creating a task and appending a comment must not run twice when a client
retries after a lost response. Callers send an ``Idempotency-Key``; the
store remembers the result for the key (scoped to the caller) and hands it
back on a repeat. A failed attempt releases the key so a retry can run.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, TypeVar
import hashlib
import json

T = TypeVar("T")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class IdempotencyStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class DuplicateInFlight(Exception):
    """A request with the same key is still being processed."""


@dataclass
class IdempotencyRecord:
    """Record of an idempotent operation."""
    key: str
    owner_id: str
    operation: str
    result: Any = None
    status: IdempotencyStatus = IdempotencyStatus.IN_PROGRESS
    created_at: datetime = field(default_factory=_now)
    completed_at: datetime | None = None
    expires_at: datetime | None = None

    @property
    def is_expired(self) -> bool:
        if self.expires_at is None:
            return False
        return _now() >= self.expires_at


def generate_idempotency_key(operation: str, owner_id: str, client_key: str) -> str:
    """
    Derive the storage key from the client's header value.
    Two users sending the same header value never collide.
    """
    data = json.dumps({"op": operation, "owner": owner_id, "key": client_key}, sort_keys=True)
    return hashlib.sha256(data.encode()).hexdigest()[:32]


class IdempotencyStore:
    """In-memory idempotency store. Replace backing store for multi-process deployments."""

    def __init__(self, default_ttl_seconds: int = 3600):
        self._records: dict[str, IdempotencyRecord] = {}
        self.default_ttl = default_ttl_seconds

    def check(self, key: str) -> IdempotencyRecord | None:
        record = self._records.get(key)
        if record is None:
            return None
        if record.is_expired:
            del self._records[key]
            return None
        return record

    def reserve(self, key: str, owner_id: str, operation: str) -> IdempotencyRecord | None:
        """Mark a key in progress. Returns None if it is already taken.

        Expired records are swept first, so the store only holds live keys.
        """
        self.cleanup_expired()
        if self.check(key) is not None:
            return None
        record = IdempotencyRecord(
            key=key,
            owner_id=owner_id,
            operation=operation,
            expires_at=_now() + timedelta(seconds=self.default_ttl),
        )
        self._records[key] = record
        return record

    def complete(self, key: str, result: Any) -> bool:
        record = self._records.get(key)
        if not record:
            return False
        record.status = IdempotencyStatus.COMPLETED
        record.result = result
        record.completed_at = _now()
        return True

    def release(self, key: str) -> bool:
        """Drop a key after a failed attempt so it can be retried."""
        return self._records.pop(key, None) is not None

    def cleanup_expired(self) -> int:
        now = _now()
        expired = [k for k, v in self._records.items() if v.expires_at and now >= v.expires_at]
        for k in expired:
            del self._records[k]
        return len(expired)

    async def run_once(
        self,
        client_key: str | None,
        owner_id: str,
        operation: str,
        fn: Callable[[], Awaitable[T]],
    ) -> tuple[T, bool]:
        """
        Run ``fn`` at most once per (operation, owner, client_key).

        Returns ``(result, replayed)``. Without a client key the call is
        not deduplicated.
        """
        if not client_key:
            return await fn(), False

        key = generate_idempotency_key(operation, owner_id, client_key)
        existing = self.check(key)
        if existing is not None:
            if existing.status == IdempotencyStatus.COMPLETED:
                return existing.result, True
            raise DuplicateInFlight(f"{operation} with this Idempotency-Key is in progress")

        self.reserve(key, owner_id, operation)
        try:
            result = await fn()
        except Exception:
            self.release(key)
            raise
        self.complete(key, result)
        return result, False
