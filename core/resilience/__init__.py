"""
Opsdesk Core Resilience: deduplication of non-idempotent operations.

- IdempotencyStore: remember results per client key so retries replay them
"""
from core.resilience.idempotency import (
    DuplicateInFlight,
    IdempotencyRecord,
    IdempotencyStatus,
    IdempotencyStore,
    generate_idempotency_key,
)

__all__ = [
    "DuplicateInFlight",
    "IdempotencyRecord",
    "IdempotencyStatus",
    "IdempotencyStore",
    "generate_idempotency_key",
]
