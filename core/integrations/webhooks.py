"""
Opsdesk Webhook Emitter: outbound event delivery.

Emits events to registered webhook endpoints (push gateways, chat bridges)
with:
- HMAC-SHA256 payload signing
- Optional retry with exponential backoff
- Fan-out to multiple subscribers
- Delivery tracking with a bounded history
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
import asyncio
from collections import deque
import hashlib
import hmac
import json
import time
import uuid

import httpx

from core.logging import get_logger

logger = get_logger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class WebhookEvent(str, Enum):
    """Webhook event types."""
    TASK_ASSIGNED = "task.assigned"
    TASK_COMMENTED = "task.commented"
    TASK_SHOCKED = "task.shocked"


@dataclass
class WebhookRegistration:
    """A registered webhook endpoint."""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    url: str = ""
    events: list[str] = field(default_factory=list)  # Empty = all events
    secret: str = ""  # HMAC signing secret
    active: bool = True
    created_at: datetime = field(default_factory=_now)
    description: str = ""


@dataclass
class WebhookDelivery:
    """Record of a webhook delivery attempt."""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    registration_id: str = ""
    event: str = ""
    url: str = ""
    status_code: int = 0
    latency_ms: float = 0.0
    attempt: int = 1
    success: bool = False
    error: str | None = None
    delivered_at: datetime = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "registration_id": self.registration_id,
            "event": self.event,
            "url": self.url,
            "status_code": self.status_code,
            "latency_ms": round(self.latency_ms, 1),
            "attempt": self.attempt,
            "success": self.success,
            "error": self.error,
            "delivered_at": self.delivered_at.isoformat(),
        }


def sign_payload(payload: str, secret: str) -> str:
    """Generate HMAC-SHA256 signature for a payload."""
    return hmac.new(
        secret.encode("utf-8"),
        payload.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


class WebhookEmitter:
    """Emits webhook events to registered endpoints."""

    BACKOFF_BASE = 1.0

    def __init__(
        self,
        max_retries: int = 1,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        history_limit: int = 500,
    ):
        self.max_retries = max(1, max_retries)
        self.timeout = timeout
        self._transport = transport
        self._registrations: dict[str, WebhookRegistration] = {}
        self._deliveries: deque[WebhookDelivery] = deque(maxlen=history_limit)

    def register(self, registration: WebhookRegistration) -> str:
        """Register a webhook endpoint. Returns registration ID."""
        self._registrations[registration.id] = registration
        return registration.id

    async def emit(self, event: str, payload: dict[str, Any]) -> list[WebhookDelivery]:
        """
        Emit an event to all matching registrations.
        Fan-out: delivers to all matching endpoints concurrently.
        """
        matching = [
            reg for reg in self._registrations.values()
            if reg.active and (not reg.events or event in reg.events)
        ]
        if not matching:
            return []

        deliveries = await asyncio.gather(
            *(self._deliver(reg, event, payload) for reg in matching)
        )
        self._deliveries.extend(deliveries)
        return list(deliveries)

    async def _deliver(
        self,
        registration: WebhookRegistration,
        event: str,
        payload: dict[str, Any],
    ) -> WebhookDelivery:
        """Deliver a webhook to a single endpoint."""
        body = json.dumps(payload, default=str, sort_keys=True)
        headers = {
            "Content-Type": "application/json",
            "X-Opsdesk-Event": event,
            "X-Opsdesk-Delivery": str(uuid.uuid4()),
        }
        if registration.secret:
            headers["X-Opsdesk-Signature"] = f"sha256={sign_payload(body, registration.secret)}"

        last_error: str | None = None
        latency = 0.0

        for attempt in range(1, self.max_retries + 1):
            start = time.monotonic()
            try:
                async with httpx.AsyncClient(transport=self._transport) as client:
                    resp = await client.post(
                        registration.url,
                        content=body,
                        headers=headers,
                        timeout=self.timeout,
                    )
                latency = (time.monotonic() - start) * 1000

                if 200 <= resp.status_code < 300:
                    return WebhookDelivery(
                        registration_id=registration.id,
                        event=event,
                        url=registration.url,
                        status_code=resp.status_code,
                        latency_ms=latency,
                        attempt=attempt,
                        success=True,
                    )
                last_error = f"HTTP {resp.status_code}"
            except httpx.HTTPError as exc:
                latency = (time.monotonic() - start) * 1000
                last_error = str(exc) or exc.__class__.__name__

            if attempt < self.max_retries:
                await asyncio.sleep(self.BACKOFF_BASE * (2 ** (attempt - 1)))

        logger.warning(
            "webhook.delivery.failed",
            extra={"url": registration.url, "event": event, "error": last_error},
        )
        return WebhookDelivery(
            registration_id=registration.id,
            event=event,
            url=registration.url,
            status_code=0,
            latency_ms=latency,
            attempt=self.max_retries,
            success=False,
            error=last_error,
        )

    def get_deliveries(self, event: str | None = None, limit: int = 50) -> list[WebhookDelivery]:
        """Query delivery history, newest first."""
        results = list(self._deliveries)
        if event:
            results = [d for d in results if d.event == event]
        return sorted(results, key=lambda d: d.delivered_at, reverse=True)[:limit]
