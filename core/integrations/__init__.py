"""
Opsdesk Core Integrations: outbound delivery to external systems.

- WebhookEmitter: signed event delivery used by the push notifier
"""
from core.integrations.webhooks import (
    WebhookDelivery,
    WebhookEmitter,
    WebhookEvent,
    WebhookRegistration,
    sign_payload,
)

__all__ = [
    "WebhookDelivery",
    "WebhookEmitter",
    "WebhookEvent",
    "WebhookRegistration",
    "sign_payload",
]
