"""Notification collaborator.

``notify(user_id, message, kind, task_id)`` delivers one message to one
user. Delivery is fire-and-forget from the task engine's point of view: the
dispatcher logs a failed delivery and carries on, so a broken push gateway
never fails the mutation that triggered it.

Notifiers:
- InMemoryNotifier: records messages (tests, local runs)
- DatabaseNotifier: persists rows read by GET /api/notifications
- WebhookNotifier: signed POST to a push gateway via WebhookEmitter
- CompositeNotifier: fan-out to several of the above
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Protocol

from core.integrations.webhooks import WebhookEmitter, WebhookEvent
from core.logging import get_logger

logger = get_logger(__name__)


class NotificationKind(str, Enum):
    ASSIGNMENT = "assignment"
    COMMENT = "comment"
    SHOCK = "shock"


_WEBHOOK_EVENTS = {
    NotificationKind.ASSIGNMENT: WebhookEvent.TASK_ASSIGNED,
    NotificationKind.COMMENT: WebhookEvent.TASK_COMMENTED,
    NotificationKind.SHOCK: WebhookEvent.TASK_SHOCKED,
}


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

def assignment_message(title: str) -> str:
    return f'You have been assigned a new task: "{title}"'


def comment_message(title: str, text: str, preview_length: int = 50) -> str:
    preview = text[:preview_length]
    if len(text) > preview_length:
        preview += "..."
    return f'New comment on task "{title}": {preview}'


def shock_message(title: str, actor_id: str) -> str:
    return f'{actor_id} is waiting on you: "{title}"'


# ---------------------------------------------------------------------------
# Notifiers
# ---------------------------------------------------------------------------

class Notifier(Protocol):
    async def notify(
        self, user_id: str, message: str, kind: NotificationKind, task_id: str | None = None
    ) -> None: ...


@dataclass
class SentNotification:
    user_id: str
    message: str
    kind: NotificationKind
    task_id: str | None = None
    sent_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class InMemoryNotifier:
    def __init__(self):
        self.sent: list[SentNotification] = []

    async def notify(self, user_id, message, kind, task_id=None) -> None:
        self.sent.append(SentNotification(user_id, message, NotificationKind(kind), task_id))

    def for_user(self, user_id: str) -> list[SentNotification]:
        return [n for n in self.sent if n.user_id == user_id]


class DatabaseNotifier:
    def __init__(self, repository):
        self.repository = repository

    async def notify(self, user_id, message, kind, task_id=None) -> None:
        await self.repository.add(user_id=user_id, kind=NotificationKind(kind).value,
                                  message=message, task_id=task_id)


class WebhookNotifier:
    def __init__(self, emitter: WebhookEmitter):
        self.emitter = emitter

    async def notify(self, user_id, message, kind, task_id=None) -> None:
        kind = NotificationKind(kind)
        await self.emitter.emit(
            _WEBHOOK_EVENTS[kind].value,
            {"user_id": user_id, "message": message, "kind": kind.value, "task_id": task_id},
        )


class CompositeNotifier:
    def __init__(self, notifiers: Iterable[Notifier]):
        self.notifiers = list(notifiers)

    async def notify(self, user_id, message, kind, task_id=None) -> None:
        for notifier in self.notifiers:
            await notifier.notify(user_id, message, kind, task_id)


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------

class NotificationDispatcher:
    """Sends one message per recipient and never raises."""

    def __init__(self, notifier: Notifier):
        self.notifier = notifier

    async def send(
        self,
        recipients: Iterable[str],
        message: str,
        kind: NotificationKind,
        task_id: str | None = None,
    ) -> int:
        delivered = 0
        for user_id in recipients:
            try:
                await self.notifier.notify(user_id, message, kind, task_id)
            except Exception:
                logger.exception(
                    "tasks.notification.failed",
                    extra={"user_id": user_id, "kind": kind.value, "task_id": task_id},
                )
                continue
            delivered += 1
        return delivered
