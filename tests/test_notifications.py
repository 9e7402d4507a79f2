"""Test notification messages, dispatch and webhook delivery."""
import json

import httpx
import pytest

from core.integrations.webhooks import WebhookEmitter, WebhookEvent, WebhookRegistration, sign_payload
from verticals.tasks.notifications import (
    CompositeNotifier,
    InMemoryNotifier,
    NotificationDispatcher,
    NotificationKind,
    WebhookNotifier,
    assignment_message,
    comment_message,
    shock_message,
)


def test_messages():
    assert "Order toner" in assignment_message("Order toner")
    assert comment_message("T", "short") == 'New comment on task "T": short'
    assert comment_message("T", "y" * 51, 50).endswith("y" * 50 + "...")
    assert shock_message("T", "boss").startswith("boss")


class _Broken:
    async def notify(self, user_id, message, kind, task_id=None):
        if user_id == "u1":
            raise ConnectionError("gateway down")


@pytest.mark.asyncio
async def test_dispatcher_survives_failures(caplog):
    dispatcher = NotificationDispatcher(_Broken())
    delivered = await dispatcher.send(["u1", "u2"], "hi", NotificationKind.SHOCK, "t1")
    assert delivered == 1
    assert "tasks.notification.failed" in caplog.text


@pytest.mark.asyncio
async def test_in_memory_notifier_records():
    notifier = InMemoryNotifier()
    await NotificationDispatcher(notifier).send(["u1", "u2"], "hi", NotificationKind.COMMENT)
    assert [n.user_id for n in notifier.for_user("u2")] == ["u2"]


def _emitter(handler, **kwargs) -> WebhookEmitter:
    return WebhookEmitter(transport=httpx.MockTransport(handler), **kwargs)


@pytest.mark.asyncio
async def test_webhook_delivery_is_signed():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200)

    emitter = _emitter(handler)
    emitter.register(WebhookRegistration(url="https://push.example/hook", secret="s3cret"))
    deliveries = await emitter.emit(WebhookEvent.TASK_SHOCKED.value, {"user_id": "u2"})

    assert deliveries[0].success
    request = seen[0]
    body = request.content.decode()
    assert json.loads(body) == {"user_id": "u2"}
    assert request.headers["X-Opsdesk-Event"] == "task.shocked"
    assert request.headers["X-Opsdesk-Signature"] == f"sha256={sign_payload(body, 's3cret')}"


@pytest.mark.asyncio
async def test_webhook_filters_events():
    emitter = _emitter(lambda request: httpx.Response(200))
    emitter.register(
        WebhookRegistration(url="https://push.example/hook", events=[WebhookEvent.TASK_ASSIGNED.value])
    )
    assert await emitter.emit(WebhookEvent.TASK_COMMENTED.value, {}) == []


@pytest.mark.asyncio
async def test_webhook_failure_is_recorded():
    def handler(request):
        raise httpx.ConnectError("refused")

    emitter = _emitter(handler)
    emitter.register(WebhookRegistration(url="https://push.example/hook"))
    deliveries = await emitter.emit(WebhookEvent.TASK_ASSIGNED.value, {})
    assert not deliveries[0].success
    assert emitter.get_deliveries()[0].error


@pytest.mark.asyncio
async def test_composite_notifier_fans_out_to_webhook():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(202)

    emitter = _emitter(handler)
    emitter.register(WebhookRegistration(url="https://push.example/hook"))
    memory = InMemoryNotifier()
    notifier = CompositeNotifier([memory, WebhookNotifier(emitter)])

    await notifier.notify("u2", "hurry", NotificationKind.SHOCK, "t1")
    assert memory.sent[0].user_id == "u2"
    assert seen == [{"kind": "shock", "message": "hurry", "task_id": "t1", "user_id": "u2"}]


@pytest.mark.asyncio
async def test_delivery_history_is_bounded():
    emitter = _emitter(lambda request: httpx.Response(200), history_limit=2)
    emitter.register(WebhookRegistration(url="https://push.example/hook"))
    emitted = []
    for n in range(3):
        emitted += await emitter.emit(WebhookEvent.TASK_ASSIGNED.value, {"n": n})
    kept = {d.id for d in emitter.get_deliveries()}
    assert kept == {emitted[1].id, emitted[2].id}
