"""Shared fixtures: in-memory SQLite, task factories, a wired TaskService."""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from core.database import build_session_factory, init_db
from core.resilience.idempotency import IdempotencyStore
from verticals.tasks.config import TaskConfig
from verticals.tasks.notifications import InMemoryNotifier, NotificationDispatcher
from verticals.tasks.repository import ReadReceiptRepository, TaskRepository
from verticals.tasks.service import TaskService
from verticals.tasks.unread import ReadReceiptWatermarkStore, UnreadTracker

from tests.factories import TODAY


@pytest.fixture
def config():
    return TaskConfig(admin_user_ids=frozenset({"admin"}))


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine):
    factory = build_session_factory(engine)
    async with factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def repo(session):
    return TaskRepository(session)


@pytest.fixture
def notifier():
    return InMemoryNotifier()


@pytest.fixture
def service(session, repo, notifier, config):
    return TaskService(
        tasks=repo,
        tracker=UnreadTracker(ReadReceiptWatermarkStore(ReadReceiptRepository(session))),
        dispatcher=NotificationDispatcher(notifier),
        config=config,
        idempotency=IdempotencyStore(),
        today=lambda: TODAY,
    )
