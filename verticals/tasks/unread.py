"""Unread comment tracking with per-(viewer, task) watermarks.

A watermark is the timestamp of the newest foreign comment the viewer has
acknowledged. Comments written by the viewer are never unread. The watermark
only moves forward.

Two stores:
- SessionWatermarkStore: in-process, one map per viewer. Nothing is shared
  across processes or devices.
- ReadReceiptWatermarkStore: persisted read receipts, so every device of a
  user converges on the same watermark.
"""
from __future__ import annotations
from datetime import datetime
from typing import Iterable, Protocol

from verticals.tasks.models.schemas import Task


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def latest_foreign_comment_at(task: Task, viewer_id: str) -> datetime | None:
    stamps = [c.created_at for c in task.comments if c.author_id != viewer_id]
    return max(stamps) if stamps else None


def count_unread(task: Task, viewer_id: str, watermark: datetime | None) -> int:
    return sum(
        1
        for c in task.comments
        if c.author_id != viewer_id and (watermark is None or c.created_at > watermark)
    )


def latest_unread_at(task: Task, viewer_id: str, watermark: datetime | None) -> datetime | None:
    stamps = [
        c.created_at
        for c in task.comments
        if c.author_id != viewer_id and (watermark is None or c.created_at > watermark)
    ]
    return max(stamps) if stamps else None


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------

class WatermarkStore(Protocol):
    async def get(self, user_id: str, task_id: str) -> datetime | None: ...

    async def get_many(self, user_id: str, task_ids: list[str]) -> dict[str, datetime]: ...

    async def set(self, user_id: str, task_id: str, seen_at: datetime) -> None: ...


class SessionWatermarkStore:
    """In-process watermark map, keyed by user then task."""

    def __init__(self):
        self._seen: dict[str, dict[str, datetime]] = {}

    async def get(self, user_id: str, task_id: str) -> datetime | None:
        return self._seen.get(user_id, {}).get(task_id)

    async def get_many(self, user_id: str, task_ids: list[str]) -> dict[str, datetime]:
        seen = self._seen.get(user_id, {})
        return {tid: seen[tid] for tid in task_ids if tid in seen}

    async def set(self, user_id: str, task_id: str, seen_at: datetime) -> None:
        self._seen.setdefault(user_id, {})[task_id] = seen_at


class ReadReceiptWatermarkStore:
    """Watermarks persisted as read receipts through the repository layer."""

    def __init__(self, receipts):
        self.receipts = receipts

    async def get(self, user_id: str, task_id: str) -> datetime | None:
        found = await self.receipts.get_many(user_id, [task_id])
        return found.get(task_id)

    async def get_many(self, user_id: str, task_ids: list[str]) -> dict[str, datetime]:
        return await self.receipts.get_many(user_id, task_ids)

    async def set(self, user_id: str, task_id: str, seen_at: datetime) -> None:
        await self.receipts.upsert(user_id, task_id, seen_at)


# ---------------------------------------------------------------------------
# Tracker
# ---------------------------------------------------------------------------

class UnreadTracker:
    """Seeds, counts and advances watermarks over a WatermarkStore."""

    def __init__(self, store: WatermarkStore):
        self.store = store

    async def seed_if_absent(self, task: Task, viewer_id: str) -> bool:
        """Treat comments that predate the viewer's first look as read.

        Returns True when a watermark was written.
        """
        if await self.store.get(viewer_id, task.id) is not None:
            return False
        latest = latest_foreign_comment_at(task, viewer_id)
        if latest is None:
            return False
        await self.store.set(viewer_id, task.id, latest)
        return True

    async def seed_many(self, tasks: Iterable[Task], viewer_id: str) -> int:
        tasks = list(tasks)
        existing = await self.store.get_many(viewer_id, [t.id for t in tasks])
        seeded = 0
        for task in tasks:
            if task.id in existing:
                continue
            latest = latest_foreign_comment_at(task, viewer_id)
            if latest is None:
                continue
            await self.store.set(viewer_id, task.id, latest)
            seeded += 1
        return seeded

    async def unread_count(self, task: Task, viewer_id: str) -> int:
        watermark = await self.store.get(viewer_id, task.id)
        return count_unread(task, viewer_id, watermark)

    async def mark_seen(self, task: Task, viewer_id: str) -> bool:
        """Advance the watermark to the newest foreign comment.

        Returns True if it moved. It never moves backwards.
        """
        latest = latest_foreign_comment_at(task, viewer_id)
        if latest is None:
            return False
        current = await self.store.get(viewer_id, task.id)
        if current is not None and latest <= current:
            return False
        await self.store.set(viewer_id, task.id, latest)
        return True

    async def watermarks(self, tasks: Iterable[Task], viewer_id: str) -> dict[str, datetime | None]:
        tasks = list(tasks)
        found = await self.store.get_many(viewer_id, [t.id for t in tasks])
        return {t.id: found.get(t.id) for t in tasks}
