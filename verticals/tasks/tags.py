"""Tags, the reserved priority tag, and deterministic tag colors.

The priority flag is stored as a sentinel entry in the task's tag set. It is
never shown as a tag: ``display_tags`` is the one place that filters it out,
and ``is_priority`` exposes it as a boolean.
"""

from typing import Iterable, Optional, Sequence

from verticals.tasks.models.schemas import TagView, Task, unique

_HASH_MASK = 0xFFFFFFFF


def tag_hash(tag: str) -> int:
    """32-bit polynomial hash over code points. Stable across processes."""
    h = 0
    for ch in tag:
        h = (h * 31 + ord(ch)) & _HASH_MASK
    return h


def tag_color(tag: str, palette: Sequence[str]) -> str:
    return palette[tag_hash(tag) % len(palette)]


def is_priority(task: Task, sentinel: str) -> bool:
    return sentinel in task.tags


def toggle_priority(tags: list[str], sentinel: str) -> list[str]:
    if sentinel in tags:
        return [t for t in tags if t != sentinel]
    return [*tags, sentinel]


def normalize_tags(raw: Iterable[str], sentinel: str) -> list[str]:
    """Trim, drop blanks and duplicates, and drop the sentinel."""
    cleaned = (t.strip() for t in raw)
    return unique([t for t in cleaned if t and t != sentinel])


def merge_edited_tags(
    current: list[str],
    edited: Iterable[str],
    sentinel: str,
    is_priority: Optional[bool] = None,
) -> list[str]:
    """Tags after a full edit.

    The edit replaces the visible tags. The priority flag survives the edit
    unless ``is_priority`` says otherwise.
    """
    keep_flag = (sentinel in current) if is_priority is None else is_priority
    tags = normalize_tags(edited, sentinel)
    if keep_flag:
        tags.append(sentinel)
    return tags


def display_tags(task: Task, palette: Sequence[str], sentinel: str) -> list[TagView]:
    return [
        TagView(label=tag, color=tag_color(tag, palette))
        for tag in task.tags
        if tag != sentinel
    ]
