"""Task vertical configuration.

Thresholds, identities and feature flags as frozen dataclasses:
- Defaults work out of the box for local runs and tests
- Immutability prevents accidental mutation at runtime
- ``from_env`` reads TASKS_* overrides
"""

import os
from dataclasses import dataclass, field


DEFAULT_TAG_PALETTE: tuple[str, ...] = (
    "slate",
    "red",
    "orange",
    "amber",
    "lime",
    "emerald",
    "teal",
    "sky",
    "indigo",
    "violet",
    "fuchsia",
    "rose",
)

WATERMARK_BACKENDS = ("session", "receipts")


def _csv(value: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in value.split(",") if part.strip())


def _flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class NotificationConfig:
    """Outbound notification settings."""

    webhook_url: str = ""
    webhook_secret: str = ""
    webhook_max_retries: int = 1
    comment_preview_length: int = 50


@dataclass(frozen=True)
class TaskConfig:
    """Complete configuration for the task vertical.

    Usage::

        config = TaskConfig.from_env()
        if viewer_id in config.admin_user_ids:
            ...
    """

    priority_tag: str = "__priority__"
    tag_palette: tuple[str, ...] = DEFAULT_TAG_PALETTE
    admin_user_ids: frozenset[str] = frozenset()
    watermark_backend: str = "receipts"
    # Completing a task leaves the shock marker in place unless enabled.
    clear_shock_on_complete: bool = False
    notifications: NotificationConfig = field(default_factory=NotificationConfig)

    def __post_init__(self):
        if not self.tag_palette:
            raise ValueError("tag_palette must not be empty")
        if self.watermark_backend not in WATERMARK_BACKENDS:
            raise ValueError(
                f"watermark_backend must be one of {WATERMARK_BACKENDS}, "
                f"got {self.watermark_backend!r}"
            )

    def is_admin(self, user_id: str) -> bool:
        return user_id in self.admin_user_ids

    @classmethod
    def default(cls) -> "TaskConfig":
        return cls()

    @classmethod
    def from_env(cls, prefix: str = "TASKS_") -> "TaskConfig":
        """Create config from environment variables.

        Example: TASKS_ADMIN_USER_IDS=thalia,esteban
        """
        overrides = {}

        admins = os.getenv(f"{prefix}ADMIN_USER_IDS")
        if admins:
            overrides["admin_user_ids"] = frozenset(_csv(admins))

        priority_tag = os.getenv(f"{prefix}PRIORITY_TAG")
        if priority_tag:
            overrides["priority_tag"] = priority_tag

        palette = os.getenv(f"{prefix}TAG_PALETTE")
        if palette:
            overrides["tag_palette"] = _csv(palette)

        backend = os.getenv(f"{prefix}WATERMARK_BACKEND")
        if backend:
            overrides["watermark_backend"] = backend.strip().lower()

        clear_shock = os.getenv(f"{prefix}CLEAR_SHOCK_ON_COMPLETE")
        if clear_shock:
            overrides["clear_shock_on_complete"] = _flag(clear_shock)

        overrides["notifications"] = NotificationConfig(
            webhook_url=os.getenv(f"{prefix}WEBHOOK_URL", ""),
            webhook_secret=os.getenv(f"{prefix}WEBHOOK_SECRET", ""),
            webhook_max_retries=int(os.getenv(f"{prefix}WEBHOOK_MAX_RETRIES", "1")),
            comment_preview_length=int(os.getenv(f"{prefix}COMMENT_PREVIEW_LENGTH", "50")),
        )

        return cls(**overrides)
