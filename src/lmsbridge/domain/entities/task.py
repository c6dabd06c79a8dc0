"""Deferred task entity."""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class TaskType(Enum):
    """Deferred task types."""

    SYNCHRONIZE_CHANNEL = "synchronize_channel"
    SYNCHRONIZE_USER = "synchronize_user"
    UNENROL_USER_EVERYWHERE = "unenrol_user_everywhere"
    RESYNC_ALL = "resync_all"


@dataclass(frozen=True)
class Task:
    """Unit of deferred work.

    Attributes:
        type: Task type.
        payload: Task-specific data.
        attempt: Number of failed executions so far.
        created_at: Task creation time.
    """

    type: TaskType
    payload: dict[str, Any]
    attempt: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def get_identity_key(self) -> str:
        """Get identity key for duplicate detection.

        Returns:
            Unique key based on task type and payload.
        """
        if self.type == TaskType.SYNCHRONIZE_CHANNEL:
            return f"channel:{self.payload.get('channel_id', '')}"
        elif self.type == TaskType.SYNCHRONIZE_USER:
            course_id = self.payload.get("course_id") or "all"
            return f"user:{self.payload.get('user_id', '')}:{course_id}"
        elif self.type == TaskType.UNENROL_USER_EVERYWHERE:
            return f"unenrol:{self.payload.get('user_id', '')}"
        elif self.type == TaskType.RESYNC_ALL:
            return "resync:all"
        return f"{self.type.value}:unknown"

    def next_attempt(self) -> "Task":
        """Return a copy of this task for a retry."""
        return replace(self, attempt=self.attempt + 1)
