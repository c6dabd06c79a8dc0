"""Reconciliation work units and results."""

from dataclasses import dataclass, field

from lmsbridge.domain.entities.member import DesiredMember


@dataclass(frozen=True)
class SyncScope:
    """One channel worth of reconciliation work.

    Attributes:
        channel_id: Remote channel ID.
        desired_members: Members the channel should contain.
        course_id: Course the channel belongs to.
        group_id: Group for group channels, None for course channels.
    """

    channel_id: str
    desired_members: tuple[DesiredMember, ...]
    course_id: int
    group_id: int | None = None


@dataclass
class SyncResult:
    """Counters for one reconciliation pass."""

    enrolled: int = 0
    updated: int = 0
    removed: int = 0
    unchanged: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def mutations(self) -> int:
        """Number of remote mutations performed."""
        return self.enrolled + self.updated + self.removed

    def merge(self, other: "SyncResult") -> "SyncResult":
        """Add another result's counters into this one."""
        self.enrolled += other.enrolled
        self.updated += other.updated
        self.removed += other.removed
        self.unchanged += other.unchanged
        self.failed += other.failed
        self.errors.extend(other.errors)
        return self
