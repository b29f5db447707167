"""Value types shared by the monitor components."""

import itertools
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path


class StatusKind(StrEnum):
    """Divergence of a local branch relative to its upstream."""

    CLEAN = "clean"
    AHEAD = "ahead"
    BEHIND = "behind"
    DIVERGED = "diverged"


class DismissalScope(StrEnum):
    """How long a user dismissal lasts."""

    SESSION = "session"
    TIMEBOXED = "timeboxed"
    PERMANENT = "permanent"


def dedup_key(branch: str, status_kind: str) -> str:
    """Builds the normalized `branch:status` key used for dedup and suppression.

    Args:
        branch (str): The branch name.
        status_kind (str): The status kind (e.g. 'behind').

    Returns:
        str: The trimmed, case-folded key.
    """
    return f"{(branch or '').strip().casefold()}:{(status_kind or '').strip().casefold()}"


@dataclass(frozen=True)
class RepositoryRef:
    """A watched repository as supplied by the provider."""

    id: str
    name: str
    path: Path


@dataclass(frozen=True)
class StatusSnapshot:
    """Canonical synchronization state of one repository at one point in time.

    Attributes:
        repository_id (str): The repository the snapshot belongs to.
        ahead (int): Local commits missing on the remote.
        behind (int): Remote commits missing locally.
        has_changes (bool): Whether the working tree has uncommitted changes.
        branch (str): The checked-out branch ("" when unknown).
        captured_at (float): Unix timestamp of the capture.
    """

    repository_id: str = ""
    ahead: int = 0
    behind: int = 0
    has_changes: bool = False
    branch: str = ""
    captured_at: float = 0.0


@dataclass(frozen=True)
class CommitPointer:
    """Local and remote heads of a repository plus the remote head's author."""

    repository_id: str
    local_hash: str
    remote_hash: str
    author_name: str = ""
    author_email: str = ""
    subject: str = ""


_record_ids = itertools.count(1)


def next_record_id() -> str:
    """Returns a process-unique notification id."""
    return f"n{next(_record_ids)}"


@dataclass(frozen=True)
class NotificationRecord:
    """A single notification, owned by the notification center until removed.

    Attributes:
        message (str): Display text (may span several lines).
        repository_id (str): The originating repository ("" for system notices).
        repository_name (str): Human-readable repository name.
        branch (str): The branch the notification refers to.
        status_kind (StatusKind | None): Set for status alerts only.
        is_status_alert (bool): Whether closing opens the duration chooser.
        level (str): One of 'info', 'warning', 'error', 'success'.
        created_at (float): Unix timestamp of creation.
        id (str): Unique identifier.
    """

    message: str
    repository_id: str = ""
    repository_name: str = ""
    branch: str = ""
    status_kind: StatusKind | None = None
    is_status_alert: bool = False
    level: str = "info"
    created_at: float = 0.0
    id: str = field(default_factory=next_record_id)

    @property
    def key(self) -> str | None:
        """The dedup key for status alerts, None for plain notifications."""
        if not self.is_status_alert or self.status_kind is None:
            return None
        return dedup_key(self.branch, self.status_kind)


@dataclass(frozen=True)
class DismissalRecord:
    """A user's request to stop seeing a `branch:status` alert.

    Attributes:
        key (str): The normalized dedup key.
        scope (DismissalScope): Session, time-boxed or permanent.
        expires_at (float | None): Expiry timestamp, None for no expiry.
        dismissed_at (float): When the dismissal was made.
    """

    key: str
    scope: DismissalScope
    expires_at: float | None = None
    dismissed_at: float = 0.0

    def is_active(self, now: float) -> bool:
        return self.expires_at is None or self.expires_at > now

    def to_dict(self) -> dict:
        return {
            "scope": str(self.scope),
            "expires_at": self.expires_at,
            "dismissed_at": self.dismissed_at,
        }

    @classmethod
    def from_dict(cls, key: str, data: dict) -> "DismissalRecord":
        expires_at = data.get("expires_at")
        return cls(
            key=key,
            scope=DismissalScope(data.get("scope", DismissalScope.PERMANENT)),
            expires_at=float(expires_at) if expires_at is not None else None,
            dismissed_at=float(data.get("dismissed_at", 0.0)),
        )
