"""Detection of new remote commits worth announcing."""

import logging
from collections import defaultdict
from collections.abc import Mapping
from typing import Any

from .constants import APP_NAME, DEFAULT_COMMIT_MESSAGE
from .models import CommitPointer

logger = logging.getLogger(APP_NAME)


def to_pointer(repository_id: str, data: Mapping[str, Any] | None) -> CommitPointer | None:
    """Builds a `CommitPointer` from a provider's latest-commit payload.

    Accepts both `local_hash`/`remote_hash` and the shorter `hash` key for the
    local head, and `author` as a fallback for `author_name`.

    Returns:
        CommitPointer | None: The pointer, or None if the payload is absent.
    """
    if not data:
        return None
    return CommitPointer(
        repository_id=repository_id,
        local_hash=str(data.get("local_hash") or data.get("hash") or ""),
        remote_hash=str(data.get("remote_hash") or ""),
        author_name=str(data.get("author_name") or data.get("author") or ""),
        author_email=str(data.get("author_email") or ""),
        subject=str(data.get("subject") or ""),
    )


def format_message(pointer: CommitPointer) -> str:
    """Returns the text of a new-commit notification."""
    if pointer.author_name and pointer.subject:
        return f"{pointer.author_name}: {pointer.subject}"
    return DEFAULT_COMMIT_MESSAGE


class CommitWatch:
    """Tracks remote heads per repository and reports unseen foreign commits.

    A remote hash is reported at most once per session. It is recorded as seen
    the moment it is reported, before anyone knows whether the notification
    made it to the screen.

    Attributes:
        operator_name (str): The current user's name, compared case-insensitively.
        operator_email (str): The current user's email, compared case-insensitively.
    """

    def __init__(self, operator_name: str = "", operator_email: str = ""):
        self.operator_name = operator_name.strip().casefold()
        self.operator_email = operator_email.strip().casefold()
        self._seen: dict[str, set[str]] = defaultdict(set)

    def is_own_commit(self, pointer: CommitPointer) -> bool:
        """Checks whether the remote head was authored by the operator."""
        email = pointer.author_email.strip().casefold()
        name = pointer.author_name.strip().casefold()
        if self.operator_email and email == self.operator_email:
            return True
        return bool(self.operator_name and name == self.operator_name)

    def has_seen(self, repository_id: str, remote_hash: str) -> bool:
        return remote_hash in self._seen.get(repository_id, ())

    def observe(self, pointer: CommitPointer | None) -> bool:
        """Records a poll result and decides whether to announce it.

        Args:
            pointer (CommitPointer | None): The latest commit data, if any.

        Returns:
            bool: True if a "new commit detected" notification should be emitted.
        """
        if pointer is None or not pointer.remote_hash:
            return False
        if pointer.remote_hash == pointer.local_hash:
            return False
        if self.has_seen(pointer.repository_id, pointer.remote_hash):
            return False
        if self.is_own_commit(pointer):
            logger.debug(
                f"OWN COMMIT {pointer.repository_id}: {pointer.remote_hash[:8]} ignored."
            )
            return False

        self._seen[pointer.repository_id].add(pointer.remote_hash)
        logger.info(
            f"NEW COMMIT {pointer.repository_id}: {pointer.remote_hash[:8]} "
            f"by {pointer.author_name or 'unknown'}"
        )
        return True

    def reset(self) -> None:
        """Forgets every seen hash (a new session)."""
        self._seen.clear()
