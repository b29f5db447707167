"""Per-repository check pipeline and selection-bound detail loading."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from .commits import CommitWatch, format_message, to_pointer
from .constants import APP_NAME
from .fencing import FenceRegistry
from .models import (
    CommitPointer,
    NotificationRecord,
    RepositoryRef,
    StatusKind,
    StatusSnapshot,
)
from .notifications import NotificationCenter
from .provider import StatusProvider
from .status import classify, normalize

logger = logging.getLogger(APP_NAME)

STATUS_MESSAGES = {
    StatusKind.DIVERGED: ("Branch has diverged from remote. Manual merge needed.", "error"),
    StatusKind.BEHIND: ("Branch is behind remote. Pull needed.", "warning"),
    StatusKind.AHEAD: ("Branch is ahead of remote. Push needed.", "info"),
}

DETAILS_TARGET = "details"


def _plural(count: int) -> str:
    return "commit" if count == 1 else "commits"


def status_message(
    repo: RepositoryRef, snapshot: StatusSnapshot, commit: CommitPointer | None
) -> tuple[str, str]:
    """Builds the text and level of a status alert.

    Returns:
        tuple[str, str]: (message, level).
    """
    text, level = STATUS_MESSAGES[classify(snapshot)]
    message = f"{repo.name}: {text}"
    if snapshot.behind > 0:
        message += f" ({snapshot.behind} {_plural(snapshot.behind)} behind)"
    if snapshot.ahead > 0:
        message += f" ({snapshot.ahead} {_plural(snapshot.ahead)} ahead)"
    if commit is not None and commit.author_name:
        message += f"\nLatest commit: {commit.author_name}: {commit.subject}"
    return message, level


@dataclass(frozen=True)
class RepositoryDetails:
    """What the detail pane shows for the selected repository."""

    repository: RepositoryRef
    snapshot: StatusSnapshot
    status_kind: StatusKind
    commit: CommitPointer | None


class RepositoryMonitor:
    """Checks repositories and turns their state into notifications.

    The background cycle (`check_all`) walks the repository set strictly one
    repository at a time. User-driven detail loading (`select_repository`)
    goes through a request fence so only the last selection wins.

    Attributes:
        provider (StatusProvider): Source of repositories, status and commits.
        center (NotificationCenter): Receives every emitted record.
        commits (CommitWatch): Seen-hash bookkeeping for new-commit alerts.
        details (RepositoryDetails | None): The currently shown detail pane data.
    """

    def __init__(
        self,
        provider: StatusProvider,
        center: NotificationCenter,
        commits: CommitWatch | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.provider = provider
        self.center = center
        self.commits = commits or CommitWatch()
        self.clock = clock
        self.fences = FenceRegistry()
        self.details: RepositoryDetails | None = None
        self.snapshots: dict[str, StatusSnapshot] = {}
        self._repositories: dict[str, RepositoryRef] = {}

    async def check_all(self) -> int:
        """Runs one check cycle over every repository.

        Returns:
            int: The number of repositories checked successfully.
        """
        try:
            repos = await self.provider.list_repositories()
        except Exception as e:
            logger.error(f"LIST ERROR: Could not load repositories: {e}")
            return 0

        self._repositories = {repo.id: repo for repo in repos}
        checked = 0
        for repo in repos:
            try:
                await self.check_repository(repo)
                checked += 1
            except Exception as e:
                logger.warning(f"CHECK ERROR {repo.name}: {e}")
        logger.debug(f"CYCLE: {checked}/{len(repos)} repositories checked.")
        return checked

    async def check_repository(self, repo: RepositoryRef) -> StatusKind:
        """Fetches, classifies and reports one repository.

        Returns:
            StatusKind: The repository's current status kind.
        """
        raw = await self.provider.get_status(repo.id)
        snapshot = normalize(raw, repo.id, self.clock())
        commit = to_pointer(repo.id, await self.provider.get_latest_commit(repo.id))
        self.snapshots[repo.id] = snapshot

        if self.commits.observe(commit):
            self.center.emit(
                NotificationRecord(
                    message=format_message(commit),
                    repository_id=repo.id,
                    repository_name=repo.name,
                    branch=snapshot.branch,
                    created_at=self.clock(),
                )
            )

        kind = classify(snapshot)
        if kind == StatusKind.CLEAN:
            await self.center.clear_status_alerts(repo.id)
            return kind

        message, level = status_message(repo, snapshot, commit)
        self.center.emit(
            NotificationRecord(
                message=message,
                repository_id=repo.id,
                repository_name=repo.name,
                branch=snapshot.branch,
                status_kind=kind,
                is_status_alert=True,
                level=level,
                created_at=self.clock(),
            )
        )
        return kind

    async def select_repository(self, repository_id: str) -> bool:
        """Loads the detail pane for a repository, last selection wins.

        Returns:
            bool: True if this selection's data was applied.
        """

        async def fetch() -> RepositoryDetails:
            repo = await self._lookup(repository_id)
            raw = await self.provider.get_status(repo.id)
            snapshot = normalize(raw, repo.id, self.clock())
            commit = to_pointer(
                repo.id, await self.provider.get_latest_commit(repo.id)
            )
            return RepositoryDetails(repo, snapshot, classify(snapshot), commit)

        def apply(details: RepositoryDetails) -> None:
            self.details = details

        def on_error(error: Exception) -> None:
            logger.error(f"DETAILS ERROR {repository_id}: {error}")
            self.center.notify(
                f"Failed to load repository details: {error}",
                level="error",
                repository_id=repository_id,
            )

        fence = self.fences.fence(DETAILS_TARGET)
        return await fence.issue(fetch, apply, on_error)

    async def _lookup(self, repository_id: str) -> RepositoryRef:
        if repository_id not in self._repositories:
            repos = await self.provider.list_repositories()
            self._repositories = {repo.id: repo for repo in repos}
        try:
            return self._repositories[repository_id]
        except KeyError:
            raise KeyError(f"Unknown repository: {repository_id}") from None
