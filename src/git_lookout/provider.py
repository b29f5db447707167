"""Read contracts the monitor consumes, and their git-backed implementation.

The registry is a plain text file with one repository path per line. The
provider answers the three monitor queries by shelling out to `git` in a
worker thread so the event loop is never blocked.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Any, Protocol

from .constants import APP_NAME, REGISTRY_FILE
from .git_wrapper import GitRepo
from .models import RepositoryRef

logger = logging.getLogger(APP_NAME)


class StatusProvider(Protocol):
    """Inbound read contracts."""

    async def list_repositories(self) -> list[RepositoryRef]: ...

    async def get_status(self, repository_id: str) -> Any: ...

    async def get_latest_commit(self, repository_id: str) -> dict[str, str] | None: ...


def get_registered_repos(registry: Path = REGISTRY_FILE) -> list[Path]:
    """Reads the registry file and returns the watched repository paths."""
    if not registry.exists():
        return []
    with open(registry, "r") as f:
        return list(dict.fromkeys(Path(line.strip()) for line in f if line.strip()))


def _write_registry(paths: list[Path], registry: Path) -> None:
    registry.parent.mkdir(parents=True, exist_ok=True)
    tmp_file = registry.with_suffix(".tmp")
    try:
        with open(tmp_file, "w") as f:
            for path in paths:
                f.write(f"{path}\n")
            f.flush()
            os.fsync(f.fileno())  # Force write to disk.

        os.replace(tmp_file, registry)
    except OSError:
        if tmp_file.exists():
            tmp_file.unlink()
        raise


def register_repo(path: Path, registry: Path = REGISTRY_FILE) -> bool:
    """Adds a repository to the registry.

    Args:
        path (Path): The repository root.
        registry (Path): The registry file.

    Returns:
        bool: False if the repository was already registered.

    Raises:
        ValueError: If the path is not a git repository.
    """
    path = path.resolve()
    GitRepo(path)  # Validates the .git directory.
    paths = get_registered_repos(registry)
    if path in paths:
        return False
    _write_registry([*paths, path], registry)
    logger.info(f"REGISTERED: {path}")
    return True


def unregister_repo(path: Path, registry: Path = REGISTRY_FILE) -> bool:
    """Removes a repository from the registry.

    Returns:
        bool: False if the repository was not registered.
    """
    path = path.resolve()
    paths = get_registered_repos(registry)
    if path not in paths:
        return False
    _write_registry([p for p in paths if p != path], registry)
    logger.info(f"UNREGISTERED: {path}")
    return True


class GitStatusProvider:
    """Answers the monitor's read contracts using the git CLI.

    Attributes:
        registry (Path): The registry file listing watched repositories.
        fetch_remote (bool): Whether to fetch before reading status.
        remote_name (str): The remote to fetch from.
    """

    def __init__(
        self,
        registry: Path = REGISTRY_FILE,
        fetch_remote: bool = True,
        remote_name: str = "origin",
    ):
        self.registry = registry
        self.fetch_remote = fetch_remote
        self.remote_name = remote_name
        self._repos: dict[str, RepositoryRef] = {}

    def _repo(self, repository_id: str) -> GitRepo:
        ref = self._repos.get(repository_id)
        path = ref.path if ref else Path(repository_id)
        return GitRepo(path)

    async def list_repositories(self) -> list[RepositoryRef]:
        refs = []
        for path in get_registered_repos(self.registry):
            if not path.exists():
                logger.info(f"SKIPPED {path.name}: Path missing")
                continue
            refs.append(RepositoryRef(id=str(path), name=path.name, path=path))
        self._repos = {ref.id: ref for ref in refs}
        return refs

    def _status(self, repository_id: str) -> str:
        repo = self._repo(repository_id)
        if self.fetch_remote:
            try:
                repo.fetch(self.remote_name)
            except RuntimeError as e:
                # Offline: report against the last known remote state.
                logger.debug(f"Fetch failed for {repo.path.name}: {e}")
        return repo.status_branch_porcelain()

    async def get_status(self, repository_id: str) -> str:
        return await asyncio.to_thread(self._status, repository_id)

    def _latest_commit(self, repository_id: str) -> dict[str, str] | None:
        repo = self._repo(repository_id)
        local_hash = repo.rev_parse("HEAD")
        remote_hash = repo.rev_parse("@{u}")
        if not local_hash or not remote_hash:
            return None
        author_name, author_email, subject = repo.commit_info(remote_hash)
        return {
            "local_hash": local_hash,
            "remote_hash": remote_hash,
            "author_name": author_name,
            "author_email": author_email,
            "subject": subject,
        }

    async def get_latest_commit(self, repository_id: str) -> dict[str, str] | None:
        return await asyncio.to_thread(self._latest_commit, repository_id)
