"""Shared fixtures for the monitor test suite."""

import asyncio
from pathlib import Path
from typing import Any

import pytest

from git_lookout.config import Config
from git_lookout.models import DismissalRecord, RepositoryRef
from git_lookout.suppression import JsonDismissalFile, SuppressionStore


class FakeClock:
    """A manually advanced Unix clock."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class MemoryDismissalFile:
    """Keeps durable dismissals in memory and counts saves."""

    def __init__(self, records: dict[str, DismissalRecord] | None = None):
        self.records = dict(records or {})
        self.saves = 0

    def load(self) -> dict[str, DismissalRecord]:
        return dict(self.records)

    def save(self, records: dict[str, DismissalRecord]) -> None:
        self.saves += 1
        self.records = dict(records)


class FakeProvider:
    """Serves canned status payloads and commit data per repository id."""

    def __init__(self) -> None:
        self.repos: list[RepositoryRef] = []
        self.statuses: dict[str, Any] = {}
        self.commits: dict[str, dict[str, str] | None] = {}
        self.failing: set[str] = set()

    def add(self, repo_id: str, status: Any, commit: dict | None = None) -> RepositoryRef:
        ref = RepositoryRef(id=repo_id, name=repo_id, path=Path("/repos") / repo_id)
        self.repos.append(ref)
        self.statuses[repo_id] = status
        self.commits[repo_id] = commit
        return ref

    async def list_repositories(self) -> list[RepositoryRef]:
        return list(self.repos)

    async def get_status(self, repository_id: str) -> Any:
        await asyncio.sleep(0)
        if repository_id in self.failing:
            raise RuntimeError(f"Git error: cannot read {repository_id}")
        return self.statuses[repository_id]

    async def get_latest_commit(self, repository_id: str) -> dict | None:
        return self.commits.get(repository_id)


async def instant_sleep(delay: float) -> None:
    """Yields to the loop without waiting for the real transition delay."""
    await asyncio.sleep(0)


@pytest.fixture(autouse=True)
def clear_config_cache() -> Any:
    """Ensures every test starts with a clean config cache."""
    Config._global_cache = None
    yield
    Config._global_cache = None


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_file() -> MemoryDismissalFile:
    return MemoryDismissalFile()


@pytest.fixture
def store(memory_file: MemoryDismissalFile, clock: FakeClock) -> SuppressionStore:
    """A suppression store backed by memory and the fake clock."""
    return SuppressionStore(memory_file, clock)  # type: ignore[arg-type]


@pytest.fixture
def json_file(tmp_path: Path) -> JsonDismissalFile:
    return JsonDismissalFile(tmp_path / "dismissals.json")


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()
