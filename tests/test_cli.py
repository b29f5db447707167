"""Tests for the Command Line Interface (CLI) module."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest
from conftest import FakeClock, FakeProvider

from git_lookout import cli, daemon
from git_lookout.config import Config
from git_lookout.constants import ONE_DAY
from git_lookout.models import DismissalScope, NotificationRecord, StatusKind
from git_lookout.suppression import SuppressionStore


def test_add_list_remove(tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    """Verifies the registry commands end to end.

    Args:
        tmp_path (Path): Pytest fixture for a temporary directory.
        capsys (pytest.CaptureFixture): Pytest fixture for capturing stdout.
    """
    repo = tmp_path / "api"
    (repo / ".git").mkdir(parents=True)
    registry = tmp_path / "registry"

    cli.add_repo(repo, registry)
    cli.add_repo(repo, registry)
    cli.list_repos(registry)
    cli.remove_repo(repo, registry)
    cli.list_repos(registry)

    out = capsys.readouterr().out
    assert "Watching" in out
    assert "Already watching" in out
    assert "api" in out
    assert "Stopped watching" in out
    assert "No repositories watched yet." in out


def test_add_rejects_plain_directory(
    tmp_path: Path,
    capsys: pytest.CaptureFixture,
) -> None:
    """Verifies that a non-repository is reported, not registered."""
    cli.add_repo(tmp_path, tmp_path / "registry")

    assert "Not a git repository" in capsys.readouterr().out
    assert not (tmp_path / "registry").exists()


def test_dismiss_and_undismiss(
    store: SuppressionStore,
    capsys: pytest.CaptureFixture,
) -> None:
    """Verifies command-line dismissals and lifting them again."""
    cli.dismiss("main", "behind", "1d", store)
    cli.dismiss("dev", "ahead", "permanent", store)

    assert store.should_suppress("main", "behind")
    [dev, main] = sorted(store.records(), key=lambda r: r.key)
    assert main.scope == DismissalScope.TIMEBOXED
    assert dev.scope == DismissalScope.PERMANENT

    cli.undismiss("main", "behind", store)
    cli.undismiss("main", "behind", store)
    assert not store.should_suppress("main", "behind")

    cli.undismiss(None, None, store)
    assert store.records() == []

    out = capsys.readouterr().out
    assert "Notification hidden for 1 day" in out
    assert "No dismissal for main:behind" in out
    assert "All dismissals cleared." in out


def test_show_dismissals_counts(
    store: SuppressionStore, clock: FakeClock, capsys: pytest.CaptureFixture
) -> None:
    """Verifies the dismissal table and its summary line."""
    store.dismiss("main", "behind", DismissalScope.TIMEBOXED, 60)
    store.dismiss("dev", "diverged", DismissalScope.TIMEBOXED, ONE_DAY)
    store.dismiss("ops", "ahead", DismissalScope.PERMANENT)
    clock.advance(120)

    cli.show_dismissals(store)

    out = capsys.readouterr().out
    assert "ops:ahead" in out
    assert "(expired)" in out
    assert "Total: 3  Permanent: 1  Temporary: 1  Expired: 1" in out


def test_prompt_duration_keep_means_cancel(mocker: MagicMock) -> None:
    """Verifies that 'keep' backs out of the chooser."""
    record = NotificationRecord(
        "behind", branch="main", status_kind=StatusKind.BEHIND, is_status_alert=True
    )
    mocker.patch("git_lookout.cli.Prompt.ask", return_value="keep")
    assert cli.prompt_duration(record) is None

    mocker.patch("git_lookout.cli.Prompt.ask", return_value="10m")
    assert cli.prompt_duration(record) == "10m"


def test_main_routes_dismiss(mocker: MagicMock, store: SuppressionStore) -> None:
    """Verifies argument parsing for the dismiss command."""
    mocker.patch("git_lookout.cli.SuppressionStore", return_value=store)
    mocker.patch("sys.argv", ["git-lookout", "dismiss", "feature-x", "behind", "--for", "10m"])

    cli.main()

    [record] = store.records()
    assert record.key == "feature-x:behind"
    assert record.scope == DismissalScope.TIMEBOXED


def test_main_undismiss_requires_key_or_all(mocker: MagicMock) -> None:
    """Verifies that a bare undismiss is rejected."""
    mocker.patch("sys.argv", ["git-lookout", "undismiss"])
    with pytest.raises(SystemExit):
        cli.main()


def test_main_dismiss_rejects_clean(mocker: MagicMock) -> None:
    """Verifies that only alerting status kinds can be dismissed."""
    mocker.patch("sys.argv", ["git-lookout", "dismiss", "main", "clean"])
    with pytest.raises(SystemExit):
        cli.main()


def test_main_now_runs_one_cycle(mocker: MagicMock) -> None:
    """Verifies that `now` builds the monitor and runs a single cycle."""
    mocker.patch("sys.argv", ["git-lookout", "now"])
    mock_build = mocker.patch("git_lookout.cli.daemon.build")
    mock_run_once = mocker.patch(
        "git_lookout.cli.daemon.run_once", new=MagicMock(return_value=2)
    )
    mocker.patch("git_lookout.cli.asyncio.run", side_effect=lambda value: value)

    cli.main()

    mock_build.assert_called_once()
    mock_run_once.assert_called_once_with(mock_build.return_value)


def test_config_reference(mocker: MagicMock, capsys: pytest.CaptureFixture) -> None:
    """Verifies that every configuration key is listed."""
    mocker.patch("sys.argv", ["git-lookout", "config", "--list"])
    cli.main()

    out = capsys.readouterr().out
    for key in ("poll_interval", "sweep_interval", "max_stack_depth", "max_log_size"):
        assert key in out


@pytest.fixture
def lookout(provider: FakeProvider, store: SuppressionStore) -> daemon.Lookout:
    """A monitor wired to the fake provider with instant transitions."""
    conf = Config()
    conf.notifications.emit_delay = 0
    conf.identity.name = "Me"
    conf.identity.email = "me@example.com"
    return daemon.build(conf, presenter=MagicMock(), provider=provider, suppression=store)


@pytest.mark.asyncio
async def test_load_details_goes_through_selection(
    lookout: daemon.Lookout, provider: FakeProvider, capsys: pytest.CaptureFixture
) -> None:
    """Verifies that the details command loads a repository via the fenced selection."""
    provider.add(
        "api",
        "## main...origin/main [ahead 1, behind 2]\n M app.py\n",
        {"local_hash": "aaa", "remote_hash": "bbb", "author_name": "Ada", "subject": "Fix"},
    )

    details = await cli.load_details(lookout, "api")

    assert details is not None
    assert details.status_kind == StatusKind.DIVERGED
    assert lookout.monitor.fences.fence("details").current == 1

    cli.print_details(details)
    out = capsys.readouterr().out
    assert "diverged" in out
    assert "Ada: Fix" in out


@pytest.mark.asyncio
async def test_load_details_unknown_repository(lookout: daemon.Lookout) -> None:
    """Verifies that an unknown repository yields no details and an error notice."""
    assert await cli.load_details(lookout, "nowhere") is None

    [record] = lookout.center.stack.records()
    assert record.level == "error"


def test_main_routes_details(mocker: MagicMock, tmp_path: Path) -> None:
    """Verifies that `details` resolves the path and prints the loaded data."""
    mocker.patch("sys.argv", ["git-lookout", "details", str(tmp_path)])
    mocker.patch("git_lookout.cli.daemon.build")
    mock_load = mocker.patch(
        "git_lookout.cli.load_details", new=MagicMock(return_value="loaded")
    )
    mocker.patch("git_lookout.cli.asyncio.run", side_effect=lambda value: value)
    mock_print = mocker.patch("git_lookout.cli.print_details")

    cli.main()

    assert mock_load.call_args[0][1] == str(tmp_path.resolve())
    mock_print.assert_called_once_with("loaded")
