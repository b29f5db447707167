import argparse
import asyncio
import datetime
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.prompt import Prompt
from rich.table import Table

from . import daemon
from .config import CONFIG_FILE, Config
from .constants import APP_NAME, DISMISS_CHOICES, REGISTRY_FILE
from .models import NotificationRecord, StatusKind
from .monitor import RepositoryDetails
from .presenter import ConsolePresenter
from .provider import get_registered_repos, register_repo, unregister_repo
from .suppression import CHOICE_LABELS, SuppressionStore, resolve_choice

console = Console()

KEEP = "keep"


def _format_ts(ts: float | None) -> str:
    if ts is None:
        return "never"
    return datetime.datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M:%S")


def add_repo(path: Path, registry: Path = REGISTRY_FILE) -> None:
    """Starts watching a repository."""
    try:
        added = register_repo(path, registry)
    except ValueError as e:
        console.print(f"[bold red]ERROR:[/bold red] {e}")
        return
    if added:
        console.print(f"[bold green]✔ Watching[/bold green] {path.resolve()}")
    else:
        console.print(f"[dim]Already watching {path.resolve()}[/dim]")


def remove_repo(path: Path, registry: Path = REGISTRY_FILE) -> None:
    """Stops watching a repository."""
    if unregister_repo(path, registry):
        console.print(f"[bold green]✔ Stopped watching[/bold green] {path.resolve()}")
    else:
        console.print(f"[yellow]Not watched:[/yellow] {path.resolve()}")


def list_repos(registry: Path = REGISTRY_FILE) -> None:
    """Prints the watched repositories."""
    paths = get_registered_repos(registry)
    if not paths:
        console.print("[dim]No repositories watched yet.[/dim]")
        return

    table = Table(title="Watched Repositories")
    table.add_column("Name", style="cyan")
    table.add_column("Path")
    table.add_column("State")
    for path in paths:
        state = "[green]OK[/green]" if path.exists() else "[red]Missing[/red]"
        table.add_row(path.name, str(path), state)
    console.print(table)


def dismiss(branch: str, status: str, choice: str, store: SuppressionStore) -> None:
    """Records a dismissal from the command line."""
    try:
        scope, duration = resolve_choice(choice)
        store.dismiss(branch, status, scope, duration)
    except ValueError as e:
        console.print(f"[bold red]ERROR:[/bold red] {e}")
        return
    console.print(f"[bold green]✔[/bold green] {branch}:{status}: {CHOICE_LABELS[choice]}")


def undismiss(branch: str | None, status: str | None, store: SuppressionStore) -> None:
    """Lifts one dismissal, or all of them when no key is given."""
    if branch is None or status is None:
        store.clear_all()
        console.print("[bold green]✔ All dismissals cleared.[/bold green]")
        return
    if store.clear(branch, status):
        console.print(f"[bold green]✔ Cleared[/bold green] {branch}:{status}")
    else:
        console.print(f"[yellow]No dismissal for[/yellow] {branch}:{status}")


def show_dismissals(store: SuppressionStore) -> None:
    """Prints durable dismissals and their counts."""
    stats = store.stats()
    table = Table(title="Dismissed Notifications")
    table.add_column("Key", style="cyan")
    table.add_column("Scope")
    table.add_column("Dismissed")
    table.add_column("Expires")
    now = store.clock()
    for record in store.records():
        expires = _format_ts(record.expires_at)
        if record.expires_at is not None and record.expires_at <= now:
            expires = f"[dim]{expires} (expired)[/dim]"
        table.add_row(record.key, str(record.scope), _format_ts(record.dismissed_at), expires)
    console.print(table)
    console.print(
        f"Total: {stats['total']}  Permanent: {stats['permanent']}  "
        f"Temporary: {stats['temporary']}  Expired: {stats['expired']}"
    )


def prompt_duration(record: NotificationRecord) -> str | None:
    """Duration chooser: asks how long to hide a status alert.

    Returns:
        str | None: A dismissal option, or None to keep the alert.
    """
    console.print(
        f"[bold]{escape(record.repository_name)}[/bold] "
        f"{escape(f'[{record.branch}]')}: {escape(record.message)}"
    )
    choice = Prompt.ask(
        "Hide this alert",
        choices=[KEEP, *DISMISS_CHOICES],
        default=KEEP,
        console=console,
    )
    return None if choice == KEEP else choice


async def _review(config: Config) -> None:
    lookout = daemon.build(
        config, presenter=ConsolePresenter(console), chooser=prompt_duration
    )
    with console.status("Checking repositories...", spinner="dots"):
        checked = await lookout.monitor.check_all()
        await lookout.center.join()

    alerts = lookout.center.status_alerts()
    console.print(f"Checked {checked} repositories, {len(alerts)} status alert(s).")
    for record in alerts:
        await lookout.center.close(record.id)
    await lookout.center.join()


def run_now(config: Config) -> None:
    """Runs one check cycle and prints whatever would be shown."""
    presenter = ConsolePresenter(console)
    lookout = daemon.build(config, presenter=presenter)
    checked = asyncio.run(daemon.run_once(lookout))
    console.print(f"[dim]Checked {checked} repositories.[/dim]")


async def load_details(
    lookout: daemon.Lookout, repository_id: str
) -> RepositoryDetails | None:
    """Selects a repository and waits for its detail data.

    Returns:
        RepositoryDetails | None: The applied details, or None if loading failed.
    """
    applied = await lookout.monitor.select_repository(repository_id)
    await lookout.center.join()
    return lookout.monitor.details if applied else None


def print_details(details: RepositoryDetails) -> None:
    """Prints the detail pane of a repository."""
    snapshot = details.snapshot
    table = Table(title=f"Repository: {details.repository.name}", show_header=False)
    table.add_column("Field", style="cyan", justify="right")
    table.add_column("Value")
    table.add_row("Path", str(details.repository.path))
    table.add_row("Branch", escape(snapshot.branch) or "[dim]unknown[/dim]")
    table.add_row("Status", str(details.status_kind))
    table.add_row("Ahead", str(snapshot.ahead))
    table.add_row("Behind", str(snapshot.behind))
    table.add_row("Uncommitted changes", "yes" if snapshot.has_changes else "no")
    if details.commit is not None and details.commit.author_name:
        table.add_row(
            "Latest remote commit",
            escape(f"{details.commit.author_name}: {details.commit.subject}"),
        )
    console.print(table)


def show_config_reference() -> None:
    """Displays a formatted table of all available configuration options."""
    table = Table(title="Git Lookout Configuration Schema", show_lines=True)
    table.add_column("Section", style="cyan", justify="right")
    table.add_column("Key", style="green")
    table.add_column("Type", style="dim")
    table.add_column("Default", style="yellow")
    table.add_column("Description")

    table.add_row("monitor", "poll_interval", "float | str", '"15s"', "Time between check cycles.")
    table.add_row("", "initial_delay", "float | str", '"1s"', "Delay of the first check after start.")
    table.add_row("", "sweep_interval", "float | str", '"5m"', "Time between sweeps of expired dismissals.")
    table.add_row("", "fetch_remote", "bool", "true", "Run `git fetch` before reading status.")
    table.add_row("", "remote_name", "str", '"origin"', "The remote to fetch from.")
    table.add_row("notifications", "enabled", "bool", "true", "Master switch for all notifications.")
    table.add_row("", "emit_delay", "float | str", '"100ms"', "Pause between queued notifications.")
    table.add_row("", "exit_delay", "float | str", '"400ms"', "Exit transition of a closed notification.")
    table.add_row("", "promote_delay", "float | str", '"500ms"', "Bring-to-front transition.")
    table.add_row("", "max_stack_depth", "int", "5", "Stacked notifications kept visible.")
    table.add_row("", "desktop", "bool", "false", "Also send OS desktop notifications.")
    table.add_row("identity", "name", "str", '""', "Your author name (default: git config).")
    table.add_row("", "email", "str", '""', "Your author email (default: git config).")
    table.add_row("limits", "max_log_size", "int | str", '"5mb"', "Max log size before rotation.")

    console.print(table)
    console.print(f"[dim]Config file: {CONFIG_FILE}[/dim]")


def main() -> None:
    """Main entry point for the Git Lookout CLI."""
    parser = argparse.ArgumentParser(
        prog=APP_NAME, description="Watch git repositories for remote divergence."
    )
    subparsers = parser.add_subparsers(dest="command")

    watch_parser = subparsers.add_parser("watch", help="Run the monitor until interrupted")
    watch_parser.add_argument(
        "--live", action="store_true", help="Render the notification stack live"
    )
    subparsers.add_parser("now", help="Check all repositories once")
    subparsers.add_parser("review", help="Check once and choose which alerts to hide")

    add_parser = subparsers.add_parser("add", help="Watch a repository")
    add_parser.add_argument("path", nargs="?", default=".", help="Repository path")
    remove_parser = subparsers.add_parser("remove", help="Stop watching a repository")
    remove_parser.add_argument("path", nargs="?", default=".", help="Repository path")
    subparsers.add_parser("list", help="List watched repositories")
    details_parser = subparsers.add_parser("details", help="Show one repository in detail")
    details_parser.add_argument("path", nargs="?", default=".", help="Repository path")

    dismiss_parser = subparsers.add_parser("dismiss", help="Hide a branch status alert")
    dismiss_parser.add_argument("branch", help="Branch name")
    dismiss_parser.add_argument(
        "status", choices=[k.value for k in StatusKind if k != StatusKind.CLEAN]
    )
    dismiss_parser.add_argument(
        "--for",
        dest="duration",
        choices=list(DISMISS_CHOICES),
        default="permanent",
        help="How long to hide it (default: permanent)",
    )

    undismiss_parser = subparsers.add_parser("undismiss", help="Show a hidden alert again")
    undismiss_parser.add_argument("branch", nargs="?")
    undismiss_parser.add_argument("status", nargs="?")
    undismiss_parser.add_argument("--all", action="store_true", help="Clear every dismissal")

    subparsers.add_parser("dismissals", help="List hidden alerts")

    config_parser = subparsers.add_parser("config", help="Show configuration options")
    config_parser.add_argument(
        "--list", "-l", action="store_true", help="List all configuration options"
    )

    args = parser.parse_args()

    if args.command == "watch":
        daemon.main(interactive=args.live)
    elif args.command == "now":
        run_now(Config.load())
    elif args.command == "review":
        asyncio.run(_review(Config.load()))
    elif args.command == "add":
        add_repo(Path(args.path))
    elif args.command == "remove":
        remove_repo(Path(args.path))
    elif args.command == "list":
        list_repos()
    elif args.command == "details":
        lookout = daemon.build(Config.load(), presenter=ConsolePresenter(console))
        repository_id = str(Path(args.path).resolve())
        details = asyncio.run(load_details(lookout, repository_id))
        if details is not None:
            print_details(details)
    elif args.command == "dismiss":
        dismiss(args.branch, args.status, args.duration, SuppressionStore())
    elif args.command == "undismiss":
        if not args.all and (args.branch is None or args.status is None):
            parser.error("undismiss needs BRANCH STATUS or --all")
        undismiss(args.branch, args.status, SuppressionStore())
    elif args.command == "dismissals":
        show_dismissals(SuppressionStore())
    elif args.command == "config":
        show_config_reference()
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
