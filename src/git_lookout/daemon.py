import asyncio
import contextlib
import logging
import signal
import sys
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler

from rich.console import Console
from rich.live import Live

from .commits import CommitWatch
from .config import Config
from .constants import APP_NAME, LOG_FILE, REGISTRY_FILE
from .git_wrapper import global_identity
from .monitor import RepositoryMonitor
from .notifications import DurationChooser, NotificationCenter, Presenter
from .presenter import ConsolePresenter, DesktopPresenter, FanoutPresenter
from .provider import GitStatusProvider, StatusProvider
from .scheduler import PollScheduler
from .suppression import SuppressionStore

logger = logging.getLogger(APP_NAME)
logger.setLevel(logging.INFO)

console = Console()


def setup_logging(interactive: bool, config: Config | None = None) -> None:
    """Configures the logging subsystem.

    Args:
        interactive (bool): If True, logs to stdout. If False, logs to file/stderr
                            with rotation enabled.
        config (Config | None): Supplies the log size limit. Defaults to the
                                loaded configuration.
    """
    config = config or Config.load()
    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s: %(message)s", "%Y-%m-%d %H:%M:%S"
    )

    # Always log to a stream; stdout when interactive.
    stream_handler = logging.StreamHandler(
        sys.stderr if not interactive else sys.stdout
    )
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if not interactive:
        # In daemon mode, rotate logs to file.
        file_handler = RotatingFileHandler(
            LOG_FILE,
            maxBytes=config.limits.max_log_size,
            backupCount=5,
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)


@dataclass
class Lookout:
    """The fully wired monitor: store, notification center, pipeline and timers."""

    config: Config
    suppression: SuppressionStore
    center: NotificationCenter
    monitor: RepositoryMonitor
    scheduler: PollScheduler


def build(
    config: Config,
    presenter: Presenter | None = None,
    provider: StatusProvider | None = None,
    suppression: SuppressionStore | None = None,
    chooser: DurationChooser | None = None,
) -> Lookout:
    """Constructs every monitor component from configuration.

    Args:
        config (Config): The loaded configuration.
        presenter (Presenter | None): Rendering target. Defaults to the console.
        provider (StatusProvider | None): Read contracts. Defaults to git.
        suppression (SuppressionStore | None): Dismissal store. Defaults to the
            durable store in the state directory.
        chooser (DurationChooser | None): Dismissal duration prompt.

    Returns:
        Lookout: The wired components (timers not started).
    """
    name, email = config.identity.name, config.identity.email
    if not (name and email):
        git_name, git_email = global_identity()
        name, email = name or git_name, email or git_email

    presenter = presenter or ConsolePresenter(console)
    if config.notifications.desktop:
        presenter = FanoutPresenter(presenter, DesktopPresenter())

    suppression = suppression or SuppressionStore()
    center = NotificationCenter(
        suppression,
        presenter,
        enabled=config.notifications.enabled,
        emit_delay=config.notifications.emit_delay,
        exit_delay=config.notifications.exit_delay,
        promote_delay=config.notifications.promote_delay,
        max_depth=config.notifications.max_stack_depth,
        chooser=chooser,
    )
    provider = provider or GitStatusProvider(
        REGISTRY_FILE,
        fetch_remote=config.monitor.fetch_remote,
        remote_name=config.monitor.remote_name,
    )
    monitor = RepositoryMonitor(provider, center, CommitWatch(name, email))
    scheduler = PollScheduler(
        monitor.check_all,
        suppression.purge_expired,
        interval=config.monitor.poll_interval,
        initial_delay=config.monitor.initial_delay,
        sweep_interval=config.monitor.sweep_interval,
    )
    return Lookout(config, suppression, center, monitor, scheduler)


async def run_once(lookout: Lookout) -> int:
    """Runs a single check cycle and waits for the queue to drain.

    Returns:
        int: The number of repositories checked.
    """
    checked = await lookout.monitor.check_all()
    await lookout.center.join()
    return checked


async def watch(lookout: Lookout) -> None:
    """Runs the scheduler until SIGINT/SIGTERM."""
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    lookout.scheduler.start()
    try:
        await stop.wait()
    finally:
        await lookout.scheduler.stop()
        logger.info("STOPPED: monitor shut down.")


def main(interactive: bool = False) -> None:
    """The monitor entry point.

    Args:
        interactive (bool, optional): Whether to render a live stack in the terminal
                                      instead of printing records as they arrive.
                                      Defaults to False.
    """
    config = Config.load()
    setup_logging(interactive, config)

    if not REGISTRY_FILE.exists():
        console.print(
            "[yellow]Registry empty. Run 'git-lookout add' in "
            "a repo to watch it.[/yellow]"
        )
        return

    if not interactive:
        asyncio.run(watch(build(config)))
        return

    with Live(console=console, refresh_per_second=4) as live:
        presenter = ConsolePresenter(console, live)
        live.update(presenter.render())
        asyncio.run(watch(build(config, presenter=presenter)))


if __name__ == "__main__":
    main()
