"""Renderers applying the computed stack layout to a terminal or the desktop."""

import logging
import subprocess
import sys

from rich.console import Console, Group, RenderableType
from rich.live import Live
from rich.padding import Padding
from rich.panel import Panel
from rich.text import Text

from .constants import APP_NAME, STACK_OFFSET
from .models import NotificationRecord
from .notifications import Presenter, StackSlot

logger = logging.getLogger(APP_NAME)

LEVEL_STYLES = {
    "info": "blue",
    "success": "green",
    "warning": "yellow",
    "error": "red",
}


def _opacity_style(opacity: float) -> str:
    if opacity >= 1.0:
        return "bold"
    if opacity >= 0.7:
        return ""
    return "dim"


class ConsolePresenter:
    """Renders the notification stack with rich.

    Newly displayed records are printed once as they arrive. The full stack
    (top record last, older records indented and dimmed) is available through
    `render()` and redrawn continuously when attached to a `Live` display.

    Attributes:
        console (Console): The rich console to print to.
        live (Live | None): Optional live display refreshed on every restack.
    """

    def __init__(self, console: Console | None = None, live: Live | None = None):
        self.console = console or Console()
        self.live = live
        self._records: dict[str, NotificationRecord] = {}
        self._slots: list[StackSlot] = []

    def _panel(self, record: NotificationRecord, style: str = "") -> Panel:
        title = record.repository_name or APP_NAME
        if record.branch:
            title += f" [{record.branch}]"
        return Panel(
            Text(record.message, style=style),
            title=Text(title),
            title_align="left",
            border_style=LEVEL_STYLES.get(record.level, "blue"),
            expand=False,
        )

    def display(self, record: NotificationRecord) -> None:
        self._records[record.id] = record
        if self.live is None:
            self.console.print(self._panel(record))

    def remove_display(self, record_id: str) -> None:
        self._records.pop(record_id, None)

    def promote_to_front(self, record_id: str) -> None:
        logger.debug(f"PROMOTED {record_id}")

    def restack(self, slots: list[StackSlot]) -> None:
        self._slots = list(slots)
        if self.live is not None:
            self.live.update(self.render())

    def render(self) -> RenderableType:
        """Builds the visible part of the stack, oldest visible record first."""
        panels = []
        for slot in self._slots:
            record = self._records.get(slot.id)
            if record is None or not slot.visible:
                continue
            indent = (slot.offset // STACK_OFFSET) * 2
            panel = self._panel(record, _opacity_style(slot.opacity))
            panels.append(Padding(panel, (0, 0, 0, indent)))
        hidden = sum(1 for slot in self._slots if not slot.visible)
        if hidden:
            panels.insert(0, Text(f"+{hidden} more", style="dim"))
        if not panels:
            return Text("No notifications.", style="dim")
        return Group(*panels)


class DesktopPresenter:
    """Mirrors newly displayed records as OS desktop notifications."""

    def display(self, record: NotificationRecord) -> None:
        title = record.repository_name or "Git Lookout"
        self.notify(title, record.message)

    def remove_display(self, record_id: str) -> None:
        pass

    def promote_to_front(self, record_id: str) -> None:
        pass

    def restack(self, slots: list[StackSlot]) -> None:
        pass

    def notify(self, title: str, message: str) -> None:
        """Sends a desktop notification (osascript on macOS, notify-send on Linux)."""
        try:
            if sys.platform == "darwin":
                # Sanitize quotes to prevent AppleScript syntax errors.
                clean_msg = message.replace('"', "'")
                clean_title = title.replace('"', "'")
                script = f'display notification "{clean_msg}" with title "{clean_title}"'
                subprocess.run(["osascript", "-e", script], stderr=subprocess.DEVNULL)
            elif sys.platform.startswith("linux"):
                subprocess.run(["notify-send", title, message], stderr=subprocess.DEVNULL)
        except OSError as e:
            logger.debug(f"Desktop notification failed: {e}")


class FanoutPresenter:
    """Forwards every presentation call to several presenters."""

    def __init__(self, *presenters: Presenter):
        self.presenters = presenters

    def display(self, record: NotificationRecord) -> None:
        for presenter in self.presenters:
            presenter.display(record)

    def remove_display(self, record_id: str) -> None:
        for presenter in self.presenters:
            presenter.remove_display(record_id)

    def promote_to_front(self, record_id: str) -> None:
        for presenter in self.presenters:
            presenter.promote_to_front(record_id)

    def restack(self, slots: list[StackSlot]) -> None:
        for presenter in self.presenters:
            presenter.restack(slots)
