"""Notification emission queue and presentation stack.

Records enter through `NotificationCenter.emit`, leave the FIFO one at a time
with a short pause between them, and pass the status-alert gates before they
reach the presenter. Displayed records are kept in a recency-ordered stack
whose visual treatment is computed by `compute_stack_layout`.
"""

import asyncio
import inspect
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Protocol

from .constants import (
    APP_NAME,
    EMIT_DELAY,
    EXIT_DELAY,
    MAX_STACK_DEPTH,
    PROMOTE_DELAY,
    STACK_FADE,
    STACK_OFFSET,
)
from .models import NotificationRecord
from .suppression import CHOICE_LABELS, SuppressionStore, resolve_choice

logger = logging.getLogger(APP_NAME)


@dataclass(frozen=True)
class StackSlot:
    """Computed visual treatment of one displayed record.

    Attributes:
        id (str): The record id.
        depth (int): 0 for the top record, increasing towards older records.
        offset (int): Positional offset in pixels.
        opacity (float): 1.0 for fully visible, 0.0 for hidden.
        visible (bool): Whether the record is rendered at all.
        interactive (bool): Whether the record accepts clicks.
    """

    id: str
    depth: int
    offset: int
    opacity: float
    visible: bool
    interactive: bool


def compute_stack_layout(
    ids: Sequence[str], max_depth: int = MAX_STACK_DEPTH
) -> list[StackSlot]:
    """Computes the stacking treatment for records ordered oldest to newest.

    The newest record sits on top at full opacity. The next `max_depth - 1`
    records fade and shift by one step per level. Anything deeper stays in the
    stack but is invisible and non-interactive.

    Args:
        ids (Sequence[str]): Record ids, oldest first.
        max_depth (int): Number of records that remain visible.

    Returns:
        list[StackSlot]: One slot per id, in the same order.
    """
    slots = []
    count = len(ids)
    for index, record_id in enumerate(ids):
        depth = count - index - 1
        if depth < max_depth:
            slots.append(
                StackSlot(
                    id=record_id,
                    depth=depth,
                    offset=depth * STACK_OFFSET,
                    opacity=round(max(0.0, 1.0 - depth * STACK_FADE), 2),
                    visible=True,
                    interactive=True,
                )
            )
        else:
            slots.append(
                StackSlot(
                    id=record_id,
                    depth=depth,
                    offset=0,
                    opacity=0.0,
                    visible=False,
                    interactive=False,
                )
            )
    return slots


class Presenter(Protocol):
    """Outbound calls into the presentation layer."""

    def display(self, record: NotificationRecord) -> None: ...

    def remove_display(self, record_id: str) -> None: ...

    def promote_to_front(self, record_id: str) -> None: ...

    def restack(self, slots: list[StackSlot]) -> None: ...


class NullPresenter:
    """Presenter that renders nothing."""

    def display(self, record: NotificationRecord) -> None:
        pass

    def remove_display(self, record_id: str) -> None:
        pass

    def promote_to_front(self, record_id: str) -> None:
        pass

    def restack(self, slots: list[StackSlot]) -> None:
        pass


class PresentationStack:
    """Recency-ordered list of displayed records (last is on top)."""

    def __init__(self, max_depth: int = MAX_STACK_DEPTH):
        self.max_depth = max_depth
        self._order: list[str] = []
        self._records: dict[str, NotificationRecord] = {}

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records

    @property
    def ids(self) -> list[str]:
        return list(self._order)

    @property
    def top(self) -> NotificationRecord | None:
        return self._records[self._order[-1]] if self._order else None

    def records(self) -> list[NotificationRecord]:
        return [self._records[i] for i in self._order]

    def get(self, record_id: str) -> NotificationRecord | None:
        return self._records.get(record_id)

    def push(self, record: NotificationRecord) -> None:
        self._records[record.id] = record
        self._order.append(record.id)

    def promote(self, record_id: str) -> bool:
        """Moves a record to the top. Returns False if absent or already on top."""
        if record_id not in self._records or self._order[-1] == record_id:
            return False
        self._order.remove(record_id)
        self._order.append(record_id)
        return True

    def remove(self, record_id: str) -> NotificationRecord | None:
        record = self._records.pop(record_id, None)
        if record is not None:
            self._order.remove(record_id)
        return record

    def find_equivalent(self, key: str) -> NotificationRecord | None:
        """Finds a displayed status alert with the given dedup key."""
        for record in self._records.values():
            if record.key == key:
                return record
        return None

    def layout(self) -> list[StackSlot]:
        return compute_stack_layout(self._order, self.max_depth)


DurationChooser = Callable[[NotificationRecord], Awaitable[str | None] | str | None]


class NotificationCenter:
    """Serializes emission, gates status alerts and manages the stack.

    Attributes:
        suppression (SuppressionStore): Dismissal bookkeeping consulted before display.
        presenter (Presenter): Receives display/remove/promote/restack calls.
        stack (PresentationStack): The currently displayed records.
        enabled (bool): When False, `emit` drops everything.
        chooser (DurationChooser | None): Asked for a dismissal duration when a
            status alert is closed. Without one, closing dismisses for the session.
    """

    def __init__(
        self,
        suppression: SuppressionStore,
        presenter: Presenter | None = None,
        *,
        enabled: bool = True,
        emit_delay: float = EMIT_DELAY,
        exit_delay: float = EXIT_DELAY,
        promote_delay: float = PROMOTE_DELAY,
        max_depth: int = MAX_STACK_DEPTH,
        chooser: DurationChooser | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.suppression = suppression
        self.presenter = presenter or NullPresenter()
        self.stack = PresentationStack(max_depth)
        self.enabled = enabled
        self.emit_delay = emit_delay
        self.exit_delay = exit_delay
        self.promote_delay = promote_delay
        self.chooser = chooser
        self.clock = clock
        self._sleep = sleep

        self._queue: deque[NotificationRecord] = deque()
        self._drain_task: asyncio.Task[None] | None = None
        self._shown: set[str] = set()
        self._closing: set[str] = set()

    # --- Emission ---

    @property
    def pending(self) -> int:
        return len(self._queue)

    def is_shown(self, key: str) -> bool:
        return key in self._shown

    def emit(self, record: NotificationRecord) -> bool:
        """Queues a record for display.

        Must be called from within the running event loop.

        Returns:
            bool: False if notifications are disabled.
        """
        if not self.enabled:
            return False
        self._queue.append(record)
        if self._drain_task is None or self._drain_task.done():
            self._drain_task = asyncio.get_running_loop().create_task(self._drain())
        return True

    def notify(self, message: str, level: str = "info", **fields: object) -> bool:
        """Builds and emits a plain notification."""
        record = NotificationRecord(
            message=message, level=level, created_at=self.clock(), **fields
        )
        return self.emit(record)

    async def _drain(self) -> None:
        while self._queue:
            record = self._queue.popleft()
            try:
                self._present(record)
            except Exception:
                logger.exception(f"DISPLAY ERROR {record.id}")
            await self._sleep(self.emit_delay)

    async def join(self) -> None:
        """Waits until the queue has been fully drained."""
        while self._drain_task is not None and not self._drain_task.done():
            await self._drain_task

    def _admit(self, record: NotificationRecord) -> bool:
        key = record.key
        if key is None:
            return True
        if key in self._shown:
            logger.debug(f"DEDUP {key}: already shown this session.")
            return False
        if self.suppression.should_suppress(record.branch, str(record.status_kind)):
            logger.debug(f"SUPPRESSED {key}: dismissed by user.")
            return False
        if self.stack.find_equivalent(key) is not None:
            logger.debug(f"DEDUP {key}: equivalent alert already visible.")
            return False
        return True

    def _present(self, record: NotificationRecord) -> None:
        if not self._admit(record):
            return
        self.stack.push(record)
        if record.key is not None:
            self._shown.add(record.key)
        self.presenter.display(record)
        self.presenter.restack(self.stack.layout())

    # --- Interaction ---

    async def select(self, record_id: str) -> bool:
        """Brings a stacked record to the front.

        Returns:
            bool: False if the record is unknown or already on top.
        """
        top = self.stack.top
        if record_id not in self.stack or (top and top.id == record_id):
            return False
        await self._sleep(self.promote_delay)
        if not self.stack.promote(record_id):
            return False
        self.presenter.promote_to_front(record_id)
        self.presenter.restack(self.stack.layout())
        return True

    async def _choose(self, record: NotificationRecord) -> str | None:
        if self.chooser is None:
            return "session"
        choice = self.chooser(record)
        if inspect.isawaitable(choice):
            choice = await choice
        return choice

    async def close(self, record_id: str) -> bool:
        """Closes a displayed record.

        Status alerts first ask the duration chooser and record the dismissal.
        A cancelled chooser leaves the alert in place.

        Returns:
            bool: True if the record was removed.
        """
        record = self.stack.get(record_id)
        if record is None or record_id in self._closing:
            return False

        choice = None
        if record.is_status_alert:
            choice = await self._choose(record)
            if choice is None:
                return False
            scope, duration = resolve_choice(choice)
            self.suppression.dismiss(
                record.branch, str(record.status_kind), scope, duration
            )

        removed = await self.remove(record_id)
        if removed and choice is not None:
            self.notify(
                CHOICE_LABELS[choice],
                repository_id=record.repository_id,
                repository_name=record.repository_name,
                branch=record.branch,
            )
        return removed

    async def remove(self, record_id: str) -> bool:
        """Removes a record after its exit transition and restacks the rest."""
        if record_id not in self.stack or record_id in self._closing:
            return False

        self._closing.add(record_id)
        try:
            await self._sleep(self.exit_delay)
            record = self.stack.remove(record_id)
        finally:
            self._closing.discard(record_id)

        if record is None:
            return False
        if record.key is not None:
            self._shown.discard(record.key)
        self.presenter.remove_display(record_id)
        self.presenter.restack(self.stack.layout())
        return True

    async def clear_status_alerts(self, repository_id: str) -> int:
        """Removes every displayed status alert of a repository.

        Returns:
            int: The number of alerts removed.
        """
        targets = [
            r.id
            for r in self.stack.records()
            if r.is_status_alert and r.repository_id == repository_id
        ]
        removed = 0
        for record_id in targets:
            if await self.remove(record_id):
                removed += 1
        return removed

    def status_alerts(self) -> list[NotificationRecord]:
        return [r for r in self.stack.records() if r.is_status_alert]

