"""Timers driving the check cycle and the dismissal sweep."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from .constants import APP_NAME, INITIAL_DELAY, POLL_INTERVAL, SWEEP_INTERVAL

logger = logging.getLogger(APP_NAME)


class PollScheduler:
    """Runs the check cycle on a fixed interval without ever overlapping cycles.

    Each tick starts a cycle as its own task. If the previous cycle is still
    running when a tick fires, that tick is skipped entirely. A separate timer
    sweeps expired dismissals.

    Attributes:
        check (Callable[[], Awaitable[object]]): One full check cycle.
        sweep (Callable[[], object]): The dismissal cleanup.
        interval (float): Seconds between ticks.
        initial_delay (float): Seconds before the out-of-band first check.
        sweep_interval (float): Seconds between sweeps.
    """

    def __init__(
        self,
        check: Callable[[], Awaitable[object]],
        sweep: Callable[[], object],
        *,
        interval: float = POLL_INTERVAL,
        initial_delay: float = INITIAL_DELAY,
        sweep_interval: float = SWEEP_INTERVAL,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.check = check
        self.sweep = sweep
        self.interval = interval
        self.initial_delay = initial_delay
        self.sweep_interval = sweep_interval
        self._sleep = sleep
        self._in_cycle = False
        self._timers: list[asyncio.Task[None]] = []
        self._cycles: set[asyncio.Task[bool]] = set()
        self.cycles_run = 0
        self.ticks_skipped = 0

    @property
    def running(self) -> bool:
        return bool(self._timers)

    @property
    def in_cycle(self) -> bool:
        return self._in_cycle

    async def tick(self) -> bool:
        """Runs one cycle unless the previous one is still in progress.

        Returns:
            bool: False if the tick was skipped.
        """
        if self._in_cycle:
            self.ticks_skipped += 1
            logger.debug("TICK SKIPPED: previous cycle still running.")
            return False

        self._in_cycle = True
        try:
            await self.check()
            self.cycles_run += 1
        except Exception:
            logger.exception("CYCLE ERROR")
        finally:
            self._in_cycle = False
        return True

    def _spawn_cycle(self) -> None:
        task = asyncio.get_running_loop().create_task(self.tick())
        self._cycles.add(task)
        task.add_done_callback(self._cycles.discard)

    async def _initial(self) -> None:
        await self._sleep(self.initial_delay)
        self._spawn_cycle()

    async def _ticker(self) -> None:
        while True:
            await self._sleep(self.interval)
            self._spawn_cycle()

    async def _sweeper(self) -> None:
        while True:
            await self._sleep(self.sweep_interval)
            try:
                self.sweep()
            except Exception:
                logger.exception("SWEEP ERROR")

    def start(self) -> None:
        """Starts the tick, initial-check and sweep timers.

        Must be called from within the running event loop.
        """
        if self.running:
            return
        loop = asyncio.get_running_loop()
        self._timers = [
            loop.create_task(self._initial()),
            loop.create_task(self._ticker()),
            loop.create_task(self._sweeper()),
        ]
        logger.info(
            f"SCHEDULER: checking every {self.interval:g}s, "
            f"sweeping every {self.sweep_interval:g}s."
        )

    async def stop(self) -> None:
        """Cancels the timers and any cycle still in flight."""
        tasks = [*self._timers, *self._cycles]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._timers = []
        self._cycles.clear()
