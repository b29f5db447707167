"""Tests for the poll scheduler."""

import asyncio
import logging

import pytest

from git_lookout.scheduler import PollScheduler


@pytest.mark.asyncio
async def test_tick_is_skipped_while_cycle_runs(
    caplog: pytest.LogCaptureFixture,
) -> None:
    """Verifies that cycles never overlap."""
    caplog.set_level(logging.DEBUG, logger="git-lookout")
    release = asyncio.Event()
    calls = 0

    async def check() -> None:
        nonlocal calls
        calls += 1
        await release.wait()

    scheduler = PollScheduler(check, lambda: 0)
    first = asyncio.create_task(scheduler.tick())
    await asyncio.sleep(0)

    assert scheduler.in_cycle
    assert await scheduler.tick() is False
    assert scheduler.ticks_skipped == 1

    release.set()
    assert await first is True
    assert calls == 1
    assert not scheduler.in_cycle
    assert "TICK SKIPPED" in caplog.text


@pytest.mark.asyncio
async def test_failed_cycle_releases_the_guard(
    caplog: pytest.LogCaptureFixture,
) -> None:
    """Verifies that an exception in one cycle does not block the next."""

    async def check() -> None:
        raise RuntimeError("provider exploded")

    scheduler = PollScheduler(check, lambda: 0)

    assert await scheduler.tick() is True
    assert await scheduler.tick() is True
    assert scheduler.cycles_run == 0
    assert "CYCLE ERROR" in caplog.text


@pytest.mark.asyncio
async def test_start_runs_initial_check_ticks_and_sweeps() -> None:
    """Verifies the three timers and a clean shutdown."""
    checks = 0
    sweeps = 0
    ticked = asyncio.Event()

    async def check() -> None:
        nonlocal checks
        checks += 1
        if checks >= 3:
            ticked.set()

    def sweep() -> int:
        nonlocal sweeps
        sweeps += 1
        return 0

    scheduler = PollScheduler(
        check, sweep, interval=0.01, initial_delay=0.0, sweep_interval=0.01
    )
    scheduler.start()
    assert scheduler.running

    await asyncio.wait_for(ticked.wait(), timeout=2)
    await scheduler.stop()

    assert not scheduler.running
    assert checks >= 3
    assert sweeps >= 1


@pytest.mark.asyncio
async def test_sweep_failure_keeps_timer_alive(
    caplog: pytest.LogCaptureFixture,
) -> None:
    """Verifies that a failing sweep is logged and retried on the next interval."""
    attempts = 0
    retried = asyncio.Event()

    def sweep() -> int:
        nonlocal attempts
        attempts += 1
        if attempts >= 2:
            retried.set()
        raise OSError("disk gone")

    async def check() -> None:
        pass

    scheduler = PollScheduler(
        check, sweep, interval=60, initial_delay=60, sweep_interval=0.01
    )
    scheduler.start()
    await asyncio.wait_for(retried.wait(), timeout=2)
    await scheduler.stop()

    assert "SWEEP ERROR" in caplog.text


@pytest.mark.asyncio
async def test_stop_cancels_a_cycle_in_flight() -> None:
    """Verifies that shutdown does not wait for a hanging provider."""
    started = asyncio.Event()

    async def check() -> None:
        started.set()
        await asyncio.Event().wait()

    scheduler = PollScheduler(check, lambda: 0, interval=60, initial_delay=0.0)
    scheduler.start()
    await asyncio.wait_for(started.wait(), timeout=2)
    await scheduler.stop()

    assert not scheduler.in_cycle
