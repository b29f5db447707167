"""Last-issued-wins fencing for user-driven fetches.

Each logical target (e.g. the selected repository's detail pane) owns a
sequence counter and the task of its in-flight request. Issuing a new request
cancels the previous one and bumps the counter; a response is applied only if
its sequence number is still current when it completes.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from .constants import APP_NAME

logger = logging.getLogger(APP_NAME)

T = TypeVar("T")


class RequestFence:
    """Sequence counter plus abort handle for one target.

    Attributes:
        name (str): The target name, used in log messages.
    """

    def __init__(self, name: str):
        self.name = name
        self._seq = 0
        self._inflight: asyncio.Future[Any] | None = None

    @property
    def current(self) -> int:
        """The sequence number of the most recently issued request."""
        return self._seq

    def is_current(self, seq: int) -> bool:
        return seq == self._seq

    def _abort_inflight(self) -> None:
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        self._inflight = None

    async def issue(
        self,
        fetch: Callable[[], Awaitable[T]],
        apply: Callable[[T], None],
        on_error: Callable[[Exception], None] | None = None,
    ) -> bool:
        """Runs `fetch` and hands its result to `apply` unless superseded.

        Args:
            fetch (Callable[[], Awaitable[T]]): Starts the request.
            apply (Callable[[T], None]): Writes the result to visible state.
            on_error (Callable[[Exception], None] | None): Called with a failure of
                the current request. Failures of superseded requests are dropped.
                If None, failures of the current request propagate.

        Returns:
            bool: True if the result was applied.
        """
        self._abort_inflight()
        self._seq += 1
        seq = self._seq

        task = asyncio.ensure_future(fetch())
        self._inflight = task
        try:
            result = await task
        except asyncio.CancelledError:
            if not self.is_current(seq):
                logger.debug(f"FENCED {self.name}: request #{seq} cancelled.")
                return False
            raise
        except Exception as e:
            if not self.is_current(seq):
                logger.debug(f"FENCED {self.name}: request #{seq} failed late: {e}")
                return False
            if on_error is None:
                raise
            on_error(e)
            return False
        finally:
            if self._inflight is task:
                self._inflight = None

        if not self.is_current(seq):
            logger.debug(f"FENCED {self.name}: stale response #{seq} discarded.")
            return False

        apply(result)
        return True

    def cancel(self) -> None:
        """Invalidates whatever is in flight without issuing a new request."""
        self._abort_inflight()
        self._seq += 1


class FenceRegistry:
    """Hands out one `RequestFence` per target name."""

    def __init__(self) -> None:
        self._fences: dict[str, RequestFence] = {}

    def fence(self, target: str) -> RequestFence:
        if target not in self._fences:
            self._fences[target] = RequestFence(target)
        return self._fences[target]
