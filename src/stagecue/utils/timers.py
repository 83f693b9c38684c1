"""Owned, cancellable periodic timers on the asyncio event loop.

Every timer in a session (clock poll, auto-save, jump countdown) is a
PeriodicTimer. At most one task is live per timer: starting a timer that is
already running cancels the previous task first.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Union

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], Union[None, Awaitable[Any]]]


class PeriodicTimer:
    """Invoke a callback every ``interval`` seconds until cancelled.

    The callback may be a plain function or a coroutine function. Errors
    raised by the callback are logged and the timer keeps running.

    Example:
        >>> timer = PeriodicTimer(0.5, session.poll, name="poll")
        >>> timer.start()   # inside a running event loop
        >>> timer.cancel()
    """

    def __init__(self, interval: float, callback: TimerCallback, name: str = "timer") -> None:
        if interval <= 0:
            raise ValueError(f"Timer interval must be positive, got {interval}")
        self.interval = interval
        self.name = name
        self._callback = callback
        self._task: asyncio.Task | None = None

    @property
    def active(self) -> bool:
        """Whether a timer task is currently live."""
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the timer, cancelling any task it already owns.

        Raises:
            RuntimeError: If called outside a running event loop.
        """
        self.cancel()
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(), name=f"stagecue-{self.name}")
        logger.debug(f"Timer '{self.name}' started (interval={self.interval}s)")

    def cancel(self) -> None:
        """Cancel the live task, if any. Safe to call repeatedly."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            logger.debug(f"Timer '{self.name}' cancelled")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                result = self._callback()
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(f"Timer '{self.name}' callback failed")

    def __repr__(self) -> str:
        state = "active" if self.active else "idle"
        return f"PeriodicTimer(name={self.name!r}, interval={self.interval}, {state})"
