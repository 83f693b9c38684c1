"""Jump countdown: a cancellable "3, 2, 1, go" before seeking the clock.

States are Idle -> CountingDown(remaining) -> Idle. A new start() cancels any
running countdown first, so at most one timer is ever live. Completion emits
a SeekIntent for the media clock; cancellation emits nothing.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from stagecue.config import TimerOptions
from stagecue.utils.timers import PeriodicTimer

logger = logging.getLogger(__name__)


class CountdownState(str, Enum):
    """Jump countdown states."""

    IDLE = "idle"
    COUNTING_DOWN = "counting_down"


@dataclass(frozen=True)
class SeekIntent:
    """Request for the media clock to seek, then resume playback."""

    target_time: float
    segment_id: str | None = None
    resume: bool = True


class JumpCountdown:
    """Counts down once per tick, then asks the clock to seek.

    Args:
        options: Timer options (countdown length and tick interval).
        on_cue: Called with the remaining count whenever a cue should sound.
        on_seek: Called with the SeekIntent when the countdown completes.
        timer: Timer driving tick(); defaults to a PeriodicTimer.
    """

    def __init__(
        self,
        options: TimerOptions | None = None,
        on_cue: Callable[[int], None] | None = None,
        on_seek: Callable[[SeekIntent], None] | None = None,
        timer: PeriodicTimer | None = None,
    ) -> None:
        self.options = options or TimerOptions()
        self._on_cue = on_cue
        self._on_seek = on_seek
        self._timer = timer or PeriodicTimer(
            self.options.jump_tick_interval, self.tick, name="jump-countdown"
        )
        self.state = CountdownState.IDLE
        self.remaining: int | None = None
        self.target_time: float | None = None
        self.segment_id: str | None = None

    @property
    def active(self) -> bool:
        return self.state is CountdownState.COUNTING_DOWN

    def start(self, target_time: float | None, segment_id: str | None = None) -> bool:
        """Begin a countdown towards ``target_time``.

        Returns:
            False if the target is not a finite time (nothing starts).

        Raises:
            RuntimeError: If the timer cannot start, e.g. outside a running
                event loop. The countdown stays idle.
        """
        if target_time is None or not math.isfinite(target_time):
            logger.warning(f"Ignoring jump to invalid time {target_time!r}")
            return False

        if self.active:
            logger.debug(f"Replacing countdown to {self.target_time} with {target_time}")
        self.cancel()

        self.state = CountdownState.COUNTING_DOWN
        self.remaining = self.options.jump_countdown_seconds
        self.target_time = target_time
        self.segment_id = segment_id
        try:
            self._timer.start()
        except Exception:
            self._reset()
            raise
        self._cue()
        return True

    def tick(self) -> SeekIntent | None:
        """Advance one step. Returns the SeekIntent on the final tick."""
        if not self.active or self.remaining is None or self.target_time is None:
            return None

        self.remaining -= 1
        if self.remaining > 0:
            self._cue()
            return None

        self._timer.cancel()
        intent = SeekIntent(target_time=self.target_time, segment_id=self.segment_id)
        self._reset()
        logger.info(f"Jump countdown complete, seeking to {intent.target_time:.2f}s")
        if self._on_seek is not None:
            self._on_seek(intent)
        return intent

    def cancel(self) -> bool:
        """Stop the countdown without seeking. Returns True if one was running."""
        was_active = self.active
        self._timer.cancel()
        self._reset()
        return was_active

    def _reset(self) -> None:
        self.state = CountdownState.IDLE
        self.remaining = None
        self.target_time = None
        self.segment_id = None

    def _cue(self) -> None:
        if self._on_cue is not None and self.remaining is not None:
            self._on_cue(self.remaining)
