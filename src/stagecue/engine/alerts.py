"""Threshold alerts derived from successive cursor states.

Each clock tick (progress event, poll, or seek) feeds the latest CursorState
into an AlertScheduler, which decides whether to ring, what countdown label
to show, and which subpart to flash. Ring and flash are edge-triggered: they
fire once per crossing and re-arm only after the signal moves away again.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass

from stagecue.config import AlertOptions
from stagecue.engine.cursor import CursorState
from stagecue.models.schema import Segment

logger = logging.getLogger(__name__)

GET_READY = "GET READY"


@dataclass
class RingAlert:
    """Ring once when time-to-next drops to or below the threshold."""

    threshold: float = 10.0
    enabled: bool = True
    last_time_to_next: float | None = None

    def update(self, time_to_next: float | None) -> bool:
        """Record the new value and report whether the ring fires on this tick.

        The last value is recorded even while disabled and on backward seeks,
        so a later re-crossing fires again.
        """
        previous = self.last_time_to_next
        self.last_time_to_next = time_to_next
        if not self.enabled or time_to_next is None:
            return False
        return (previous is None or previous > self.threshold) and time_to_next <= self.threshold

    def reset(self) -> None:
        self.last_time_to_next = None


def countdown_label(time_to_next: float | None, threshold: float = 10.0) -> str:
    """Whole seconds to the next segment while inside the threshold, else blank."""
    if time_to_next is None or time_to_next > threshold:
        return ""
    return str(math.ceil(time_to_next))


@dataclass
class FlashOnEntry:
    """Flash a subpart once as playback enters it."""

    epsilon: float = 0.35
    duration: float = 0.4
    last_flashed_id: str | None = None
    flash_from: float | None = None
    flash_until: float | None = None

    def update(self, subparts: Iterable[Segment], t: float | None) -> str | None:
        """Check for a subpart entered at ``t``.

        Returns:
            The id of a subpart whose flash starts on this tick, else None.
        """
        if t is None:
            return None
        hit = next(
            (s for s in subparts if s.start is not None and s.start <= t < s.start + self.epsilon),
            None,
        )
        if hit is None or hit.id == self.last_flashed_id:
            return None
        self.last_flashed_id = hit.id
        self.flash_from = t
        self.flash_until = t + self.duration
        return hit.id

    def flashing(self, t: float | None) -> str | None:
        """Id of the subpart whose flash is visible at ``t``, if any."""
        if t is None or self.last_flashed_id is None or self.flash_until is None:
            return None
        if self.flash_from is not None and self.flash_from <= t <= self.flash_until:
            return self.last_flashed_id
        return None

    def reset(self) -> None:
        self.last_flashed_id = None
        self.flash_from = None
        self.flash_until = None


@dataclass(frozen=True)
class AlertFrame:
    """Alert outputs for one tick."""

    ring: bool
    countdown: str
    get_ready: str
    flash_started: str | None
    flashing: str | None


class AlertScheduler:
    """Runs the ring, countdown and flash alerts for one playback surface."""

    def __init__(self, options: AlertOptions | None = None) -> None:
        self.options = options or AlertOptions()
        self.ring = RingAlert(threshold=self.options.ring_threshold, enabled=self.options.ring_enabled)
        self.flash = FlashOnEntry(
            epsilon=self.options.flash_epsilon, duration=self.options.flash_duration
        )

    @property
    def ring_enabled(self) -> bool:
        return self.ring.enabled

    @ring_enabled.setter
    def ring_enabled(self, value: bool) -> None:
        self.ring.enabled = value

    def tick(
        self,
        state: CursorState,
        t: float | None,
        subparts: Iterable[Segment] = (),
    ) -> AlertFrame:
        """Advance all alerts by one tick."""
        rang = self.ring.update(state.time_to_next)
        label = countdown_label(state.time_to_next, self.options.ring_threshold)
        started = self.flash.update(subparts, t)

        if rang:
            logger.debug(f"Ring: {state.next.name if state.next else '?'} in {state.time_to_next:.2f}s")
        if started:
            logger.debug(f"Flash subpart {started} at t={t:.2f}")

        return AlertFrame(
            ring=rang,
            countdown=label,
            get_ready=GET_READY if label else "",
            flash_started=started,
            flashing=self.flash.flashing(t),
        )

    def reset(self) -> None:
        self.ring.reset()
        self.flash.reset()
