"""Rehearsal session orchestration for stagecue.

A RehearsalSession is the thin adapter between the pure engine and a
surface: it samples the media clock on every tick, runs the alert
scheduler, drives the jump countdown and A-B loop, and owns the periodic
timers for clock polling, auto-save and snapshot refresh. All of it runs on
one asyncio event loop.
"""

from __future__ import annotations

import inspect
import logging
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from stagecue.config import EngineConfig
from stagecue.engine.alerts import AlertFrame, AlertScheduler
from stagecue.engine.countdown import JumpCountdown, SeekIntent
from stagecue.engine.cursor import (
    CursorState,
    DisplaySpan,
    LoopRange,
    display_spans,
    resolve,
    timeline_duration,
)
from stagecue.engine.interaction import InteractionController
from stagecue.engine.ledger import TimeAssignmentLedger
from stagecue.engine.marks import MarkBoard
from stagecue.engine.packer import Layout, pack
from stagecue.engine.segments import anchored, parts_only, subparts_only
from stagecue.models.schema import AssignmentTarget, Segment, SegmentKind, TimepointUpdate
from stagecue.store.snapshot import SegmentStore
from stagecue.utils.timers import PeriodicTimer

logger = logging.getLogger(__name__)


@runtime_checkable
class MediaClock(Protocol):
    """The playback clock the session follows. It is never owned by the engine."""

    def current_time(self) -> float | None: ...

    def seek(self, t: float) -> None: ...

    def play(self) -> None: ...


@dataclass(frozen=True)
class TickResult:
    """Everything a surface needs to render one tick."""

    t: float | None
    cursor: CursorState
    alerts: AlertFrame
    loop_seek: float | None = None


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class RehearsalSession:
    """Live playback and authoring state for one performance.

    Example:
        >>> async with RehearsalSession(segments, clock=player, store=store) as session:
        ...     result = session.tick(player.current_time())
        ...     session.jump_to("part-3")

    Args:
        segments: Initial segment snapshot.
        clock: Media clock to sample and seek. Without one, every derived
            output is None.
        store: External store for saves and snapshot refreshes.
        config: Engine configuration.
        on_ring: Called with the upcoming segment when the ring fires.
        on_cue: Called with the remaining count on each jump countdown cue.
        media_duration: Track length in seconds, when known. Assignments
            beyond it are rejected.
    """

    def __init__(
        self,
        segments: Iterable[Segment] = (),
        clock: MediaClock | None = None,
        store: SegmentStore | None = None,
        config: EngineConfig | None = None,
        on_ring: Callable[[Segment | None], None] | None = None,
        on_cue: Callable[[int], None] | None = None,
        media_duration: float | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.clock = clock
        self.store = store
        self.on_ring = on_ring

        segments = list(segments)
        self.marks = MarkBoard()
        self.ledger = TimeAssignmentLedger(
            segments,
            history_limit=self.config.history_limit,
            marks=self.marks,
            media_duration=media_duration,
        )
        self.alerts = AlertScheduler(self.config.alerts)
        self.countdown = JumpCountdown(self.config.timers, on_cue=on_cue, on_seek=self._on_jump_complete)
        self.interaction = InteractionController(
            self.ledger,
            default_duration=self.config.default_duration,
            on_idle=self._apply_pending_snapshot,
        )
        self.loop: LoopRange | None = None
        self.last_tick: TickResult | None = None
        self.last_saved_at: float | None = None

        self._pending_snapshot: list[Segment] | None = None
        self._saving = False

        timers = self.config.timers
        self._poll_timer = PeriodicTimer(timers.poll_interval, self.poll, name="poll")
        self._autosave_timer = PeriodicTimer(timers.autosave_interval, self.save, name="autosave")
        self._refresh_timer = PeriodicTimer(
            timers.snapshot_refresh_interval, self.refresh, name="snapshot-refresh"
        )

    # Lifecycle

    def start(self) -> None:
        """Start the poll timer, plus auto-save and refresh when a store is set.

        Must be called inside a running event loop.
        """
        self._poll_timer.start()
        if self.store is not None:
            self._autosave_timer.start()
            self._refresh_timer.start()
        logger.info(f"Session started ({len(self._parts)} anchored parts)")

    def close(self) -> None:
        """Release every timer and drop any in-progress gesture or countdown."""
        self._poll_timer.cancel()
        self._autosave_timer.cancel()
        self._refresh_timer.cancel()
        self.countdown.cancel()
        self.interaction.cancel()
        if self.ledger.dirty:
            logger.warning("Session closed with unsaved timepoint changes")
        logger.info("Session closed")

    async def __aenter__(self) -> RehearsalSession:
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

    # Segments

    @property
    def segments(self) -> list[Segment]:
        """Current segments with in-session assignments applied."""
        return self.ledger.effective_segments()

    @property
    def media_duration(self) -> float | None:
        return self.ledger.media_duration

    @media_duration.setter
    def media_duration(self, value: float | None) -> None:
        self.ledger.media_duration = value

    def spans(self) -> list[DisplaySpan]:
        """Playback timeline spans of the anchored parts."""
        return display_spans(self._parts)

    @property
    def timeline_length(self) -> float:
        """Drawn timeline length: the track length or the last span end."""
        return timeline_duration(self.spans(), self.media_duration)

    def layout(self, pinned: Mapping[str, int] | None = None, min_rows: int = 0) -> Layout:
        """Row layout of the parts for the authoring timeline."""
        return pack(
            parts_only(self.segments),
            pinned=pinned,
            default_duration=self.config.default_duration,
            min_rows=min_rows,
        )

    def refresh_snapshot(self, segments: Iterable[Segment]) -> bool:
        """Install a fresh snapshot from the store.

        While a drag or a jump countdown is in progress the snapshot is held
        back and installed as soon as the gesture ends.

        Returns:
            True if applied now, False if deferred.
        """
        segments = list(segments)
        if self._busy:
            self._pending_snapshot = segments
            logger.debug("Snapshot refresh deferred until the current gesture ends")
            return False
        self._install(segments)
        return True

    async def refresh(self) -> bool:
        """Fetch segments from the store and install them."""
        if self.store is None:
            return False
        try:
            segments = await _maybe_await(self.store.fetch_segments())
        except Exception as e:
            logger.warning(f"Snapshot refresh failed: {e}")
            return False
        return self.refresh_snapshot(segments)

    # Clock ticks

    def tick(self, t: float | None) -> TickResult:
        """Process one clock sample (progress event, poll, or seek)."""
        state = resolve(self._parts, t)
        frame = self.alerts.tick(state, t, self._subparts)

        loop_seek = self.loop.seek_target(t) if self.loop is not None else None
        if loop_seek is not None and self.clock is not None:
            self.clock.seek(loop_seek)

        if frame.ring and self.on_ring is not None:
            self.on_ring(state.next)

        self.last_tick = TickResult(t=t, cursor=state, alerts=frame, loop_seek=loop_seek)
        return self.last_tick

    def poll(self) -> TickResult:
        """Sample the clock and tick. Used by the safety-net poll timer."""
        t = self.clock.current_time() if self.clock is not None else None
        return self.tick(t)

    def seek(self, t: float) -> TickResult:
        """Seek the clock explicitly and tick at the new position."""
        if self.clock is not None:
            self.clock.seek(t)
        return self.tick(t)

    # Jumps and loops

    def jump_to(self, segment_id: str, kind: SegmentKind = "part") -> bool:
        """Count down, then seek to a segment's start."""
        target = AssignmentTarget(kind=kind, segment_id=segment_id, boundary="start")
        return self.countdown.start(self.ledger.effective_time(target), segment_id)

    def cancel_jump(self) -> bool:
        cancelled = self.countdown.cancel()
        self._apply_pending_snapshot()
        return cancelled

    def set_loop(self, start: float, end: float) -> LoopRange:
        self.loop = LoopRange(start=start, end=end)
        logger.info(f"Loop set {self.loop.start:.2f}s-{self.loop.end:.2f}s")
        return self.loop

    def loop_segment(self, segment_id: str) -> LoopRange | None:
        """Loop over a part's display span."""
        span = next((s for s in self.spans() if s.segment.id == segment_id), None)
        if span is None:
            return None
        self.loop = LoopRange.for_span(span)
        logger.info(f"Loop set to {segment_id} {self.loop.start:.2f}s-{self.loop.end:.2f}s")
        return self.loop

    def clear_loop(self) -> None:
        self.loop = None

    # Persistence

    @property
    def saving(self) -> bool:
        return self._saving

    async def save(self) -> bool:
        """Push dirty assignments to the store.

        Skipped when a save is already in flight or nothing is dirty. A
        failure leaves the remaining changes dirty for the next attempt.

        Returns:
            True if every pending update was saved.
        """
        if self.store is None or self._saving or not self.ledger.dirty:
            return False

        updates = self.ledger.pending_updates()
        saved: list[TimepointUpdate] = []
        self._saving = True
        try:
            for update in updates:
                await _maybe_await(self.store.update_segment_timepoints(update))
                saved.append(update)
        except Exception as e:
            logger.warning(
                f"Auto-save failed after {len(saved)}/{len(updates)} updates, will retry: {e}"
            )
            return False
        finally:
            self.ledger.mark_saved(saved)
            self._saving = False

        self.last_saved_at = time.time()
        logger.info(f"Saved {len(saved)} timepoint update(s)")
        return True

    # Internals

    @property
    def _busy(self) -> bool:
        return self.interaction.active or self.countdown.active

    @property
    def _parts(self) -> list[Segment]:
        return anchored(parts_only(self.segments))

    @property
    def _subparts(self) -> list[Segment]:
        return anchored(subparts_only(self.segments))

    def _install(self, segments: list[Segment]) -> None:
        self.ledger.update_segments(segments)
        self._pending_snapshot = None

    def _apply_pending_snapshot(self) -> None:
        if self._pending_snapshot is not None and not self._busy:
            self._install(self._pending_snapshot)

    def _on_jump_complete(self, intent: SeekIntent) -> None:
        if self.clock is not None:
            self.clock.seek(intent.target_time)
            if intent.resume:
                self.clock.play()
        self._apply_pending_snapshot()
        self.tick(intent.target_time)
