"""Tests for RehearsalSession orchestration."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import pytest

from stagecue.config import EngineConfig, TimerOptions
from stagecue.engine.cursor import LoopRange
from stagecue.engine.ledger import OutOfRange
from stagecue.models.schema import AssignmentTarget, Segment, TimepointUpdate
from stagecue.session import MediaClock, RehearsalSession
from stagecue.store.snapshot import StoreError


class FakeClock:
    """A media clock that only moves when told to."""

    def __init__(self, t: float | None = 0.0) -> None:
        self.t = t
        self.seeks: list[float] = []
        self.plays = 0

    def current_time(self) -> float | None:
        return self.t

    def seek(self, t: float) -> None:
        self.t = t
        self.seeks.append(t)

    def play(self) -> None:
        self.plays += 1


class FakeStore:
    """In-memory segment store recording every update."""

    def __init__(self, segments: list[Segment] | None = None, fail: bool = False) -> None:
        self.segments = segments or []
        self.fail = fail
        self.updates: list[TimepointUpdate] = []

    def fetch_segments(self) -> list[Segment]:
        return list(self.segments)

    def update_segment_timepoints(self, update: TimepointUpdate) -> None:
        if self.fail:
            raise StoreError("store offline")
        self.updates.append(update)


def start_of(segment_id: str) -> AssignmentTarget:
    return AssignmentTarget(kind="part", segment_id=segment_id, boundary="start")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session(cursor_parts: list[Segment], clock: FakeClock) -> RehearsalSession:
    """Session over parts at 0, 20 and 50 with one subpart at 22."""
    segments = cursor_parts + [Segment(id="s1", kind="subpart", parent_id="b", start=22)]
    return RehearsalSession(segments, clock=clock)


class TestTick:
    """Tests for clock ticks."""

    def test_fake_clock_is_media_clock(self, clock: FakeClock) -> None:
        """The test clock satisfies the clock protocol."""
        assert isinstance(clock, MediaClock)

    def test_cursor_and_alerts(self, session: RehearsalSession) -> None:
        """A tick resolves the cursor and runs the alerts."""
        result = session.tick(25)

        assert result.cursor.current.id == "b"
        assert result.cursor.next.id == "c"
        assert result.alerts.countdown == ""
        assert session.last_tick is result

    def test_subparts_do_not_drive_cursor(self, session: RehearsalSession) -> None:
        """Only parts are current or next; subparts only flash."""
        result = session.tick(22.1)

        assert result.cursor.current.id == "b"
        assert result.alerts.flash_started == "s1"

    def test_ring_callback(self, cursor_parts: list[Segment]) -> None:
        """on_ring receives the upcoming part."""
        on_ring = MagicMock()
        session = RehearsalSession(cursor_parts, on_ring=on_ring)
        session.tick(5)
        session.tick(12)

        on_ring.assert_called_once()
        assert on_ring.call_args.args[0].id == "b"

    def test_no_clock(self, cursor_parts: list[Segment]) -> None:
        """Without a clock every derived output is empty."""
        result = RehearsalSession(cursor_parts).poll()

        assert result.t is None
        assert result.cursor.current is None
        assert result.cursor.next is None
        assert result.alerts.countdown == ""

    def test_poll_samples_clock(self, session: RehearsalSession, clock: FakeClock) -> None:
        """poll() reads the clock."""
        clock.t = 51
        assert session.poll().cursor.current.id == "c"

    def test_seek(self, session: RehearsalSession, clock: FakeClock) -> None:
        """seek() moves the clock and ticks at the new time."""
        result = session.seek(21)

        assert clock.seeks == [21]
        assert result.cursor.current.id == "b"

    def test_in_session_assignment_moves_cursor(self, session: RehearsalSession) -> None:
        """Assigned times take effect on the next tick."""
        session.ledger.assign(start_of("c"), 30.0)
        assert session.tick(35).cursor.current.id == "c"


class TestLoop:
    """Tests for the A-B loop."""

    def test_loop_seeks_back(self, session: RehearsalSession, clock: FakeClock) -> None:
        """Reaching the loop end seeks to its start."""
        session.set_loop(10, 20)
        result = session.tick(20.2)

        assert result.loop_seek == 10
        assert clock.seeks == [10]

    def test_loop_segment(self, session: RehearsalSession) -> None:
        """A part without an end loops up to the next part."""
        loop = session.loop_segment("b")

        assert (loop.start, loop.end) == (20, 50)
        assert session.loop_segment("missing") is None

    def test_loop_last_segment(self, session: RehearsalSession) -> None:
        """The last part without an end loops over one second."""
        loop = session.loop_segment("c")

        assert (loop.start, loop.end) == (50, 51)
        assert session.loop is loop

    def test_loop_explicit_end(self, clock: FakeClock) -> None:
        """An explicit end wins over the next start, and spans never collapse."""
        session = RehearsalSession(
            [Segment(id="a", start=0, end=12), Segment(id="b", start=30, end=30)], clock=clock
        )

        assert session.loop_segment("a") == LoopRange(start=0, end=12)
        loop = session.loop_segment("b")
        assert loop.start == 30
        assert loop.end == pytest.approx(30.1)

    def test_loop_unanchored(self, clock: FakeClock) -> None:
        """A part without a start cannot be looped."""
        session = RehearsalSession([Segment(id="x")], clock=clock)
        assert session.loop_segment("x") is None
        assert session.loop is None

    def test_clear_loop(self, session: RehearsalSession, clock: FakeClock) -> None:
        """Without a loop nothing seeks."""
        session.set_loop(10, 20)
        session.clear_loop()
        session.tick(25)

        assert clock.seeks == []


class TestTrackLength:
    """Tests for the known track length."""

    def test_timeline_length(self, session: RehearsalSession) -> None:
        """The drawn timeline covers the track or the last span."""
        assert session.timeline_length == 51

        session.media_duration = 180.0
        assert session.timeline_length == 180.0

    def test_assignments_bounded_by_track(self, cursor_parts: list[Segment]) -> None:
        """Times past the end of the track are rejected."""
        session = RehearsalSession(cursor_parts, media_duration=90.0)

        with pytest.raises(OutOfRange):
            session.ledger.assign(start_of("c"), 95.0)
        assert session.ledger.dirty is False

    def test_part_widened_to_subpart(self, session: RehearsalSession) -> None:
        """Moving a part start past its subpart keeps the subpart covered."""
        session.ledger.assign(start_of("b"), 25.0)

        assert session.ledger.effective_time(start_of("b")) == 22.0


class TestSnapshotRefresh:
    """Tests for deferred snapshot refresh."""

    def test_applied_when_idle(self, session: RehearsalSession) -> None:
        """A refresh while idle is installed right away."""
        applied = session.refresh_snapshot([Segment(id="a", start=5)])

        assert applied is True
        assert [s.id for s in session.segments] == ["a"]

    def test_deferred_during_drag(self, session: RehearsalSession) -> None:
        """A refresh during a drag waits for the drop."""
        session.interaction.begin_segment_drag("part", "a", grab_time=0.0)
        fresh = [Segment(id="a", start=0), Segment(id="b", start=25), Segment(id="c", start=50)]

        assert session.refresh_snapshot(fresh) is False
        assert session.ledger.persisted_time(start_of("b")) == 20

        session.interaction.drop_segment(3.0)

        assert session.ledger.persisted_time(start_of("b")) == 25
        assert session.ledger.effective_time(start_of("a")) == 3.0

    def test_refresh_from_store(self, cursor_parts: list[Segment]) -> None:
        """refresh() fetches from the store."""
        store = FakeStore([Segment(id="z", start=1)])
        session = RehearsalSession(cursor_parts, store=store)

        assert asyncio.run(session.refresh()) is True
        assert [s.id for s in session.segments] == ["z"]

    def test_refresh_failure_keeps_snapshot(self, cursor_parts: list[Segment]) -> None:
        """A failing fetch leaves the current segments in place."""
        store = MagicMock()
        store.fetch_segments.side_effect = StoreError("offline")
        session = RehearsalSession(cursor_parts, store=store)

        assert asyncio.run(session.refresh()) is False
        assert len(session.segments) == 3


class TestJump:
    """Tests for the jump countdown inside a session."""

    def test_jump_seeks_and_plays(self, cursor_parts: list[Segment], clock: FakeClock) -> None:
        """After the countdown the clock seeks to the part and resumes."""
        cues: list[int] = []
        session = RehearsalSession(cursor_parts, clock=clock, on_cue=cues.append)

        async def scenario() -> None:
            assert session.jump_to("c") is True
            for _ in range(5):
                session.countdown.tick()
            session.close()

        asyncio.run(scenario())

        assert cues == [5, 4, 3, 2, 1]
        assert clock.seeks == [50]
        assert clock.plays == 1
        assert session.last_tick.cursor.current.id == "c"

    def test_jump_to_unanchored(self, clock: FakeClock) -> None:
        """Parts without a start cannot be jumped to."""
        session = RehearsalSession([Segment(id="x")], clock=clock)
        assert session.jump_to("x") is False

    def test_refresh_deferred_until_jump_ends(self, session: RehearsalSession) -> None:
        """A refresh during the countdown is applied when it is cancelled."""

        async def scenario() -> None:
            session.jump_to("b")
            assert session.refresh_snapshot([Segment(id="a", start=0)]) is False
            assert session.cancel_jump() is True
            session.close()

        asyncio.run(scenario())

        assert [s.id for s in session.segments] == ["a"]
        assert session.clock.seeks == []


class TestSave:
    """Tests for persistence."""

    def test_save_pushes_updates(self, cursor_parts: list[Segment]) -> None:
        """Dirty assignments are sent to the store and cleared."""
        store = FakeStore()
        session = RehearsalSession(cursor_parts, store=store)
        session.ledger.assign(start_of("b"), 21.0)

        assert asyncio.run(session.save()) is True
        assert store.updates == [TimepointUpdate(segment_id="b", start=21.0)]
        assert session.ledger.dirty is False
        assert session.last_saved_at is not None

    def test_nothing_to_save(self, cursor_parts: list[Segment]) -> None:
        """A clean ledger skips the save."""
        store = FakeStore()
        session = RehearsalSession(cursor_parts, store=store)

        assert asyncio.run(session.save()) is False
        assert store.updates == []

    def test_failed_save_keeps_dirty(self, cursor_parts: list[Segment]) -> None:
        """A failing store leaves the changes for the next attempt."""
        session = RehearsalSession(cursor_parts, store=FakeStore(fail=True))
        session.ledger.assign(start_of("b"), 21.0)

        assert asyncio.run(session.save()) is False
        assert session.ledger.dirty is True
        assert session.saving is False

    def test_single_save_in_flight(self, cursor_parts: list[Segment]) -> None:
        """A save started while another is running is skipped."""

        class SlowStore(FakeStore):
            def __init__(self) -> None:
                super().__init__()
                self.release = asyncio.Event()

            async def update_segment_timepoints(self, update: TimepointUpdate) -> None:
                self.updates.append(update)
                await self.release.wait()

        async def scenario() -> tuple[bool, bool, bool]:
            store = SlowStore()
            session = RehearsalSession(cursor_parts, store=store)
            session.ledger.assign(start_of("b"), 21.0)

            first = asyncio.get_running_loop().create_task(session.save())
            await asyncio.sleep(0)
            in_flight = session.saving
            second = await session.save()
            store.release.set()
            return in_flight, second, await first

        in_flight, second, first = asyncio.run(scenario())

        assert in_flight is True
        assert second is False
        assert first is True


class TestTimers:
    """Tests for the session's periodic timers."""

    def test_start_and_close(self, cursor_parts: list[Segment]) -> None:
        """Timers run between start and close."""

        async def scenario() -> tuple[bool, bool, bool]:
            session = RehearsalSession(cursor_parts, store=FakeStore())
            async with session:
                running = session._poll_timer.active and session._autosave_timer.active
            return running, session._poll_timer.active, session._autosave_timer.active

        assert asyncio.run(scenario()) == (True, False, False)

    def test_no_store_no_autosave(self, cursor_parts: list[Segment]) -> None:
        """Without a store only the poll timer runs."""

        async def scenario() -> tuple[bool, bool]:
            session = RehearsalSession(cursor_parts)
            session.start()
            state = (session._poll_timer.active, session._autosave_timer.active)
            session.close()
            return state

        assert asyncio.run(scenario()) == (True, False)

    def test_poll_and_autosave_run(self, cursor_parts: list[Segment]) -> None:
        """The poll timer ticks and the autosave timer flushes changes."""
        store = FakeStore(cursor_parts)
        clock = FakeClock(25.0)
        config = EngineConfig(
            timers=TimerOptions(poll_interval=0.01, autosave_interval=0.02, snapshot_refresh_interval=60)
        )

        async def scenario() -> RehearsalSession:
            session = RehearsalSession(cursor_parts, clock=clock, store=store, config=config)
            session.ledger.assign(start_of("c"), 55.0)
            async with session:
                await asyncio.sleep(0.1)
            return session

        session = asyncio.run(scenario())

        assert session.last_tick is not None
        assert session.last_tick.cursor.current.id == "b"
        assert store.updates == [TimepointUpdate(segment_id="c", start=55.0)]
