import asyncio
from datetime import datetime, timezone

import pytest

from conftest import create_course
from exceptions import InvalidProgress, UnknownVideo
from services import progress_engine as engine
from services.player_session import PlayerSession, ServiceProgressBackend


class InMemoryBackend:
    """ProgressBackend keeping records in a dict, merged with the engine rules."""

    def __init__(self, video_count=3, fail_saves=False):
        self.catalog = [engine.VideoDescriptor(video_id=f"v{i}", order=i) for i in range(video_count)]
        self.records = {}
        self.saves = []
        self.fail_saves = fail_saves

    async def load(self, course_id):
        return self.catalog, engine.build_course_view(self.records.values(), self.catalog)

    async def save(self, course_id, video_id, percent, timestamp_seconds):
        if self.fail_saves:
            raise ConnectionError("backend down")
        engine.find_video(self.catalog, video_id)
        rec = engine.merge_progress(
            self.records.get(video_id), percent, timestamp_seconds,
            datetime.now(timezone.utc), video_id=video_id,
        )
        self.records[video_id] = rec
        self.saves.append((video_id, percent, timestamp_seconds))
        return rec


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def _session(backend, clock=None, interval=5.0):
    return PlayerSession(backend, "course-1", tick_interval=interval, clock=clock or FakeClock())


def test_open_starts_at_first_video():
    session = _session(InMemoryBackend())
    state = asyncio.run(session.open())
    assert state.status == engine.READY
    assert session.current.video_id == "v0"


def test_open_resumes_last_watched_position():
    backend = InMemoryBackend()
    asyncio.run(backend.save("course-1", "v1", 40, 240))
    session = _session(backend)
    asyncio.run(session.open())
    assert session.current.video_id == "v1"
    assert session._position == 240


def test_open_empty_course():
    session = _session(InMemoryBackend(video_count=0))
    state = asyncio.run(session.open())
    assert state.status == engine.EMPTY_COURSE
    assert session.current is None
    assert asyncio.run(session.tick(10, 100)) is None
    assert asyncio.run(session.video_ended()) is None


def test_ticks_are_throttled():
    backend = InMemoryBackend()
    clock = FakeClock()
    session = _session(backend, clock)

    async def run():
        await session.open()
        first = await session.tick(30, 600)
        clock.now = 2.0
        skipped = await session.tick(32, 600)
        clock.now = 5.0
        second = await session.tick(35.7, 600)
        return first, skipped, second

    first, skipped, second = asyncio.run(run())
    assert first.percent == 5
    assert skipped is None
    assert second.last_timestamp_seconds == 35
    assert len(backend.saves) == 2


def test_tick_clamps_overshoot_and_ignores_bad_duration():
    backend = InMemoryBackend()
    session = _session(backend, interval=0)

    async def run():
        await session.open()
        assert await session.tick(5, 0) is None
        assert await session.tick(5, float("nan")) is None
        return await session.tick(601, 600)

    rec = asyncio.run(run())
    assert rec.percent == 100
    assert len(backend.saves) == 1


def test_failed_tick_is_dropped_and_counted():
    session = _session(InMemoryBackend(fail_saves=True), interval=0)

    async def run():
        await session.open()
        return await session.tick(10, 100)

    assert asyncio.run(run()) is None
    assert session.failed_saves == 1
    assert session.progress == {}


def test_invalid_tick_is_dropped():
    session = _session(InMemoryBackend(), interval=0)

    async def run():
        await session.open()
        return await session.tick(-10, 100)

    assert asyncio.run(run()) is None
    assert session.failed_saves == 1


def test_video_ended_saves_full_and_advances():
    backend = InMemoryBackend()
    session = _session(backend)

    async def run():
        await session.open()
        return await session.video_ended(duration=600)

    upcoming = asyncio.run(run())
    assert upcoming.video_id == "v1"
    assert session.current.video_id == "v1"
    assert backend.records["v0"].completed is True
    assert backend.saves[-1] == ("v0", 100.0, 600)
    assert session.completion_percent == 33


def test_last_video_end_completes_course():
    backend = InMemoryBackend(video_count=2)
    session = _session(backend)

    async def run():
        await session.open()
        await session.video_ended()
        return await session.video_ended()

    assert asyncio.run(run()) is None
    assert session.course_complete is True
    assert session.current.video_id == "v1"
    assert session.completion_percent == 100


def test_failed_final_save_propagates_and_stays_on_video():
    backend = InMemoryBackend()
    session = _session(backend)
    asyncio.run(session.open())
    backend.fail_saves = True
    with pytest.raises(ConnectionError):
        asyncio.run(session.video_ended())
    assert session.current.video_id == "v0"


def test_select_and_advance():
    session = _session(InMemoryBackend())
    asyncio.run(session.open())

    assert session.select("v2").video_id == "v2"
    assert session.advance(engine.NEXT) is None
    assert session.current.video_id == "v2"
    assert session.advance(engine.PREVIOUS).video_id == "v1"

    with pytest.raises(UnknownVideo):
        session.select("missing")


def test_select_resets_throttle():
    backend = InMemoryBackend()
    clock = FakeClock()
    session = _session(backend, clock)

    async def run():
        await session.open()
        await session.tick(10, 600)
        session.select("v1")
        return await session.tick(3, 600)

    rec = asyncio.run(run())
    assert rec.video_id == "v1"


def test_merge_rules_apply_through_session():
    backend = InMemoryBackend()
    session = _session(backend, interval=0)

    async def run():
        await session.open()
        await session.tick(480, 600)
        return await session.tick(60, 600)

    rec = asyncio.run(run())
    assert rec.percent == 80
    assert rec.last_timestamp_seconds == 60
    with pytest.raises(InvalidProgress):
        engine.merge_progress(rec, 120, 0, datetime.now(timezone.utc))


def test_service_backend_drives_stored_progress(client, db, redis, instructor_headers, student_headers):
    course = create_course(client, instructor_headers, videos=2)
    client.post("/enrollments", json={"course_id": course["_id"]}, headers=student_headers)
    session = PlayerSession(ServiceProgressBackend(db, redis, "student-1"), course["_id"], tick_interval=0)

    async def run():
        await session.open()
        await session.tick(300, 600)
        return await session.video_ended(duration=600)

    upcoming = asyncio.run(run())
    assert upcoming.video_id == "v1"

    body = client.get(f"/progress/courses/{course['_id']}", headers=student_headers).json()
    assert body["per_video"]["v0"]["percent"] == 100
    assert body["completion_percent"] == 50


@pytest.mark.parametrize("position", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_position_is_dropped(position):
    backend = InMemoryBackend()
    session = _session(backend, interval=0)

    async def run():
        await session.open()
        dropped = await session.tick(position, 600)
        kept = await session.tick(60, 600)
        return dropped, kept

    dropped, kept = asyncio.run(run())
    assert dropped is None
    assert session.failed_saves == 1
    assert kept.last_timestamp_seconds == 60
    assert backend.saves == [("v0", 10.0, 60)]
