# services/player_session.py
"""
Player-side session for one user watching one course.

The session keeps the ephemeral playback position, throttles progress saves
while a video plays, and asks the progress engine what to play on open, on
video end and on manual navigation. It talks to storage only through a
ProgressBackend, so the same session drives the in-process service or any
remote client with the same shape.
"""
import logging
import math
import time
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from pymongo.errors import PyMongoError
from redis.exceptions import RedisError

from config import settings
from exceptions import CourseHubError
from services import progress_engine as engine
from services import progress_service

logger = logging.getLogger(__name__)


class ProgressBackend(Protocol):
    async def load(self, course_id: str) -> Tuple[List[engine.VideoDescriptor], engine.CourseProgressView]: ...

    async def save(self, course_id: str, video_id: str, percent: float,
                   timestamp_seconds: int) -> engine.ProgressRecord: ...


class ServiceProgressBackend:
    """ProgressBackend over progress_service for a fixed, explicitly passed user."""

    def __init__(self, db, r, user_id: str):
        self._db = db
        self._r = r
        self.user_id = user_id

    async def load(self, course_id):
        return await progress_service.get_course_progress(self._db, self._r, user_id=self.user_id, course_id=course_id)

    async def save(self, course_id, video_id, percent, timestamp_seconds):
        return await progress_service.record_progress(
            self._db, self._r, user_id=self.user_id, course_id=course_id, video_id=video_id,
            percent=percent, timestamp_seconds=timestamp_seconds,
        )


class PlayerSession:
    def __init__(self, backend: ProgressBackend, course_id: str, *,
                 tick_interval: Optional[float] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.backend = backend
        self.course_id = course_id
        self.tick_interval = settings.PROGRESS_TICK_INTERVAL_SECONDS if tick_interval is None else tick_interval
        self._clock = clock

        self.catalog: List[engine.VideoDescriptor] = []
        self.progress: Dict[str, engine.ProgressRecord] = {}
        self.current: Optional[engine.VideoDescriptor] = None
        self.course_complete = False
        self.failed_saves = 0
        self._last_emit: Optional[float] = None
        self._position = 0

    @property
    def completion_percent(self) -> int:
        return engine.compute_completion_percent(self.progress.values(), self.catalog)

    async def open(self) -> engine.ResumeState:
        self.catalog, view = await self.backend.load(self.course_id)
        self.progress = dict(view.per_video)
        state = engine.resolve_resume(self.progress.values(), self.catalog)
        if state.status == engine.EMPTY_COURSE:
            logger.info(f"Course {self.course_id} has no videos to play")
            self._switch(None)
        else:
            self._switch(state.video)
            if state.record:
                self._position = state.record.last_timestamp_seconds
        return state

    def _switch(self, video: Optional[engine.VideoDescriptor]) -> None:
        self.current = video
        self._last_emit = None
        self._position = 0

    async def tick(self, current_time: float, duration: float) -> Optional[engine.ProgressRecord]:
        """
        Report the playback position. Saves at most once per tick_interval;
        returns the stored record, or None when the tick was throttled or the
        save failed (failed saves are logged and counted, playback goes on).
        """
        if self.current is None:
            return None
        if not duration or not math.isfinite(duration) or duration <= 0:
            return None
        if not math.isfinite(current_time):
            self.failed_saves += 1
            logger.warning(f"Dropped progress tick for {self.course_id}/{self.current.video_id}: "
                           f"position {current_time!r} is not finite")
            return None

        now = self._clock()
        if self._last_emit is not None and now - self._last_emit < self.tick_interval:
            return None
        self._last_emit = now

        # media clocks can overshoot the declared duration slightly
        percent = min(current_time / duration * 100, 100.0)
        timestamp = math.floor(current_time)
        self._position = max(timestamp, 0)
        video_id = self.current.video_id
        try:
            record = await self.backend.save(self.course_id, video_id, percent, timestamp)
        except (CourseHubError, PyMongoError, RedisError, ConnectionError) as e:
            self.failed_saves += 1
            logger.warning(f"Dropped progress tick for {self.course_id}/{video_id}: {e}")
            return None
        self.progress[video_id] = record
        return record

    async def video_ended(self, duration: Optional[float] = None) -> Optional[engine.VideoDescriptor]:
        """
        Save the finished video as 100% and move to the next one.

        The final save is awaited before switching; if it fails the error is
        raised and the session stays on the current video.
        """
        if self.current is None:
            return None
        video_id = self.current.video_id
        timestamp = math.floor(duration) if duration else self._position
        record = await self.backend.save(self.course_id, video_id, 100.0, timestamp)
        self.progress[video_id] = record

        upcoming = engine.pick_next(video_id, self.catalog, engine.NEXT)
        if upcoming is None:
            self.course_complete = True
            logger.info(f"Course {self.course_id} session finished at video {video_id}")
        else:
            self._switch(upcoming)
        return upcoming

    def select(self, video_id: str) -> engine.VideoDescriptor:
        video = engine.find_video(self.catalog, video_id)
        self._switch(video)
        return video

    def advance(self, direction: str = engine.NEXT) -> Optional[engine.VideoDescriptor]:
        if self.current is None:
            return None
        upcoming = engine.pick_next(self.current.video_id, self.catalog, direction)
        if upcoming is not None:
            self._switch(upcoming)
        return upcoming
