# services/progress_service.py
import logging
from typing import Dict, Any, List, Optional, Tuple
from datetime import datetime, timezone
from redis.asyncio import Redis
from pymongo.database import Database
from fastapi.concurrency import run_in_threadpool

from config import settings
from exceptions import InvalidProgress, UnknownVideo
from repos import progress as repo
from repos import enrollments as enrollment_repo
from services import course_service, enrollment_service
from services import progress_engine as engine

logger = logging.getLogger(__name__)

# Progress is never cached: completion must always reflect every stored record.

async def record_progress(db: Database, r: Redis, *, user_id: str, course_id: str, video_id: str,
                          percent: float, timestamp_seconds: int,
                          now: Optional[datetime] = None) -> engine.ProgressRecord:
    """Validate one playback event and merge it into the user's record for that video."""
    try:
        engine.validate_progress(percent, timestamp_seconds)
    except InvalidProgress as e:
        logger.warning(f"Rejected progress from user {user_id} for {course_id}/{video_id}: {e}")
        raise

    catalog = await course_service.get_catalog(db, r, course_id)
    await enrollment_service.assert_enrolled(db, user_id=user_id, course_id=course_id)
    if not any(v.video_id == video_id for v in catalog):
        raise UnknownVideo(video_id, course_id)

    record = await run_in_threadpool(
        repo.upsert_merge, db,
        user_id=user_id, course_id=course_id, video_id=video_id,
        percent=percent, timestamp_seconds=timestamp_seconds,
        now=now or datetime.now(timezone.utc),
        threshold=settings.COMPLETION_THRESHOLD,
    )
    logger.debug(f"Progress {user_id}/{course_id}/{video_id}: {record.percent:.1f}% at {record.last_timestamp_seconds}s")
    return record

async def _load(db: Database, r: Redis, user_id: str, course_id: str):
    catalog = await course_service.get_catalog(db, r, course_id)
    await enrollment_service.assert_enrolled(db, user_id=user_id, course_id=course_id)
    records = await run_in_threadpool(
        repo.list_for_course, db, user_id, course_id, settings.COMPLETION_THRESHOLD
    )
    return catalog, records

async def get_course_progress(db: Database, r: Redis, *, user_id: str,
                              course_id: str) -> Tuple[List[engine.VideoDescriptor], engine.CourseProgressView]:
    """Catalog plus the derived progress view, recomputed from every stored record."""
    catalog, records = await _load(db, r, user_id, course_id)
    return catalog, engine.build_course_view(records, catalog)

async def get_resume_state(db: Database, r: Redis, *, user_id: str, course_id: str) -> engine.ResumeState:
    catalog, records = await _load(db, r, user_id, course_id)
    return engine.resolve_resume(records, catalog)

async def get_adjacent_video(db: Database, r: Redis, *, course_id: str, video_id: str,
                             direction: str) -> Optional[engine.VideoDescriptor]:
    catalog = await course_service.get_catalog(db, r, course_id)
    try:
        return engine.pick_next(video_id, catalog, direction)
    except UnknownVideo:
        raise UnknownVideo(video_id, course_id) from None

async def complete_video(db: Database, r: Redis, *, user_id: str, course_id: str, video_id: str,
                         timestamp_seconds: int) -> Tuple[engine.ProgressRecord, Optional[engine.VideoDescriptor]]:
    """Forced 100% save at the end of a video, then the video that follows it (None at the end)."""
    record = await record_progress(db, r, user_id=user_id, course_id=course_id, video_id=video_id,
                                   percent=100.0, timestamp_seconds=timestamp_seconds)
    catalog = await course_service.get_catalog(db, r, course_id)
    return record, engine.pick_next(video_id, catalog, engine.NEXT)

async def get_dashboard(db: Database, r: Redis, *, user_id: str) -> Dict[str, Any]:
    enrollments = await run_in_threadpool(enrollment_repo.list_for_user, db, user_id)
    items = []
    for e in enrollments:
        course = await course_service.get_course(db, r, e["course_id"])
        if not course:
            continue
        catalog = engine.catalog_from_course(course)
        records = await run_in_threadpool(
            repo.list_for_course, db, user_id, e["course_id"], settings.COMPLETION_THRESHOLD
        )
        in_catalog = {v.video_id for v in catalog}
        stamps = [rec.updated_at for rec in records if rec.updated_at is not None]
        items.append({
            "course_id": e["course_id"],
            "course_title": course.get("title", ""),
            "completion_percent": engine.compute_completion_percent(records, catalog),
            "completed_videos": sum(1 for rec in records if rec.completed and rec.video_id in in_catalog),
            "total_videos": len(catalog),
            "last_activity": max(stamps) if stamps else None,
        })

    # most recently watched first, untouched courses last
    items.sort(key=lambda it: (it["last_activity"] is not None, it["last_activity"] or datetime.min), reverse=True)
    total_courses = len(items)
    # counted on videos, not on the rounded percent (199 of 200 rounds to 100)
    completed_courses = sum(1 for it in items if it["total_videos"] and it["completed_videos"] == it["total_videos"])
    avg = round(sum(it["completion_percent"] for it in items) / total_courses, 2) if total_courses else 0.0
    return {
        "user_id": user_id,
        "total_courses": total_courses,
        "completed_courses": completed_courses,
        "average_completion": avg,
        "items": items,
    }
