# routers/student_progress/progress_route.py
from dataclasses import asdict
from typing import Literal, Optional
from fastapi import APIRouter, Depends, Query
from redis.asyncio import Redis
from pymongo.database import Database

from deps import get_db, get_redis
from auth.dependencies import get_current_user
from services import progress_service
from services.progress_engine import ProgressRecord, VideoDescriptor
from schemas.progress_schema import (
    AdjacentVideoOut,
    CourseProgressOut,
    ProgressDashboardOut,
    ProgressEventIn,
    ProgressRecordOut,
    ResumeOut,
    VideoEndedIn,
    VideoEndedOut,
)

router = APIRouter(prefix="/progress", tags=["progress"])

def _record_out(record: Optional[ProgressRecord]) -> Optional[dict]:
    if record is None:
        return None
    return {
        "video_id": record.video_id,
        "percent": record.percent,
        "last_timestamp_seconds": record.last_timestamp_seconds,
        "completed": record.completed,
        "updated_at": record.updated_at,
    }

def _video_out(video: Optional[VideoDescriptor]) -> Optional[dict]:
    return asdict(video) if video else None

@router.post("/events", response_model=ProgressRecordOut)
async def record_progress_event(payload: ProgressEventIn,
                                db: Database = Depends(get_db),
                                r: Redis = Depends(get_redis),
                                user=Depends(get_current_user)):
    record = await progress_service.record_progress(
        db, r, user_id=user["_id"],
        course_id=payload.course_id, video_id=payload.video_id,
        percent=payload.percent, timestamp_seconds=payload.timestamp_seconds,
    )
    return _record_out(record)

@router.post("/courses/{course_id}/videos/{video_id}/ended", response_model=VideoEndedOut)
async def video_ended(course_id: str, video_id: str, payload: VideoEndedIn,
                      db: Database = Depends(get_db),
                      r: Redis = Depends(get_redis),
                      user=Depends(get_current_user)):
    record, upcoming = await progress_service.complete_video(
        db, r, user_id=user["_id"], course_id=course_id, video_id=video_id,
        timestamp_seconds=payload.timestamp_seconds,
    )
    return {
        "course_id": course_id,
        "progress": _record_out(record),
        "next_video": _video_out(upcoming),
        "course_finished": upcoming is None,
    }

@router.get("/courses/{course_id}", response_model=CourseProgressOut)
async def course_progress(course_id: str,
                          db: Database = Depends(get_db),
                          r: Redis = Depends(get_redis),
                          user=Depends(get_current_user)):
    catalog, view = await progress_service.get_course_progress(db, r, user_id=user["_id"], course_id=course_id)
    return {
        "user_id": user["_id"],
        "course_id": course_id,
        "per_video": {vid: _record_out(rec) for vid, rec in view.per_video.items()},
        "last_watched_video": _video_out(view.last_watched_video),
        "completion_percent": view.completion_percent,
        "total_videos": len(catalog),
    }

@router.get("/courses/{course_id}/resume", response_model=ResumeOut)
async def resume(course_id: str,
                 db: Database = Depends(get_db),
                 r: Redis = Depends(get_redis),
                 user=Depends(get_current_user)):
    state = await progress_service.get_resume_state(db, r, user_id=user["_id"], course_id=course_id)
    return {
        "course_id": course_id,
        "status": state.status,
        "video": _video_out(state.video),
        "progress": _record_out(state.record),
    }

@router.get("/courses/{course_id}/videos/{video_id}/adjacent", response_model=AdjacentVideoOut)
async def adjacent_video(course_id: str, video_id: str,
                         direction: Literal["next", "previous"] = Query("next"),
                         db: Database = Depends(get_db),
                         r: Redis = Depends(get_redis),
                         user=Depends(get_current_user)):
    video = await progress_service.get_adjacent_video(db, r, course_id=course_id, video_id=video_id, direction=direction)
    return {
        "course_id": course_id,
        "current_video_id": video_id,
        "direction": direction,
        "video": _video_out(video),
    }

@router.get("/dashboard", response_model=ProgressDashboardOut)
async def progress_dashboard(db: Database = Depends(get_db),
                             r: Redis = Depends(get_redis),
                             user=Depends(get_current_user)):
    return await progress_service.get_dashboard(db, r, user_id=user["_id"])
