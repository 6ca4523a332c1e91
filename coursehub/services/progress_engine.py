# services/progress_engine.py
"""
Pure progress-tracking rules.

Nothing in here touches the database or the network: the functions take a
catalog (ordered VideoDescriptors) and the user's progress records for one
course and derive completion, resume and navigation state from them.
"""
import math
from dataclasses import dataclass, field
from datetime import datetime
from numbers import Real
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from exceptions import InvalidProgress, UnknownVideo

DEFAULT_COMPLETION_THRESHOLD = 90.0

NEXT = "next"
PREVIOUS = "previous"
DIRECTIONS = (NEXT, PREVIOUS)

# Resume statuses
READY = "ready"
EMPTY_COURSE = "empty_course"


@dataclass(frozen=True)
class VideoDescriptor:
    video_id: str
    order: int
    title: str = ""
    duration_seconds: Optional[float] = None
    url: Optional[str] = None


@dataclass(frozen=True)
class ProgressRecord:
    video_id: str
    percent: float
    last_timestamp_seconds: int
    updated_at: Optional[datetime] = None
    threshold: float = field(default=DEFAULT_COMPLETION_THRESHOLD, repr=False, compare=False)
    completed: bool = field(init=False)

    def __post_init__(self):
        # completed always follows percent; it can't be passed in
        object.__setattr__(self, "completed", self.percent >= self.threshold)


@dataclass(frozen=True)
class CourseProgressView:
    per_video: Dict[str, ProgressRecord]
    last_watched_video: Optional[VideoDescriptor]
    completion_percent: int


@dataclass(frozen=True)
class ResumeState:
    status: str
    video: Optional[VideoDescriptor] = None
    record: Optional[ProgressRecord] = None


# ---------------------------
# Catalog helpers
# ---------------------------

def catalog_from_course(course: Mapping[str, Any]) -> List[VideoDescriptor]:
    """Build the ordered catalog from a stored course document."""
    videos = [
        VideoDescriptor(
            video_id=str(v["video_id"]),
            order=int(v["order"]),
            title=v.get("title", ""),
            duration_seconds=v.get("duration_seconds"),
            url=v.get("url"),
        )
        for v in course.get("videos", [])
    ]
    return sorted(videos, key=lambda v: v.order)


def _index_catalog(catalog: Iterable[VideoDescriptor]) -> Dict[str, VideoDescriptor]:
    return {v.video_id: v for v in catalog}


def find_video(catalog: Sequence[VideoDescriptor], video_id: str) -> VideoDescriptor:
    for v in catalog:
        if v.video_id == video_id:
            return v
    raise UnknownVideo(video_id)


def first_video(catalog: Sequence[VideoDescriptor]) -> Optional[VideoDescriptor]:
    return min(catalog, key=lambda v: v.order) if catalog else None


# ---------------------------
# Validation & merge
# ---------------------------

def validate_progress(percent: Any, timestamp_seconds: Any) -> None:
    if isinstance(percent, bool) or not isinstance(percent, Real):
        raise InvalidProgress(f"percent must be a number, got {percent!r}")
    if not math.isfinite(percent):
        raise InvalidProgress(f"percent must be finite, got {percent!r}")
    if percent < 0 or percent > 100:
        raise InvalidProgress(f"percent must be within [0, 100], got {percent!r}")
    if isinstance(timestamp_seconds, bool) or not isinstance(timestamp_seconds, int):
        raise InvalidProgress(f"timestamp_seconds must be an integer, got {timestamp_seconds!r}")
    if timestamp_seconds < 0:
        raise InvalidProgress(f"timestamp_seconds must be non-negative, got {timestamp_seconds}")


def clamp_percent(percent: float) -> float:
    return float(min(max(percent, 0.0), 100.0))


def merge_progress(
    existing: Optional[ProgressRecord],
    percent: float,
    timestamp_seconds: int,
    now: datetime,
    *,
    video_id: Optional[str] = None,
    threshold: float = DEFAULT_COMPLETION_THRESHOLD,
) -> ProgressRecord:
    """
    Merge one playback event into the stored record.

    percent only moves up (max of stored and incoming); position and
    updated_at always take the incoming event, so a backward seek moves
    the resume point back.
    """
    validate_progress(percent, timestamp_seconds)
    if existing is None and video_id is None:
        raise ValueError("video_id is required when there is no existing record")

    previous = existing.percent if existing else 0.0
    return ProgressRecord(
        video_id=existing.video_id if existing else video_id,
        percent=max(previous, clamp_percent(percent)),
        last_timestamp_seconds=timestamp_seconds,
        updated_at=now,
        threshold=threshold,
    )


# ---------------------------
# Derivations
# ---------------------------

def select_last_watched(
    records: Iterable[ProgressRecord],
    catalog: Sequence[VideoDescriptor],
) -> Optional[VideoDescriptor]:
    by_id = _index_catalog(catalog)
    best = None
    best_key = None
    for rec in records:
        video = by_id.get(rec.video_id)
        if video is None or rec.percent <= 0:
            continue
        # records without a timestamp sort before any dated one
        key = (rec.updated_at is not None, rec.updated_at or datetime.min, video.order)
        if best_key is None or key > best_key:
            best, best_key = video, key
    return best


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_completion_percent(
    records: Iterable[ProgressRecord],
    catalog: Sequence[VideoDescriptor],
) -> int:
    total = len(catalog)
    if total == 0:
        return 0
    by_id = _index_catalog(catalog)
    completed = sum(1 for rec in records if rec.completed and rec.video_id in by_id)
    return round_half_up(100 * completed / total)


def pick_next(
    current_video_id: str,
    catalog: Sequence[VideoDescriptor],
    direction: str = NEXT,
) -> Optional[VideoDescriptor]:
    if direction not in DIRECTIONS:
        raise ValueError(f"direction must be one of {DIRECTIONS}, got {direction!r}")
    ordered = sorted(catalog, key=lambda v: v.order)
    for i, video in enumerate(ordered):
        if video.video_id != current_video_id:
            continue
        j = i + 1 if direction == NEXT else i - 1
        if 0 <= j < len(ordered):
            return ordered[j]
        return None
    raise UnknownVideo(current_video_id)


def build_course_view(
    records: Iterable[ProgressRecord],
    catalog: Sequence[VideoDescriptor],
) -> CourseProgressView:
    records = list(records)
    return CourseProgressView(
        per_video={rec.video_id: rec for rec in records},
        last_watched_video=select_last_watched(records, catalog),
        completion_percent=compute_completion_percent(records, catalog),
    )


def resolve_resume(
    records: Iterable[ProgressRecord],
    catalog: Sequence[VideoDescriptor],
) -> ResumeState:
    if not catalog:
        return ResumeState(status=EMPTY_COURSE)
    records = list(records)
    video = select_last_watched(records, catalog) or first_video(catalog)
    record = next((r for r in records if r.video_id == video.video_id), None)
    return ResumeState(status=READY, video=video, record=record)
