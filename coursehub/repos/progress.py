# repos/progress.py
from typing import Dict, Any, Optional, List
from datetime import datetime, timezone
from pymongo.database import Database
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from services.progress_engine import (
    DEFAULT_COMPLETION_THRESHOLD,
    ProgressRecord,
    clamp_percent,
    validate_progress,
)

# retries for the first-insert race on the unique key
UPSERT_ATTEMPTS = 3

_PROJECTION = {"_id": 0, "video_id": 1, "percent": 1, "last_timestamp_seconds": 1, "updated_at": 1}

def ensure_indexes(db: Database) -> None:
    # unique key also serves the (user_id, course_id) prefix scan
    db.progress.create_index(
        [("user_id", ASCENDING), ("course_id", ASCENDING), ("video_id", ASCENDING)],
        unique=True, name="user_course_video_unique"
    )
    db.progress.create_index([("user_id", ASCENDING), ("updated_at", DESCENDING)], name="user_updated_at")

def _to_record(doc: Dict[str, Any], threshold: float) -> ProgressRecord:
    return ProgressRecord(
        video_id=doc["video_id"],
        percent=float(doc.get("percent", 0.0)),
        last_timestamp_seconds=int(doc.get("last_timestamp_seconds", 0)),
        updated_at=doc.get("updated_at"),
        threshold=threshold,
    )

def get_progress(db: Database, user_id: str, course_id: str, video_id: str,
                 threshold: float = DEFAULT_COMPLETION_THRESHOLD) -> Optional[ProgressRecord]:
    doc = db.progress.find_one({"user_id": user_id, "course_id": course_id, "video_id": video_id}, _PROJECTION)
    if not doc:
        return None
    return _to_record(doc, threshold)

def list_for_course(db: Database, user_id: str, course_id: str,
                    threshold: float = DEFAULT_COMPLETION_THRESHOLD) -> List[ProgressRecord]:
    cursor = db.progress.find({"user_id": user_id, "course_id": course_id}, _PROJECTION)
    return [_to_record(doc, threshold) for doc in cursor]

def upsert_merge(db: Database, *, user_id: str, course_id: str, video_id: str, percent: float,
                 timestamp_seconds: int, now: Optional[datetime] = None,
                 threshold: float = DEFAULT_COMPLETION_THRESHOLD) -> ProgressRecord:
    """
    Atomically merge one playback event into the (user, course, video) record.

    $max keeps percent monotonic even when concurrent writers interleave;
    position and updated_at are last-writer-wins.
    """
    validate_progress(percent, timestamp_seconds)
    now = now or datetime.now(timezone.utc)
    key = {"user_id": user_id, "course_id": course_id, "video_id": video_id}
    update = {
        "$max": {"percent": clamp_percent(percent)},
        "$set": {"last_timestamp_seconds": timestamp_seconds, "updated_at": now},
        "$setOnInsert": {"created_at": now},
    }

    for attempt in range(1, UPSERT_ATTEMPTS + 1):
        try:
            doc = db.progress.find_one_and_update(
                key, update, projection=_PROJECTION, upsert=True, return_document=ReturnDocument.AFTER
            )
            return _to_record(doc, threshold)
        except DuplicateKeyError:
            # another writer inserted the record first; now it exists, so update it
            if attempt == UPSERT_ATTEMPTS:
                raise
