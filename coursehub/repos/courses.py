from pymongo.database import Database
from pymongo import ASCENDING, DESCENDING, TEXT
from bson import ObjectId
from typing import Dict, Any, List, Optional, Tuple
from datetime import datetime, timezone
import uuid

# retries when another writer appends videos concurrently
APPEND_ATTEMPTS = 5

# ---------------------------
# Helpers
# ---------------------------

def _to_object_id(id_str: str) -> Optional[ObjectId]:
    return ObjectId(id_str) if ObjectId.is_valid(id_str) else None

def _denormalize(course: Dict[str, Any]) -> Dict[str, Any]:
    videos = course.get("videos", [])
    course["videos_count"] = len(videos)
    course["total_duration_seconds"] = sum(float(v.get("duration_seconds") or 0) for v in videos)
    return course

def _check_unique_ids(existing: List[Dict[str, Any]], new_videos: List[Dict[str, Any]]) -> None:
    seen = {v["video_id"] for v in existing}
    dupes = []
    for v in new_videos:
        if v["video_id"] in seen:
            dupes.append(v["video_id"])
        seen.add(v["video_id"])
    if dupes:
        raise ValueError(f"Duplicate video ids in course: {', '.join(dupes)}")

def _new_video(video: Dict[str, Any], order: int) -> Dict[str, Any]:
    return {
        "video_id": video.get("video_id") or str(uuid.uuid4()),
        "order": order,
        "title": video["title"],
        "duration_seconds": video.get("duration_seconds"),
        "url": video.get("url"),
    }

# ---------------------------
# Indexes
# ---------------------------

def ensure_indexes(db: Database) -> None:
    db.courses.create_index([("title", TEXT), ("description", TEXT)], name="courses_text")
    db.courses.create_index([("published", ASCENDING), ("created_at", DESCENDING)])
    db.courses.create_index([("instructor_id", ASCENDING), ("created_at", DESCENDING)])

# ---------------------------
# CRUD
# ---------------------------

def insert_course(db: Database, data: Dict[str, Any]) -> Dict[str, Any]:
    now = datetime.now(timezone.utc)
    videos = [_new_video(v, i) for i, v in enumerate(data.get("videos", []))]
    _check_unique_ids([], videos)

    data = _denormalize({
        **data,
        "instructor_id": str(data["instructor_id"]),
        "videos": videos,
        "enroll_count": 0,
        "created_at": now,
        "updated_at": now,
    })

    result = db.courses.insert_one(data)
    data["_id"] = str(result.inserted_id)
    return data

def get_course_by_id(db: Database, course_id: str) -> Optional[Dict[str, Any]]:
    oid = _to_object_id(course_id)
    if oid is None:
        return None
    doc = db.courses.find_one({"_id": oid})
    if not doc:
        return None
    doc["_id"] = str(doc["_id"])
    return doc

def update_course(db: Database, course_id: str, patch: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    oid = _to_object_id(course_id)
    if oid is None:
        return None
    patch = {k: v for k, v in patch.items() if k in ("title", "description", "published")}
    patch["updated_at"] = datetime.now(timezone.utc)
    res = db.courses.update_one({"_id": oid}, {"$set": patch})
    if res.matched_count == 0:
        return None
    return get_course_by_id(db, course_id)

def append_videos(db: Database, course_id: str, videos: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Append videos to the catalog, numbering them after the existing ones.

    Orders stay contiguous because the push only applies while the catalog
    still has the size the orders were computed from.
    """
    oid = _to_object_id(course_id)
    if oid is None:
        return None

    for _ in range(APPEND_ATTEMPTS):
        current = db.courses.find_one({"_id": oid}, {"videos": 1})
        if not current:
            return None
        existing = current.get("videos", [])
        start = len(existing)
        new_videos = [_new_video(v, start + i) for i, v in enumerate(videos)]
        _check_unique_ids(existing, new_videos)

        added_duration = sum(float(v.get("duration_seconds") or 0) for v in new_videos)
        res = db.courses.update_one(
            {"_id": oid, "videos": {"$size": start}},
            {
                "$push": {"videos": {"$each": new_videos}},
                "$inc": {"videos_count": len(new_videos), "total_duration_seconds": added_duration},
                "$set": {"updated_at": datetime.now(timezone.utc)},
            },
        )
        if res.modified_count == 1:
            return get_course_by_id(db, course_id)

    raise RuntimeError(f"Could not append videos to course {course_id}: catalog kept changing")

def increment_enroll_count(db: Database, course_id: str) -> None:
    oid = _to_object_id(course_id)
    if oid is not None:
        db.courses.update_one({"_id": oid}, {"$inc": {"enroll_count": 1}})

# ---------------------------
# List with search + filters
# ---------------------------

def _build_match(filters: Dict[str, Any]) -> Dict[str, Any]:
    match: Dict[str, Any] = {}
    if "published" in filters:
        match["published"] = filters["published"]
    if "instructor_id" in filters:
        match["instructor_id"] = str(filters["instructor_id"])
    if "access_kind" in filters:
        match["access.kind"] = filters["access_kind"]
    return match

def list_courses(
    db: Database,
    *,
    q: Optional[str],
    filters: Dict[str, Any],
    page: int,
    page_size: int,
) -> Tuple[int, List[Dict[str, Any]]]:
    match = _build_match(filters)
    if q:
        match["$text"] = {"$search": q}

    total = db.courses.count_documents(match)
    cursor = (
        db.courses.find(match)
        .sort("created_at", DESCENDING)
        .skip((page - 1) * page_size)
        .limit(page_size)
    )
    items = []
    for doc in cursor:
        doc["_id"] = str(doc["_id"])
        items.append(doc)
    return total, items
