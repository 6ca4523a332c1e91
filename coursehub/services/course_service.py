# services/course_service.py
import json
import logging
from typing import Dict, Any, List, Optional
from redis.asyncio import Redis
from pymongo.database import Database
from fastapi.concurrency import run_in_threadpool

from config import settings
from exceptions import CourseNotFound
from repos import courses as repo
from repos.helper import JSONEncoder
from services.memory_cache import memory_cache
from services.cache_stats import hit, miss
from services.cache_keys import COURSES_LIST_NS, COURSES_LIST_PREFIX, COURSES_NS, course_key, courses_list_key
from services.progress_engine import VideoDescriptor, catalog_from_course

logger = logging.getLogger(__name__)

def _serialize(doc: Dict[str, Any]) -> str:
    return json.dumps(doc, cls=JSONEncoder)

async def _cache_put(r: Redis, key: str, doc: Dict[str, Any], ttl: int) -> None:
    # L1 holds the same JSON-shaped payload Redis returns
    serialized = _serialize(doc)
    await r.set(key, serialized, ex=ttl)
    await memory_cache.set(key, json.loads(serialized), ttl=ttl)

async def _cache_drop(r: Redis, key: str) -> None:
    await memory_cache.delete(key)
    await r.delete(key)

async def _invalidate_course_lists(r: Redis) -> None:
    cursor = 0
    while True:
        cursor, keys = await r.scan(cursor=cursor, match=f"{COURSES_LIST_PREFIX}*", count=200)
        if keys:
            await r.delete(*keys)
        if cursor == 0:
            break
    await memory_cache.pattern_delete(COURSES_LIST_PREFIX)

# ---------------------------
# Reads
# ---------------------------

async def get_course(db: Database, r: Redis, course_id: str) -> Optional[Dict[str, Any]]:
    """Course document through L1 (memory) then L2 (Redis) then MongoDB."""
    key = course_key(course_id)

    cached = await memory_cache.get(key)
    if cached:
        await hit(r, COURSES_NS)
        return cached

    lock = await memory_cache.get_lock(key)
    try:
        async with lock:
            return await _load_course(db, r, key, course_id)
    finally:
        await memory_cache.release_lock(key)

async def _load_course(db: Database, r: Redis, key: str, course_id: str) -> Optional[Dict[str, Any]]:
    cached = await memory_cache.get(key)
    if cached:
        await hit(r, COURSES_NS)
        return cached

    cached_l2 = await r.get(key)
    if cached_l2:
        payload = json.loads(cached_l2)
        await memory_cache.set(key, payload, ttl=settings.COURSE_CACHE_TTL)
        await hit(r, COURSES_NS)
        return payload

    await miss(r, COURSES_NS)
    doc = await run_in_threadpool(repo.get_course_by_id, db, course_id)
    if not doc:
        return None
    await _cache_put(r, key, doc, settings.COURSE_CACHE_TTL)
    return json.loads(_serialize(doc))

async def require_course(db: Database, r: Redis, course_id: str) -> Dict[str, Any]:
    course = await get_course(db, r, course_id)
    if not course:
        raise CourseNotFound(course_id)
    return course

async def get_catalog(db: Database, r: Redis, course_id: str) -> List[VideoDescriptor]:
    """Ordered video catalog of a course; CourseNotFound if the course doesn't exist."""
    return catalog_from_course(await require_course(db, r, course_id))

async def list_courses(db: Database, r: Redis, *, q: Optional[str], filters: Dict[str, Any], page: int, page_size: int):
    key = courses_list_key(q, filters, page, page_size)

    cached = await memory_cache.get(key)
    if cached:
        await hit(r, COURSES_LIST_NS)
        return cached

    cached_l2 = await r.get(key)
    if cached_l2:
        payload = json.loads(cached_l2)
        await memory_cache.set(key, payload, ttl=settings.COURSE_LIST_CACHE_TTL)
        await hit(r, COURSES_LIST_NS)
        return payload

    await miss(r, COURSES_LIST_NS)
    total, items = await run_in_threadpool(
        repo.list_courses, db, q=q, filters=filters, page=page, page_size=page_size
    )
    payload = {"total": total, "page": page, "page_size": page_size, "items": items}
    await _cache_put(r, key, payload, settings.COURSE_LIST_CACHE_TTL)
    return json.loads(_serialize(payload))

# ---------------------------
# Writes
# ---------------------------

async def create_course(db: Database, r: Redis, data: Dict[str, Any]) -> Dict[str, Any]:
    doc = await run_in_threadpool(repo.insert_course, db, data)
    await _invalidate_course_lists(r)
    await _cache_put(r, course_key(doc["_id"]), doc, settings.COURSE_CACHE_TTL)
    logger.info(f"Course {doc['_id']} created with {doc['videos_count']} videos")
    return doc

async def update_course(db: Database, r: Redis, course_id: str, patch: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    doc = await run_in_threadpool(repo.update_course, db, course_id, patch)
    if doc:
        await invalidate_course(r, course_id)
    return doc

async def append_videos(db: Database, r: Redis, course_id: str, videos: List[Dict[str, Any]]) -> Dict[str, Any]:
    doc = await run_in_threadpool(repo.append_videos, db, course_id, videos)
    if not doc:
        raise CourseNotFound(course_id)
    # the catalog changed, so cached copies must go before anyone reads them
    await invalidate_course(r, course_id)
    logger.info(f"Appended {len(videos)} videos to course {course_id}")
    return doc

async def invalidate_course(r: Redis, course_id: str) -> Dict[str, Any]:
    await _cache_drop(r, course_key(course_id))
    await _invalidate_course_lists(r)
    logger.info(f"Cache cleared for course {course_id}")
    return {"message": f"Cache cleared for course {course_id}"}
