# services/enrollment_service.py
import logging
from typing import Dict, Any, List
from redis.asyncio import Redis
from pymongo.database import Database
from fastapi.concurrency import run_in_threadpool

from exceptions import NotEnrolled
from repos import courses as course_repo
from repos import enrollments as repo
from schemas.course_schema import amount_due
from services import course_service

logger = logging.getLogger(__name__)

async def _count_enrollment(db: Database, r: Redis, course_id: str) -> None:
    await run_in_threadpool(course_repo.increment_enroll_count, db, course_id)
    # cached copies still carry the old enroll_count
    await course_service.invalidate_course(r, course_id)

async def enroll(db: Database, r: Redis, *, user_id: str, course_id: str) -> Dict[str, Any]:
    """
    Enroll a user. Free courses activate immediately; paid ones wait in
    pending_payment until an externally verified payment is confirmed.
    """
    course = await course_service.require_course(db, r, course_id)

    existing = await run_in_threadpool(repo.get_enrollment, db, user_id, course_id)
    if existing:
        return existing

    amount = amount_due(course.get("access") or {"kind": "free"})
    status = repo.ACTIVE if amount == 0 else repo.PENDING_PAYMENT
    doc, created = await run_in_threadpool(
        repo.create_enrollment, db, user_id=user_id, course_id=course_id, status=status, amount=amount
    )
    if created and doc["status"] == repo.ACTIVE:
        await _count_enrollment(db, r, course_id)
    logger.info(f"User {user_id} enrollment in course {course_id}: {doc['status']}")
    return doc

async def confirm_payment(db: Database, r: Redis, *, user_id: str, course_id: str, payment_id: str) -> Dict[str, Any]:
    await course_service.require_course(db, r, course_id)
    doc = await run_in_threadpool(
        repo.activate_enrollment, db, user_id=user_id, course_id=course_id, payment_id=payment_id
    )
    if not doc:
        current = await run_in_threadpool(repo.get_enrollment, db, user_id, course_id)
        if current and current["status"] == repo.ACTIVE:
            return current
        raise NotEnrolled(user_id, course_id)
    await _count_enrollment(db, r, course_id)
    logger.info(f"Payment {payment_id} activated enrollment of user {user_id} in course {course_id}")
    return doc

async def assert_enrolled(db: Database, *, user_id: str, course_id: str) -> None:
    if not await run_in_threadpool(repo.is_enrolled, db, user_id, course_id):
        raise NotEnrolled(user_id, course_id)

async def my_courses(db: Database, r: Redis, *, user_id: str) -> List[Dict[str, Any]]:
    enrollments = await run_in_threadpool(repo.list_for_user, db, user_id)
    items = []
    for e in enrollments:
        course = await course_service.get_course(db, r, e["course_id"])
        if not course:
            logger.warning(f"Enrollment of user {user_id} points at missing course {e['course_id']}")
            continue
        items.append({
            "course_id": e["course_id"],
            "title": course.get("title", ""),
            "videos_count": course.get("videos_count", 0),
            "enrolled_at": e.get("activated_at") or e["created_at"],
        })
    return items
