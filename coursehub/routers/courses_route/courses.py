from fastapi import APIRouter, Depends, HTTPException, Query, status
from redis.asyncio import Redis
from pymongo.database import Database
from typing import Literal, Optional
from deps import get_db, get_redis
from auth.dependencies import require_role, get_current_user
from services import course_service
from schemas.course_schema import CourseCreate, CourseUpdate, CoursesPage, CourseOut, VideosAppend

router = APIRouter(prefix="/courses", tags=["courses"])

@router.get("", response_model=CoursesPage)
async def list_courses(
    search: Optional[str] = Query(None, description="Full-text search"),
    instructor_id: Optional[str] = None,
    access: Optional[Literal["free", "paid"]] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(12, ge=1, le=100),
    db: Database = Depends(get_db),
    r: Redis = Depends(get_redis),
):
    """Published courses, newest first."""
    filters = {
        "published": True,
        **({"instructor_id": instructor_id} if instructor_id else {}),
        **({"access_kind": access} if access else {}),
    }
    return await course_service.list_courses(db, r, q=search, filters=filters, page=page, page_size=page_size)

@router.post("", response_model=CourseOut, status_code=status.HTTP_201_CREATED,
             dependencies=[Depends(require_role("instructor", "admin"))])
async def create_course(payload: CourseCreate, db: Database = Depends(get_db), r: Redis = Depends(get_redis), user=Depends(get_current_user)):
    """
    Create a course with its access model (free or paid) and an optional
    initial video list. Instructors can only create courses for themselves.
    """
    if str(payload.instructor_id) != str(user["_id"]) and user["role"] != "admin":
        raise HTTPException(status_code=403, detail="You can only create courses for yourself")
    return await course_service.create_course(db, r, payload.model_dump())

@router.get("/{course_id}", response_model=CourseOut)
async def get_course(course_id: str, db: Database = Depends(get_db), r: Redis = Depends(get_redis)):
    doc = await course_service.get_course(db, r, course_id)
    if not doc:
        raise HTTPException(status_code=404, detail="Course not found")
    return doc

async def _owned_course(course_id: str, db: Database, r: Redis, user) -> dict:
    course = await course_service.get_course(db, r, course_id)
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    if user["role"] != "admin" and course["instructor_id"] != str(user["_id"]):
        raise HTTPException(status_code=403, detail="Not allowed")
    return course

@router.put("/{course_id}", response_model=CourseOut,
            dependencies=[Depends(require_role("instructor", "admin"))])
async def update_course(course_id: str, payload: CourseUpdate,
                        db: Database = Depends(get_db),
                        r: Redis = Depends(get_redis),
                        user=Depends(get_current_user)):
    """Update title, description or published flag. Access can't change after creation."""
    await _owned_course(course_id, db, r, user)
    patch = {k: v for k, v in payload.model_dump().items() if v is not None}
    updated = await course_service.update_course(db, r, course_id, patch)
    if not updated:
        raise HTTPException(status_code=404, detail="Course not found")
    return updated

@router.post("/{course_id}/videos", response_model=CourseOut,
             dependencies=[Depends(require_role("instructor", "admin"))])
async def append_videos(course_id: str, payload: VideosAppend,
                        db: Database = Depends(get_db),
                        r: Redis = Depends(get_redis),
                        user=Depends(get_current_user)):
    """Append videos to the end of the catalog; orders continue from the last video."""
    await _owned_course(course_id, db, r, user)
    return await course_service.append_videos(db, r, course_id, [v.model_dump() for v in payload.videos])
