from fastapi import APIRouter, Depends
from redis.asyncio import Redis
from deps import get_redis
from auth.dependencies import require_role
from services import course_service
from services.cache_stats import get_stats, reset_stats
from services.memory_cache import memory_cache

router = APIRouter(prefix="/cache", tags=["cache"], dependencies=[Depends(require_role("admin"))])

@router.delete("/courses/{course_id}")
async def invalidate_course(course_id: str, r: Redis = Depends(get_redis)):
    """Drop a course from both cache layers, e.g. after editing it directly in MongoDB."""
    return await course_service.invalidate_course(r, course_id)

@router.get("/stats")
async def cache_stats(r: Redis = Depends(get_redis)):
    stats = await get_stats(r)
    stats["l1"] = {"size": memory_cache.size(), "max_entries": memory_cache.max_entries,
                   "evictions": memory_cache.evictions}
    return stats

@router.delete("/stats")
async def clear_cache_stats(r: Redis = Depends(get_redis)):
    await reset_stats(r)
    return {"message": "Cache statistics reset"}
