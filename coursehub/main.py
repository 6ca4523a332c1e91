# main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.concurrency import run_in_threadpool
import logging
import sys
from config import settings
from deps import connect, disconnect
from logging_config import setup_logging
from middleware.error_handler import ErrorHandlerMiddleware
from repos.courses import ensure_indexes as ensure_course_indexes
from repos.enrollments import ensure_indexes as ensure_enrollment_indexes
from repos.progress import ensure_indexes as ensure_progress_indexes
from routers.health import router as health_router
from routers.courses_route import courses
from routers.enrollment_route import enrollments
from routers.student_progress import progress_route
from routers.cache_route import cache


setup_logging(
    log_level="DEBUG" if settings.DEBUG else "INFO",
    log_file="logs/app.log" if settings.ENVIRONMENT == "production" else None,
)

logger = logging.getLogger(__name__)


app = FastAPI(
    title="CourseHub API",
    description="Course marketplace with enrollment and resumable video progress",
    version="1.0.0"
)


@app.on_event("startup")
async def startup():
    logger.info(f"Starting CourseHub ({settings.ENVIRONMENT}), completion threshold {settings.COMPLETION_THRESHOLD}%")

    try:
        await connect(app, settings.MONGO_URI, settings.REDIS_URL)
    except Exception as e:
        logger.critical(f"Failed to connect to storage: {str(e)}")
        sys.exit(1)

    # one record per (user, course, video) and per (user, course) relies on these
    try:
        await run_in_threadpool(ensure_progress_indexes, app.state.db)
        await run_in_threadpool(ensure_enrollment_indexes, app.state.db)
    except Exception as e:
        logger.critical(f"Failed to ensure progress/enrollment indexes: {str(e)}")
        sys.exit(1)

    try:
        await run_in_threadpool(ensure_course_indexes, app.state.db)
    except Exception as e:
        logger.error(f"Failed to ensure course indexes, catalog search may be slow: {str(e)}")

    logger.info("Application startup completed")

@app.on_event("shutdown")
async def shutdown():
    await disconnect(app)
    logger.info("Application shutdown completed")

# wraps every route so domain errors come back as JSON bodies
app.add_middleware(ErrorHandlerMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(courses.router)
app.include_router(enrollments.router)
app.include_router(progress_route.router)
app.include_router(cache.router)
