# middleware/error_handler.py
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from pymongo.errors import PyMongoError
from redis.exceptions import RedisError
import logging
import traceback
from typing import Callable

from exceptions import CourseNotFound, InvalidProgress, NotEnrolled, UnknownVideo

logger = logging.getLogger(__name__)

# domain error -> (status, error label)
_CLIENT_ERRORS = (
    (InvalidProgress, 422, "Invalid Progress"),
    (UnknownVideo, 404, "Unknown Video"),
    (CourseNotFound, 404, "Course Not Found"),
    (NotEnrolled, 403, "Not Enrolled"),
)

def _error(status_code: int, error: str, message: str, request: Request) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "message": message, "path": str(request.url.path)},
    )

class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Turns exceptions escaping the routes into JSON error responses.
    """

    async def dispatch(self, request: Request, call_next: Callable):
        try:
            return await call_next(request)

        except HTTPException:
            raise

        except ValueError as e:
            for exc_type, status_code, label in _CLIENT_ERRORS:
                if isinstance(e, exc_type):
                    logger.warning(f"{label} on {request.url.path}: {str(e)}")
                    return _error(status_code, label, str(e), request)
            logger.warning(f"Validation error on {request.url.path}: {str(e)}")
            return _error(400, "Validation Error", str(e), request)

        except (PyMongoError, RedisError, ConnectionError) as e:
            logger.error(f"Storage error on {request.url.path}: {str(e)}")
            return _error(503, "Service Unavailable", "Storage backend error", request)

        except Exception as e:
            logger.error(f"Unexpected error on {request.url.path}: {str(e)}")
            logger.error(f"Traceback: {traceback.format_exc()}")
            return _error(500, "Internal Server Error", "An unexpected error occurred", request)
