"""
Domain errors raised by the progress engine and the services around it.

All of them are ValueErrors: they describe a bad request, never a broken
backend. Store failures (PyMongoError, RedisError) propagate untouched.
"""


class CourseHubError(ValueError):
    """Base class for client-side errors."""


class InvalidProgress(CourseHubError):
    """A progress event carried a malformed percent or timestamp."""


class UnknownVideo(CourseHubError):
    """A video id is not part of the course catalog."""

    def __init__(self, video_id: str, course_id: str = None):
        self.video_id = video_id
        self.course_id = course_id
        where = f" in course {course_id}" if course_id else ""
        super().__init__(f"Video {video_id} not found{where}")


class CourseNotFound(CourseHubError):
    def __init__(self, course_id: str):
        self.course_id = course_id
        super().__init__(f"Course {course_id} not found")


class NotEnrolled(CourseHubError):
    def __init__(self, user_id: str, course_id: str):
        self.user_id = user_id
        self.course_id = course_id
        super().__init__(f"User {user_id} is not enrolled in course {course_id}")
