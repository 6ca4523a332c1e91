from pydantic import BaseModel, constr
from typing import Dict, List, Literal, Optional
from datetime import datetime

from schemas.course_schema import VideoOut

ID = constr(strip_whitespace=True, min_length=1)

class ProgressEventIn(BaseModel):
    course_id: ID
    video_id: ID
    # range checks happen in the progress engine so every caller gets the same rules
    percent: float
    timestamp_seconds: int

class ProgressRecordOut(BaseModel):
    video_id: str
    percent: float
    last_timestamp_seconds: int
    completed: bool
    updated_at: Optional[datetime] = None

class CourseProgressOut(BaseModel):
    user_id: str
    course_id: str
    per_video: Dict[str, ProgressRecordOut] = {}
    last_watched_video: Optional[VideoOut] = None
    completion_percent: int = 0
    total_videos: int = 0

class ResumeOut(BaseModel):
    course_id: str
    status: Literal["ready", "empty_course"]
    video: Optional[VideoOut] = None
    progress: Optional[ProgressRecordOut] = None

class AdjacentVideoOut(BaseModel):
    course_id: str
    current_video_id: str
    direction: Literal["next", "previous"]
    video: Optional[VideoOut] = None

class DashboardCourseItem(BaseModel):
    course_id: str
    course_title: str
    completion_percent: int = 0
    completed_videos: int = 0
    total_videos: int = 0
    last_activity: Optional[datetime] = None

class ProgressDashboardOut(BaseModel):
    user_id: str
    total_courses: int
    completed_courses: int
    average_completion: float
    items: List[DashboardCourseItem]

class VideoEndedIn(BaseModel):
    timestamp_seconds: int = 0

class VideoEndedOut(BaseModel):
    course_id: str
    progress: ProgressRecordOut
    next_video: Optional[VideoOut] = None
    course_finished: bool
