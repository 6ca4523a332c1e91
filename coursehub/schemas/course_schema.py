from pydantic import BaseModel, ConfigDict, Field, constr, model_validator
from typing import Annotated, List, Optional, Literal, Union
from datetime import datetime

# Keep IDs as str at the API boundary. Convert to ObjectId in the repo.
ID = constr(strip_whitespace=True, min_length=1)

# ---------------------------
# Access: decided once when the course is created
# ---------------------------

class FreeAccess(BaseModel):
    kind: Literal["free"] = "free"

class PaidAccess(BaseModel):
    kind: Literal["paid"] = "paid"
    price: float = Field(..., gt=0)
    discount_price: float = Field(default=0, ge=0)

    @model_validator(mode="after")
    def check_discount(self):
        if self.discount_price >= self.price:
            raise ValueError("discount_price must be lower than price")
        return self

    @property
    def effective_price(self) -> float:
        return self.discount_price if self.discount_price > 0 else self.price

CourseAccess = Annotated[Union[FreeAccess, PaidAccess], Field(discriminator="kind")]

def amount_due(access: dict) -> float:
    """Price a student pays for a stored access document (0 for free courses)."""
    if access.get("kind") != "paid":
        return 0.0
    return PaidAccess(**access).effective_price

# ---------------------------
# Videos
# ---------------------------

class VideoIn(BaseModel):
    video_id: Optional[ID] = None
    title: constr(min_length=1)
    duration_seconds: Optional[float] = Field(default=None, ge=0)
    url: Optional[str] = None

class VideosAppend(BaseModel):
    videos: List[VideoIn] = Field(..., min_length=1)

class VideoOut(BaseModel):
    video_id: str
    order: int
    title: str
    duration_seconds: Optional[float] = None
    url: Optional[str] = None

# ---------------------------
# Courses
# ---------------------------

class CourseCreate(BaseModel):
    title: constr(min_length=3)
    description: str = ""
    access: CourseAccess = Field(default_factory=FreeAccess)
    instructor_id: ID
    videos: List[VideoIn] = []
    published: bool = False

class CourseUpdate(BaseModel):
    title: Optional[constr(min_length=3)] = None
    description: Optional[str] = None
    published: Optional[bool] = None

class CourseOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    title: str
    description: str
    access: CourseAccess
    instructor_id: str
    videos: List[VideoOut] = []
    videos_count: int = 0
    total_duration_seconds: float = 0
    enroll_count: int = 0
    published: bool = False
    created_at: datetime
    updated_at: datetime

class CoursesPage(BaseModel):
    total: int
    page: int
    page_size: int
    items: List[CourseOut]
