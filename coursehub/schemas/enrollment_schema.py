from pydantic import BaseModel, constr
from typing import List, Literal, Optional
from datetime import datetime

ID = constr(strip_whitespace=True, min_length=1)

class EnrollIn(BaseModel):
    course_id: ID

class PaymentConfirmIn(BaseModel):
    user_id: ID
    payment_id: constr(strip_whitespace=True, min_length=1)

class EnrollmentOut(BaseModel):
    user_id: str
    course_id: str
    status: Literal["active", "pending_payment"]
    amount: float = 0
    payment_id: Optional[str] = None
    created_at: datetime
    activated_at: Optional[datetime] = None

class MyCourseItem(BaseModel):
    course_id: str
    title: str
    videos_count: int = 0
    enrolled_at: datetime

class MyCoursesOut(BaseModel):
    user_id: str
    items: List[MyCourseItem]
