from fastapi import APIRouter, Depends, status
from redis.asyncio import Redis
from pymongo.database import Database

from deps import get_db, get_redis
from auth.dependencies import get_current_user, require_role
from services import enrollment_service
from schemas.enrollment_schema import EnrollIn, EnrollmentOut, MyCoursesOut, PaymentConfirmIn

router = APIRouter(prefix="/enrollments", tags=["enrollments"])

@router.post("", response_model=EnrollmentOut, status_code=status.HTTP_201_CREATED)
async def enroll(payload: EnrollIn,
                 db: Database = Depends(get_db),
                 r: Redis = Depends(get_redis),
                 user=Depends(get_current_user)):
    """Free courses are active right away; paid ones come back as pending_payment with the amount due."""
    return await enrollment_service.enroll(db, r, user_id=user["_id"], course_id=payload.course_id)

# Called by the payment integration once the gateway has verified the payment.
@router.post("/{course_id}/confirm", response_model=EnrollmentOut,
             dependencies=[Depends(require_role("admin"))])
async def confirm_payment(course_id: str, payload: PaymentConfirmIn,
                          db: Database = Depends(get_db),
                          r: Redis = Depends(get_redis)):
    return await enrollment_service.confirm_payment(
        db, r, user_id=payload.user_id, course_id=course_id, payment_id=payload.payment_id
    )

@router.get("/my-courses", response_model=MyCoursesOut)
async def my_courses(db: Database = Depends(get_db),
                     r: Redis = Depends(get_redis),
                     user=Depends(get_current_user)):
    items = await enrollment_service.my_courses(db, r, user_id=user["_id"])
    return {"user_id": user["_id"], "items": items}
