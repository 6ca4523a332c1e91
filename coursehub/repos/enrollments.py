# repos/enrollments.py
from typing import Dict, Any, Optional, List, Tuple
from datetime import datetime, timezone
from pymongo.database import Database
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

ACTIVE = "active"
PENDING_PAYMENT = "pending_payment"

def ensure_indexes(db: Database) -> None:
    db.enrollments.create_index([("user_id", ASCENDING), ("course_id", ASCENDING)], unique=True, name="user_course_unique")
    db.enrollments.create_index([("user_id", ASCENDING), ("created_at", DESCENDING)], name="user_created_at")

def _clean(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if doc:
        doc.pop("_id", None)
    return doc

def get_enrollment(db: Database, user_id: str, course_id: str) -> Optional[Dict[str, Any]]:
    return _clean(db.enrollments.find_one({"user_id": user_id, "course_id": course_id}))

def create_enrollment(db: Database, *, user_id: str, course_id: str, status: str,
                      amount: float) -> Tuple[Dict[str, Any], bool]:
    """
    Insert the enrollment if missing and return (stored enrollment, created).

    An existing enrollment is never overwritten, so enrolling twice is a no-op
    and only the call that actually inserted sees created=True.
    """
    now = datetime.now(timezone.utc)
    doc = {
        "status": status,
        "amount": amount,
        "payment_id": None,
        "created_at": now,
        "activated_at": now if status == ACTIVE else None,
    }
    key = {"user_id": user_id, "course_id": course_id}
    try:
        res = db.enrollments.update_one(key, {"$setOnInsert": doc}, upsert=True)
        created = res.upserted_id is not None
    except DuplicateKeyError:
        created = False
    return _clean(db.enrollments.find_one(key)), created

def activate_enrollment(db: Database, *, user_id: str, course_id: str, payment_id: str) -> Optional[Dict[str, Any]]:
    out = db.enrollments.find_one_and_update(
        {"user_id": user_id, "course_id": course_id, "status": PENDING_PAYMENT},
        {"$set": {"status": ACTIVE, "payment_id": payment_id, "activated_at": datetime.now(timezone.utc)}},
        return_document=ReturnDocument.AFTER,
    )
    return _clean(out)

def is_enrolled(db: Database, user_id: str, course_id: str) -> bool:
    return db.enrollments.find_one({"user_id": user_id, "course_id": course_id, "status": ACTIVE}, {"_id": 1}) is not None

def list_for_user(db: Database, user_id: str, status: Optional[str] = ACTIVE) -> List[Dict[str, Any]]:
    query = {"user_id": user_id}
    if status:
        query["status"] = status
    return [_clean(doc) for doc in db.enrollments.find(query).sort("created_at", DESCENDING)]
