# services/cache_keys.py
import hashlib
import json
from typing import Any, Dict, Optional

# stats namespaces, one per cached resource
COURSES_NS = "courses"
COURSES_LIST_NS = "courses_list"

COURSE_PREFIX = "course:"
COURSES_LIST_PREFIX = "courses_list:"

def course_key(course_id: str) -> str:
    return f"{COURSE_PREFIX}{course_id}"

def courses_list_key(q: Optional[str], filters: Dict[str, Any], page: int, page_size: int) -> str:
    """One key per distinct listing query; filter order doesn't matter."""
    payload = {"q": q, "filters": filters, "page": page, "page_size": page_size}
    digest = hashlib.sha1(json.dumps(payload, sort_keys=True).encode()).hexdigest()
    return f"{COURSES_LIST_PREFIX}{digest}"
