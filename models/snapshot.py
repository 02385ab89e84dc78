from pydantic import BaseModel
from typing import Any, Dict, Optional
from datetime import datetime


class CourseSnapshot(BaseModel):
    """Append-only observation of a course's mutable fields."""

    id: Optional[int] = None
    course_id: int
    status_text: str = ""
    price_text: str = ""
    raw_json: Optional[Dict[str, Any]] = None
    captured_at: Optional[datetime] = None
