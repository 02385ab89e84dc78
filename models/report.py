from pydantic import BaseModel, Field
from typing import List, Optional

from models.course import Course


class ChangeReport(BaseModel):
    """Outcome of one change-detection pass."""

    processed: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    failed: int = 0
    new_courses: List[Course] = Field(default_factory=list)


class CollectReport(BaseModel):
    """Outcome of one collection run for a platform."""

    platform: str
    fetched: int = 0
    new: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    failed: int = 0
    stop_reason: Optional[str] = None
    ran: bool = True
    error: Optional[str] = None
