from datetime import datetime
from typing import List, Optional

from supabase import Client

from core import constants
from core.database import Database
from core.exceptions import QueryException, ValidationException
from core.logger import get_logger
from core.utils import clamp, get_now
from models.course import Course

logger = get_logger(__name__)

TABLE = "courses"


class CourseRepository:
    def __init__(self, client: Optional[Client] = None):
        self.db: Client = client or Database.get_client()

    def find_by_hash(self, external_id_hash: str) -> Optional[Course]:
        try:
            response = (
                self.db.table(TABLE)
                .select("*")
                .eq("external_id_hash", external_id_hash)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise QueryException(
                "Failed to fetch course by hash", {"hash": external_id_hash, "error": str(e)}
            )
        return Course(**response.data[0]) if response.data else None

    def upsert(self, course: Course) -> Course:
        """
        Insert or update keyed on ``external_id_hash``.
        The stored hash and platform are never rewritten.
        """
        if not course.external_id_hash:
            raise ValidationException("Course without identity hash", {"title": course.title})
        if course.platform_id is None:
            raise ValidationException("Course without platform id", {"hash": course.external_id_hash})

        row = course.to_row()
        row["updated_at"] = get_now().isoformat()

        try:
            response = (
                self.db.table(TABLE)
                .upsert(row, on_conflict="external_id_hash")
                .execute()
            )
        except Exception as e:
            raise QueryException(
                "Failed to upsert course",
                {"hash": course.external_id_hash, "title": course.title, "error": str(e)},
            )

        if not response.data:
            raise QueryException("Upsert returned no row", {"hash": course.external_id_hash})
        return Course(**response.data[0])

    def find_latest(
        self,
        platform_id: Optional[int] = None,
        area: Optional[str] = None,
        only_free: Optional[bool] = None,
        since: Optional[datetime] = None,
        page: int = 0,
        size: int = 20,
    ) -> List[Course]:
        """Newest ``updated_at`` first. ``page`` is 0-based, ``size`` is clamped to [1, 100]."""
        page = max(page, 0)
        size = clamp(size, constants.LATEST_SIZE_MIN, constants.LATEST_SIZE_MAX)
        start = page * size

        query = self.db.table(TABLE).select("*")
        if platform_id is not None:
            query = query.eq("platform_id", platform_id)
        if area:
            query = query.eq("area", area)
        if only_free:
            query = query.eq("free_flag", True)
        if since is not None:
            query = query.gte("updated_at", since.isoformat())

        try:
            response = (
                query.order("updated_at", desc=True)
                .range(start, start + size - 1)
                .execute()
            )
        except Exception as e:
            raise QueryException("Failed to list latest courses", {"error": str(e)})
        return [Course(**row) for row in response.data]

    def find_pending_to_notify(self, platform_id: int, limit: int) -> List[Course]:
        """Courses never delivered, oldest ``created_at`` first. ``limit`` is clamped to [1, 500]."""
        limit = clamp(limit, constants.PENDING_LIMIT_MIN, constants.PENDING_LIMIT_MAX)
        try:
            response = (
                self.db.table(TABLE)
                .select("*")
                .eq("platform_id", platform_id)
                .is_("notified_at", "null")
                .order("created_at", desc=False)
                .limit(limit)
                .execute()
            )
        except Exception as e:
            raise QueryException(
                "Failed to fetch pending courses", {"platform_id": platform_id, "error": str(e)}
            )
        return [Course(**row) for row in response.data]

    def mark_notified(self, ids: List[int]) -> int:
        """Single bulk update. Already-delivered rows keep their first timestamp."""
        if not ids:
            return 0
        try:
            response = (
                self.db.table(TABLE)
                .update({"notified_at": get_now().isoformat()})
                .in_("id", list(ids))
                .is_("notified_at", "null")
                .execute()
            )
        except Exception as e:
            raise QueryException("Failed to mark courses notified", {"ids": len(ids), "error": str(e)})
        marked = len(response.data or [])
        logger.debug(f"[DB] Marked {marked}/{len(ids)} courses notified")
        return marked
