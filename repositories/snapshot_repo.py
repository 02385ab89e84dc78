from typing import Any, Dict, Optional

from supabase import Client

from core.database import Database
from core.exceptions import QueryException
from core.logger import get_logger
from core.utils import get_now
from models.snapshot import CourseSnapshot

logger = get_logger(__name__)


class SnapshotRepository:
    """Append-only history of course observations."""

    def __init__(self, client: Optional[Client] = None):
        self.db: Client = client or Database.get_client()

    def save_snapshot(
        self,
        course_id: int,
        status_text: str,
        price_text: str,
        raw_json: Optional[Dict[str, Any]] = None,
    ) -> CourseSnapshot:
        snapshot = CourseSnapshot(
            course_id=course_id,
            status_text=status_text or "",
            price_text=price_text or "",
            raw_json=raw_json,
            captured_at=get_now(),
        )
        try:
            self.db.table("course_snapshots").insert(
                snapshot.model_dump(mode="json", exclude={"id"})
            ).execute()
        except Exception as e:
            raise QueryException(
                "Failed to save snapshot", {"course_id": course_id, "error": str(e)}
            )
        logger.debug(f"[DB] Snapshot saved course_id={course_id} status='{snapshot.status_text}'")
        return snapshot
