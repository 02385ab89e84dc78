from pydantic import BaseModel
from typing import Any, Dict, Optional
from datetime import date, datetime


class Course(BaseModel):
    id: Optional[int] = None
    platform_id: Optional[int] = None
    external_id_hash: Optional[str] = None  # sha256(title|url), immutable once stored
    title: str
    url: str
    provider: str = ""
    area: Optional[str] = None
    free_flag: bool = True
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status_text: str = ""
    price_text: str = ""

    # Store-managed
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    notified_at: Optional[datetime] = None  # null = pending delivery

    @property
    def is_pending(self) -> bool:
        return self.notified_at is None

    def to_row(self) -> Dict[str, Any]:
        """Column dict for the courses table (store-managed fields left out)."""
        return self.model_dump(
            mode="json",
            exclude={"id", "created_at", "updated_at", "notified_at"},
        )

    def with_identity_of(self, existing: "Course") -> "Course":
        """Copy carrying the stored id, hash and platform of an existing row."""
        return self.model_copy(
            update={
                "id": existing.id,
                "platform_id": existing.platform_id,
                "external_id_hash": existing.external_id_hash,
                "created_at": existing.created_at,
                "notified_at": existing.notified_at,
            }
        )
