"""
Protocol-based interfaces for Dependency Injection.
These interfaces define contracts for services, enabling easier testing and extensibility.
"""
import asyncio
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from models.course import Course
from models.platform import Platform


@runtime_checkable
class ICourseRepository(Protocol):
    """Interface for the course record store."""

    def find_by_hash(self, external_id_hash: str) -> Optional[Course]:
        ...

    def upsert(self, course: Course) -> Course:
        """Insert or update keyed on the identity hash. Returns the stored row."""
        ...

    def find_latest(
        self,
        platform_id: Optional[int] = None,
        area: Optional[str] = None,
        only_free: Optional[bool] = None,
        since: Optional[datetime] = None,
        page: int = 0,
        size: int = 20,
    ) -> List[Course]:
        ...

    def find_pending_to_notify(self, platform_id: int, limit: int) -> List[Course]:
        """Undelivered courses, oldest first."""
        ...

    def mark_notified(self, ids: List[int]) -> int:
        """Sets the delivery timestamp on all ids in one update."""
        ...


@runtime_checkable
class ISnapshotRepository(Protocol):
    """Interface for the append-only snapshot store."""

    def save_snapshot(
        self,
        course_id: int,
        status_text: str,
        price_text: str,
        raw_json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        ...


@runtime_checkable
class IPlatformRepository(Protocol):
    """Interface resolving platform names to stored rows."""

    def find_by_name(self, name: str) -> Optional[Platform]:
        ...

    def find_id_by_name(self, name: str) -> Optional[int]:
        ...

    def list_enabled(self) -> List[Platform]:
        ...


@runtime_checkable
class INotificationPort(Protocol):
    """Interface for anything that can announce courses."""

    async def notify_new_courses(self, platform_name: str, courses: List[Course]) -> bool:
        """Returns True only when the batch was delivered."""
        ...

    async def notify_summary(
        self, platform_name: str, total_new: int, link: Optional[str] = None
    ) -> bool:
        ...


@runtime_checkable
class IScraper(Protocol):
    """Interface for a platform adapter."""

    def supports(self, platform: Optional[Platform]) -> bool:
        ...

    async def fetch_batch(
        self,
        platform: Optional[Platform],
        max_pages: int,
        stop_event: Optional[asyncio.Event] = None,
    ) -> List[Course]:
        ...
