"""
Dispatches freshly created courses in capped, rate-limited slices.
"""
import asyncio
from typing import List, Optional

from core.config import settings
from core.interfaces import ICourseRepository, INotificationPort
from core.logger import get_logger
from models.course import Course
from services.notification.formatters import build_summary_link

logger = get_logger(__name__)


class NotifyNewCoursesService:
    """
    Announces at most ``max_per_run`` courses, ``per_message`` at a time.
    Anything above the cap is reported as a single summary; a cap of zero
    or less announces every course.

    Delivery bookkeeping belongs to the pending recovery job unless
    ``mark_on_dispatch`` is set, in which case delivered slices are marked here.
    """

    def __init__(
        self,
        notifier: INotificationPort,
        course_repo: Optional[ICourseRepository] = None,
        max_per_run: Optional[int] = None,
        per_message: Optional[int] = None,
        slice_delay: Optional[float] = None,
        api_base_url: Optional[str] = None,
        mark_on_dispatch: Optional[bool] = None,
    ):
        self.notifier = notifier
        self.course_repo = course_repo
        self.max_per_run = settings.NOTIFY_MAX_NEW_PER_RUN if max_per_run is None else max_per_run
        self.per_message = max(per_message or settings.NOTIFY_PER_MESSAGE, 1)
        self.slice_delay = settings.NOTIFY_SLICE_DELAY if slice_delay is None else slice_delay
        self.api_base_url = api_base_url if api_base_url is not None else settings.API_BASE_URL
        self.mark_on_dispatch = (
            settings.NOTIFY_MARK_ON_DISPATCH if mark_on_dispatch is None else mark_on_dispatch
        )

    async def notify_new(self, platform_name: str, courses: List[Course]) -> int:
        """Returns how many courses went out in slices the port confirmed."""
        if not courses:
            logger.info(f"[DISPATCH] No new courses for {platform_name}")
            return 0

        cap = min(self.max_per_run, len(courses)) if self.max_per_run > 0 else len(courses)
        to_send = courses[:cap]
        slices = [to_send[i:i + self.per_message] for i in range(0, cap, self.per_message)]
        delivered_ids: List[int] = []
        delivered = 0

        logger.info(
            f"[DISPATCH] {platform_name}: {len(courses)} new, announcing {cap} "
            f"in {len(slices)} messages"
        )

        for i, chunk in enumerate(slices):
            if i > 0:
                await asyncio.sleep(self.slice_delay)
            try:
                ok = await self.notifier.notify_new_courses(platform_name, chunk)
            except Exception as e:
                logger.error(
                    f"[DISPATCH] Slice {i + 1}/{len(slices)} failed: {e}",
                    context={"platform": platform_name, "size": len(chunk)},
                )
                continue
            if ok:
                delivered += len(chunk)
                delivered_ids.extend(c.id for c in chunk if c.id is not None)
            else:
                logger.warning(
                    f"[DISPATCH] Slice {i + 1}/{len(slices)} not delivered, left for recovery",
                    context={"platform": platform_name},
                )

        remaining = len(courses) - cap
        if remaining > 0:
            link = build_summary_link(self.api_base_url, platform_name)
            try:
                await self.notifier.notify_summary(platform_name, remaining, link)
            except Exception as e:
                logger.error(f"[DISPATCH] Summary failed for {platform_name}: {e}")

        if self.mark_on_dispatch and delivered_ids and self.course_repo is not None:
            try:
                self.course_repo.mark_notified(delivered_ids)
            except Exception as e:
                logger.error(
                    f"[DISPATCH] Failed to mark delivered courses: {e}",
                    context={"platform": platform_name, "ids": len(delivered_ids)},
                )

        return delivered
