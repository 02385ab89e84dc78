"""
Recovery path: resends courses whose delivery marker is still empty.
"""
import asyncio
import time
from typing import Dict, List, Optional

from core.config import settings
from core.interfaces import ICourseRepository, INotificationPort, IPlatformRepository
from core.logger import get_logger

logger = get_logger(__name__)


class PendingNotifierService:
    """
    Reads up to ``max_per_run`` pending courses per platform, oldest first,
    sends them ``per_message`` at a time and then marks exactly the ids of
    the batches the port confirmed, in one update. Failed batches stay
    pending for the next pass.
    """

    def __init__(
        self,
        course_repo: ICourseRepository,
        platform_repo: IPlatformRepository,
        notifier: INotificationPort,
        per_message: Optional[int] = None,
        max_per_run: Optional[int] = None,
        batch_delay: Optional[float] = None,
    ):
        self.course_repo = course_repo
        self.platform_repo = platform_repo
        self.notifier = notifier
        self.per_message = max(per_message or settings.NOTIFY_PER_MESSAGE, 1)
        self.max_per_run = max(
            settings.NOTIFY_MAX_NEW_PER_RUN if max_per_run is None else max_per_run, 1
        )
        self.batch_delay = settings.PENDING_BATCH_DELAY if batch_delay is None else batch_delay

    async def flush_platform(self, platform_name: str) -> int:
        """Returns how many courses were marked delivered."""
        started = time.monotonic()

        if not platform_name or not platform_name.strip():
            logger.warning("[PENDING] Empty platform name, skipping flush")
            return 0

        try:
            platform_id = self.platform_repo.find_id_by_name(platform_name)
            if platform_id is None:
                logger.warning(f"[PENDING] Unknown platform '{platform_name}'")
                return 0
            pending = self.course_repo.find_pending_to_notify(platform_id, self.max_per_run)
        except Exception as e:
            logger.error(f"[PENDING] Failed to load pending courses for {platform_name}: {e}")
            return 0

        if not pending:
            logger.debug(f"[PENDING] Nothing pending for {platform_name}")
            return 0

        batches = [pending[i:i + self.per_message] for i in range(0, len(pending), self.per_message)]
        sent_ids: List[int] = []
        failed_batches = 0

        logger.info(
            f"[PENDING] Flushing {platform_name}: {len(pending)} pending in {len(batches)} batches"
        )

        for i, batch in enumerate(batches):
            if i > 0:
                await asyncio.sleep(self.batch_delay)
            try:
                ok = await self.notifier.notify_new_courses(platform_name, batch)
            except Exception as e:
                logger.error(f"[PENDING] Batch {i + 1} raised: {e}", context={"platform": platform_name})
                ok = False

            if ok:
                sent_ids.extend(c.id for c in batch if c.id is not None)
            else:
                failed_batches += 1

        marked = 0
        if sent_ids:
            try:
                self.course_repo.mark_notified(sent_ids)
                marked = len(sent_ids)
            except Exception as e:
                logger.error(
                    f"[PENDING] Failed to mark delivered courses: {e}",
                    context={"platform": platform_name, "ids": len(sent_ids)},
                )
        else:
            logger.warning(f"[PENDING] No course marked delivered for {platform_name}")

        logger.info(
            f"[PENDING] Done {platform_name}: pending={len(pending)} marked={marked} "
            f"batches={len(batches)} failed={failed_batches}",
            duration=time.monotonic() - started,
        )
        return marked

    async def flush_all(self, platform_names: List[str]) -> Dict[str, int]:
        results: Dict[str, int] = {}
        if not platform_names:
            logger.warning("[PENDING] No platforms to flush")
            return results

        for name in platform_names:
            try:
                results[name] = await self.flush_platform(name)
            except Exception as e:
                logger.error(f"[PENDING] Unexpected error flushing {name}: {e}", exc_info=True)
                results[name] = 0
        return results
