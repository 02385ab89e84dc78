"""
Collection orchestrator: adapter -> change detection -> dispatcher, one
platform at a time.
"""
import asyncio
from typing import List, Optional

from core.config import settings
from core.interfaces import IPlatformRepository
from core.locks import SourceRunLock
from core.logger import get_logger
from core.performance import PerformanceMonitor, get_performance_monitor
from models.report import CollectReport
from scrapers.scraper_factory import ScraperFactory
from services.change_detection_service import ChangeDetectionService
from services.notify_new_courses_service import NotifyNewCoursesService

logger = get_logger(__name__)


class CollectCoursesService:
    """
    Runs one collection per platform under a per-platform lease.

    A platform whose lease is held by another run is skipped, never queued.
    Any failure is logged and reported in the returned ``CollectReport``;
    only cancellation propagates.
    """

    def __init__(
        self,
        platform_repo: IPlatformRepository,
        scraper_factory: ScraperFactory,
        change_detector: ChangeDetectionService,
        dispatcher: NotifyNewCoursesService,
        run_lock: Optional[SourceRunLock] = None,
        monitor: Optional[PerformanceMonitor] = None,
    ):
        self.platform_repo = platform_repo
        self.scraper_factory = scraper_factory
        self.change_detector = change_detector
        self.dispatcher = dispatcher
        self.run_lock = run_lock or SourceRunLock(settings.RUN_LOCK_TTL)
        self.monitor = monitor or get_performance_monitor()

    async def collect_for_platform(
        self,
        platform_name: str,
        max_pages: Optional[int] = None,
        stop_event: Optional[asyncio.Event] = None,
    ) -> CollectReport:
        name = (platform_name or "").strip().lower()
        report = CollectReport(platform=name)

        token = self.run_lock.acquire(name)
        if token is None:
            logger.warning(f"[COLLECT] {name} already running, skipping")
            report.ran = False
            report.error = "locked"
            return report

        try:
            with self.monitor.measure("collect", {"platform": name}):
                await self._collect(name, max_pages, stop_event, report)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            report.error = str(e)
            logger.error(f"[COLLECT] {name} failed: {e}", exc_info=True)
        finally:
            self.run_lock.release(name, token)

        return report

    async def _collect(
        self,
        name: str,
        max_pages: Optional[int],
        stop_event: Optional[asyncio.Event],
        report: CollectReport,
    ):
        platform = self.platform_repo.find_by_name(name)
        if platform is None or platform.id is None:
            logger.warning(f"[COLLECT] Platform '{name}' not registered, skipping")
            report.ran = False
            report.error = "unknown platform"
            return
        if not platform.enabled:
            logger.info(f"[COLLECT] Platform '{name}' disabled, skipping")
            report.ran = False
            report.error = "disabled"
            return

        scraper = self.scraper_factory.get_scraper(platform)
        pages = max_pages if max_pages and max_pages > 0 else settings.max_pages_for(name)

        logger.info(f"[COLLECT] Collecting {name} with {type(scraper).__name__} (max_pages={pages})")
        batch = await scraper.fetch_batch(platform, pages, stop_event)
        if scraper.last_stop_reason is not None:
            report.stop_reason = scraper.last_stop_reason.value
        report.fetched = len(batch)

        if not batch:
            logger.info(f"[COLLECT] {name}: nothing collected (stop_reason={report.stop_reason})")
            return

        for course in batch:
            course.platform_id = platform.id

        changes = await self.change_detector.detect(batch)
        report.new = changes.created
        report.updated = changes.updated
        report.unchanged = changes.unchanged
        report.skipped = changes.skipped
        report.failed = changes.failed

        if changes.new_courses:
            await self.dispatcher.notify_new(name, changes.new_courses)

        logger.info(
            f"[COLLECT] {name}: fetched={report.fetched} new={report.new} "
            f"updated={report.updated} unchanged={report.unchanged} failed={report.failed}"
        )

    async def collect_all_enabled(
        self,
        platform_names: Optional[List[str]] = None,
        stop_event: Optional[asyncio.Event] = None,
    ) -> List[CollectReport]:
        names = platform_names if platform_names is not None else settings.PLATFORMS_ENABLED
        reports: List[CollectReport] = []

        logger.info(f"[COLLECT] Collecting {len(names)} platforms: {', '.join(names)}")
        for name in names:
            if stop_event is not None and stop_event.is_set():
                logger.info("[COLLECT] Stop requested, skipping remaining platforms")
                break
            try:
                reports.append(await self.collect_for_platform(name, stop_event=stop_event))
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"[COLLECT] Unexpected error for {name}: {e}", exc_info=True)
                reports.append(CollectReport(platform=name, ran=False, error=str(e)))

        self.monitor.log_summary()
        return reports
