import asyncio
import signal
import sys

from core.logger import get_logger

logger = get_logger(__name__)

try:
    from core.config import settings
except Exception as e:
    logger.critical(f"[CONFIG] Settings could not be loaded: {e}", exc_info=True)
    sys.exit(1)

from core.database import Database
from core.exceptions import CourseBotException
from core.locks import SourceRunLock
from core.performance import get_performance_monitor
from repositories.course_repo import CourseRepository
from repositories.platform_repo import PlatformRepository
from repositories.snapshot_repo import SnapshotRepository
from scrapers.scraper_factory import ScraperFactory
from services.change_detection_service import ChangeDetectionService
from services.collect_courses_service import CollectCoursesService
from services.notification_service import NotificationService
from services.notify_new_courses_service import NotifyNewCoursesService
from services.pending_notifier_service import PendingNotifierService


class Bot:
    def __init__(self):
        self.stop_event = asyncio.Event()
        self.notifier = None
        self.collector = None
        self.pending = None

    def _wire(self):
        """Builds the pipeline once the store is reachable."""
        course_repo = CourseRepository()
        platform_repo = PlatformRepository()
        self.notifier = NotificationService()
        self.collector = CollectCoursesService(
            platform_repo=platform_repo,
            scraper_factory=ScraperFactory(),
            change_detector=ChangeDetectionService(course_repo, SnapshotRepository()),
            dispatcher=NotifyNewCoursesService(self.notifier, course_repo=course_repo),
            run_lock=SourceRunLock(settings.RUN_LOCK_TTL),
            monitor=get_performance_monitor(),
        )
        self.pending = PendingNotifierService(course_repo, platform_repo, self.notifier)

    @staticmethod
    def _settings_ok() -> bool:
        """Log every ❌/⚠️ line; any ❌ is fatal."""
        report = settings.validate_all()
        fatal = [line for line in report if "❌" in line]
        for line in report:
            (logger.critical if line in fatal else logger.warning)(f"[CONFIG] {line}")
        return not fatal

    @staticmethod
    def _store_ok() -> bool:
        try:
            Database.get_client()
        except CourseBotException as e:
            logger.critical(f"[DB] Store unavailable: {e}")
            return False
        if not Database.health_check():
            logger.critical("[DB] Store reachable but tables are missing or unreadable")
            return False
        return True

    async def validate_startup(self) -> bool:
        """Check settings and the store, then build the pipeline."""
        logger.info("=" * 60)
        logger.info("Course Watch Bot - starting")
        logger.info("=" * 60)

        if not self._settings_ok() or not self._store_ok():
            return False

        logger.info(
            "[CONFIG] Ready",
            context={
                "platforms": ",".join(settings.PLATFORMS_ENABLED),
                "collect_every": f"{settings.COLLECT_INTERVAL}s",
                "pending_every": f"{settings.PENDING_INTERVAL}s",
                "log_level": settings.LOG_LEVEL,
            },
        )
        self._wire()
        return True

    async def _sleep(self, seconds: float) -> bool:
        """Returns True when stop was requested during the wait."""
        try:
            await asyncio.wait_for(self.stop_event.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return False

    async def collect_loop(self):
        while not self.stop_event.is_set():
            try:
                await self.collector.collect_all_enabled(stop_event=self.stop_event)
            except Exception as e:
                logger.critical(f"[COLLECT] Loop iteration crashed: {e}", exc_info=True)

            logger.info(f"[COLLECT] Sleeping {settings.COLLECT_INTERVAL}s until the next pass")
            if await self._sleep(settings.COLLECT_INTERVAL):
                break

    async def pending_loop(self):
        while not self.stop_event.is_set():
            try:
                await self.pending.flush_all(settings.PLATFORMS_ENABLED)
            except Exception as e:
                logger.critical(f"[PENDING] Loop iteration crashed: {e}", exc_info=True)

            if await self._sleep(settings.PENDING_INTERVAL):
                break

    def _install_signal_handlers(self):
        try:
            loop = asyncio.get_running_loop()
            if sys.platform != "win32":
                for sig in (signal.SIGINT, signal.SIGTERM):
                    loop.add_signal_handler(sig, self.stop)
            else:
                signal.signal(signal.SIGINT, lambda s, f: self.stop())
                signal.signal(signal.SIGTERM, lambda s, f: self.stop())
        except Exception as e:
            logger.warning(f"Signal handlers unavailable, Ctrl+C only: {e}")

    async def start(self):
        if not await self.validate_startup():
            logger.critical("Startup checks failed, not starting loops")
            sys.exit(1)

        self._install_signal_handlers()
        logger.info("Collect and pending loops running (Ctrl+C to stop)")

        try:
            await asyncio.gather(self.collect_loop(), self.pending_loop())
        finally:
            await self.shutdown()
        logger.info("Loops finished, channels closed")

    async def run_once(self, platform: str = None, flush_only: bool = False) -> int:
        if not await self.validate_startup():
            return 1

        self._install_signal_handlers()
        try:
            if flush_only:
                names = [platform] if platform else settings.PLATFORMS_ENABLED
                await self.pending.flush_all(names)
            elif platform:
                report = await self.collector.collect_for_platform(platform, stop_event=self.stop_event)
                logger.info(f"[COLLECT] {report.platform}", context=report.model_dump(exclude={"platform"}))
            else:
                await self.collector.collect_all_enabled(stop_event=self.stop_event)
                await self.pending.flush_all(settings.PLATFORMS_ENABLED)
        finally:
            await self.shutdown()
        return 0

    async def shutdown(self):
        if self.notifier is not None:
            await self.notifier.close()
        get_performance_monitor().log_summary()

    def stop(self):
        if not self.stop_event.is_set():
            logger.info("Stop requested, finishing the current step")
            self.stop_event.set()


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Course Watch Bot")
    parser.add_argument("--once", action="store_true", help="Collect all enabled platforms, flush pending and exit")
    parser.add_argument("--platform", type=str, help="Collect a single platform and exit")
    parser.add_argument("--flush-pending", action="store_true", help="Run one pending recovery pass and exit")
    args = parser.parse_args()

    bot = Bot()
    exit_code = 0

    if args.once or args.platform or args.flush_pending:
        try:
            exit_code = asyncio.run(bot.run_once(platform=args.platform, flush_only=args.flush_pending))
            if exit_code == 0:
                logger.info("One-shot run finished")
        except Exception as e:
            logger.critical(f"One-shot run crashed: {e}", exc_info=True)
            exit_code = 1
    else:
        try:
            asyncio.run(bot.start())
        except KeyboardInterrupt:
            logger.info("Interrupted")
        except Exception as e:
            logger.critical(f"Bot crashed: {e}", exc_info=True)
            exit_code = 1

    sys.exit(exit_code)
