import asyncio
import time
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from core import constants
from core.config import settings
from core.logger import get_logger
from core.retry import RetryPolicy
from models.course import Course
from models.platform import Platform
from services.components.area_classifier import AreaClassifier
from services.components.hash_calculator import HashCalculator
from services.scraper.extraction import ExtractionStrategy
from services.scraper.fetcher import HttpFetcher
from services.scraper.pagination import PaginationCursor, StopReason, detect_last_page

logger = get_logger(__name__)


class BaseScraper(ABC):
    """
    One adapter per platform. ``fetch_batch`` never raises for network or
    markup problems; it returns whatever it collected and records why it
    stopped in ``last_stop_reason``.
    """

    name: str = ""
    provider: str = ""
    default_base_url: str = ""
    status_text: str = ""
    price_text: str = ""
    free_flag: bool = True
    page_delay: float = 0.2
    backoff: float = constants.DEFAULT_FETCH_BACKOFF

    def __init__(self, fetcher=None, area_classifier: Optional[AreaClassifier] = None):
        self._fetcher = fetcher
        self.area_classifier = area_classifier or AreaClassifier()
        self.last_stop_reason: Optional[StopReason] = None

    def supports(self, platform: Optional[Platform]) -> bool:
        return platform is not None and platform.name.lower() == self.name

    def resolve_base(self, platform: Optional[Platform]) -> str:
        if platform is not None and platform.base_url and platform.base_url.strip():
            return platform.base_url.strip().rstrip("/")
        return self.default_base_url

    @abstractmethod
    async def fetch_batch(
        self,
        platform: Optional[Platform],
        max_pages: int,
        stop_event: Optional[asyncio.Event] = None,
    ) -> List[Course]:
        pass

    def fetcher_options(self) -> dict:
        """Timeout and retry plan from settings; the wait between tries is per source."""
        return {
            "timeout": settings.FETCH_TIMEOUT,
            "retry_policy": RetryPolicy.from_settings(
                base_delay=self.backoff, incremental=False, honor_retry_after=False
            ),
        }

    def _make_fetcher(self):
        return HttpFetcher(**self.fetcher_options())

    def _open_fetcher(self):
        """Injected fetcher, or a fresh one owned by this run."""
        if self._fetcher is not None:
            return self._fetcher, False
        return self._make_fetcher(), True

    async def _pause(self, delay: float, stop_event: Optional[asyncio.Event]) -> bool:
        """Politeness delay. Returns True when the run was asked to stop."""
        if stop_event is None:
            await asyncio.sleep(delay)
            return False
        if stop_event.is_set():
            return True
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=delay)
            return True
        except asyncio.TimeoutError:
            return False

    def to_courses(self, pairs: List[Tuple[str, str]]) -> List[Course]:
        return [
            Course(
                external_id_hash=HashCalculator.identity_hash(title, url),
                title=title,
                url=url,
                provider=self.provider,
                area=self.area_classifier.classify(title),
                free_flag=self.free_flag,
                status_text=self.status_text,
                price_text=self.price_text,
            )
            for title, url in pairs
        ]

    def _finish(self, pairs: List[Tuple[str, str]], reason: StopReason, started: float) -> List[Course]:
        self.last_stop_reason = reason
        took = time.monotonic() - started
        tag = self.name.upper()

        if reason is StopReason.INTERRUPTED:
            logger.warning(f"[{tag}] Run interrupted, discarding {len(pairs)} items", duration=took)
            return []
        if not pairs:
            logger.warning(f"[{tag}] No courses extracted. stop_reason={reason.value}", duration=took)
            return []

        logger.info(
            f"[{tag}] Extracted {len(pairs)} courses. stop_reason={reason.value}",
            duration=took,
        )
        return self.to_courses(pairs)


class PagedCatalogScraper(BaseScraper):
    """
    Shared loop for listings paginated by a ``page=`` query parameter.

    The start index is probed: when it shows no candidates the alternate
    base index is tried once. The last page comes from the pager, capped by
    the caller's page budget.
    """

    page_path: str = ""
    start_page: int = 1
    item_cap: int = constants.DEFAULT_ITEM_CAP
    extraction: ExtractionStrategy = ExtractionStrategy()

    @property
    def alternate_start_page(self) -> int:
        return 0 if self.start_page == 1 else 1

    def page_url(self, base: str, page: int) -> str:
        return f"{base}{self.page_path}{page}"

    async def fetch_batch(
        self,
        platform: Optional[Platform],
        max_pages: int,
        stop_event: Optional[asyncio.Event] = None,
    ) -> List[Course]:
        started = time.monotonic()
        tag = self.name.upper()
        base = self.resolve_base(platform)
        fetcher, owned = self._open_fetcher()
        cursor: Optional[PaginationCursor] = None

        logger.info(f"[{tag}] Collection started base={base} max_pages={max_pages}")

        try:
            start_page = self.start_page
            first = await fetcher.fetch(self.page_url(base, start_page))
            if not self.extraction.has_candidates(first.document):
                alternate = self.alternate_start_page
                logger.warning(
                    f"[{tag}] No cards on page={start_page}, probing page={alternate}"
                )
                probe = await fetcher.fetch(self.page_url(base, alternate))
                if not probe.failed or first.failed:
                    start_page, first = alternate, probe

            if first.failed:
                logger.warning(f"[{tag}] Null document on both start pages, aborting")
                return self._finish([], StopReason.DOC_NULL, started)

            cursor = PaginationCursor.for_run(
                start_page, detect_last_page(first.document), max_pages, self.item_cap
            )
            logger.debug(f"[{tag}] Paging {cursor.start_page}..{cursor.last_page}")

            document = first.document
            while cursor.has_more:
                if stop_event is not None and stop_event.is_set():
                    cursor.stop(StopReason.INTERRUPTED)
                    break

                if cursor.page != cursor.start_page:
                    result = await fetcher.fetch(self.page_url(base, cursor.page))
                    if result.failed:
                        logger.warning(f"[{tag}] Null document page={cursor.page}, stopping")
                        cursor.stop(StopReason.DOC_NULL)
                        break
                    document = result.document

                pairs = self.extraction.extract(document, base)
                if not pairs:
                    logger.info(f"[{tag}] page={cursor.page} has no cards, stopping")
                    cursor.stop(StopReason.NO_CARDS)
                    break

                added = cursor.add_all(pairs)
                logger.info(f"[{tag}] page={cursor.page} added={added} total={len(cursor.seen)}")

                if cursor.cap_reached:
                    logger.warning(f"[{tag}] Item cap {cursor.item_cap} reached")
                    cursor.stop(StopReason.ITEM_CAP)
                    break
                if added == 0 and cursor.page > cursor.start_page:
                    cursor.stop(StopReason.ADDED_ZERO)
                    break

                cursor.advance()
                if cursor.has_more and await self._pause(self.page_delay, stop_event):
                    cursor.stop(StopReason.INTERRUPTED)
                    break

        except asyncio.CancelledError:
            self.last_stop_reason = StopReason.INTERRUPTED
            logger.warning(f"[{tag}] Collection cancelled")
            raise
        finally:
            if owned:
                await fetcher.close()

        return self._finish(cursor.items(), cursor.stop_reason, started)
