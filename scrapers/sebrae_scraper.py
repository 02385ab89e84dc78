import asyncio
import time
from typing import List, Optional

from bs4 import BeautifulSoup

from core import constants
from core.logger import get_logger
from models.course import Course
from models.platform import Platform
from scrapers.base import BaseScraper
from services.scraper.extraction import ExtractionStrategy, SelectorRule
from services.scraper.pagination import PaginationCursor, StopReason
from services.scraper.session import HttpSession

logger = get_logger(__name__)

COURSE_PREFIX = "/sites/PortalSebrae/cursosonline/"


def hidden_int(document: BeautifulSoup, selector: str, fallback: int) -> int:
    element = document.select_one(selector)
    if element is None:
        return fallback
    try:
        return int((element.get("value") or "").strip())
    except ValueError:
        return fallback


def hidden_bool(document: BeautifulSoup, selector: str) -> bool:
    """Missing flag means "keep going"."""
    element = document.select_one(selector)
    if element is None:
        return True
    return (element.get("value") or "").strip().lower() in ("true", "1", "yes")


class SebraeScraper(BaseScraper):
    """
    Sebrae online courses, served by a "render more" component endpoint.

    Each call asks for ``qtd`` cards and the server answers with the whole
    list so far plus hidden ``#qtd``/``#total``/``#hasNext`` inputs, so
    ``qtd`` grows by a fixed step instead of a page index.
    """

    name = "sebrae"
    provider = "Sebrae"
    default_base_url = constants.SEBRAE_BASE_URL
    status_text = constants.ONLINE_STATUS_TEXT
    page_delay = constants.SEBRAE_PAGE_DELAY
    backoff = constants.SEBRAE_BACKOFF

    extraction = ExtractionStrategy(
        rules=[
            SelectorRule(f'#list-cards .sb-components__card a[href^="{COURSE_PREFIX}"]'),
            SelectorRule(f'.card a[href*="{COURSE_PREFIX}"]'),
        ]
    )

    def _make_fetcher(self):
        return HttpSession(**self.fetcher_options())

    @staticmethod
    def max_items(max_pages: int) -> int:
        pages = min(max(max_pages, 1), constants.SEBRAE_MAX_PAGE_BUDGET)
        return max(constants.SEBRAE_STEP, pages * constants.SEBRAE_ITEMS_PER_PAGE_BUDGET)

    def render_url(self, base: str, qtd: int) -> str:
        return (
            f"{base}/sites/render/component"
            f"?vgnextcomponentid={constants.SEBRAE_COMPONENT_ID}"
            f"&qtd={qtd}&order={constants.SEBRAE_ORDER}&filters="
            f"&_cb={time.time_ns()}"
        )

    async def fetch_batch(
        self,
        platform: Optional[Platform],
        max_pages: int,
        stop_event: Optional[asyncio.Event] = None,
    ) -> List[Course]:
        started = time.monotonic()
        base = self.resolve_base(platform)
        item_cap = self.max_items(max_pages)
        session, owned = self._open_fetcher()
        # The endpoint has no page index; the cursor only carries dedup and stop state
        cursor = PaginationCursor(start_page=0, last_page=0, item_cap=item_cap)
        reported_total = -1

        logger.info(f"[SEBRAE] Collection started base={base} max_items={item_cap}")
        if platform is None:
            logger.warning("[SEBRAE] No platform given, using default base")

        try:
            await session.warm_up(base + "/")
            await session.warm_up(base + constants.SEBRAE_LISTING_PATH)

            qtd = constants.SEBRAE_INITIAL_QTD
            empty_streak = 0

            while not cursor.cap_reached:
                if stop_event is not None and stop_event.is_set():
                    cursor.stop(StopReason.INTERRUPTED)
                    break

                url = self.render_url(base, qtd)
                result = await session.fetch(url)
                cursor.pages_fetched += 1

                if result.failed:
                    logger.warning(f"[SEBRAE] Null document qtd={qtd}")
                    empty_streak += 1
                    if empty_streak >= constants.SEBRAE_NULL_DOC_STREAK:
                        cursor.stop(StopReason.NULL_DOC_STREAK)
                        break
                    continue

                document = result.document
                page_qtd = hidden_int(document, "#qtd", 0)
                page_total = hidden_int(document, "#total", -1)
                has_next = hidden_bool(document, "#hasNext")
                if reported_total < 0 and page_total >= 0:
                    reported_total = page_total

                pairs = self.extraction.extract(document, base)
                if not pairs:
                    logger.warning(f"[SEBRAE] No course anchors in response qtd={page_qtd}")

                added = cursor.add_all(pairs)
                logger.info(
                    f"[SEBRAE] qtd={page_qtd} reported_total={reported_total} "
                    f"added={added} total={len(cursor.seen)} has_next={has_next}"
                )

                if added == 0:
                    empty_streak += 1
                    if empty_streak >= constants.SEBRAE_NO_NEW_CARDS_STREAK:
                        cursor.stop(StopReason.NO_NEW_CARDS_STREAK)
                        break
                else:
                    empty_streak = 0

                if not (has_next and (reported_total < 0 or len(cursor.seen) < reported_total)):
                    cursor.stop(StopReason.HAS_NEXT_FALSE)
                    break

                if cursor.cap_reached:
                    logger.warning(f"[SEBRAE] Item cap {item_cap} reached")
                    cursor.stop(StopReason.ITEM_CAP)
                    break

                qtd += constants.SEBRAE_STEP
                if await self._pause(self.page_delay, stop_event):
                    cursor.stop(StopReason.INTERRUPTED)
                    break

        except asyncio.CancelledError:
            self.last_stop_reason = StopReason.INTERRUPTED
            logger.warning("[SEBRAE] Collection cancelled")
            raise
        finally:
            if owned:
                await session.close()

        logger.info(f"[SEBRAE] reported_total={reported_total} fetches={cursor.pages_fetched}")
        return self._finish(cursor.items(), cursor.stop_reason, started)
