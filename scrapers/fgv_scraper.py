from typing import Optional

from bs4 import Tag

from core import constants
from scrapers.base import PagedCatalogScraper
from services.components.area_classifier import AreaClassifier
from services.scraper.extraction import ExtractionStrategy, SelectorRule, clean_text

DETAIL_PREFIX = "/cursos/online/"


def is_detail_path(href: str) -> bool:
    """``/cursos/online/<area>/<slug>`` and deeper; category pages are skipped."""
    if not href.startswith(DETAIL_PREFIX):
        return False
    return len(href.rstrip("/").split("/")) >= constants.FGV_MIN_DETAIL_SEGMENTS


def _heading_text(anchor: Tag, heading: str) -> Optional[str]:
    for parent in anchor.parents:
        found = parent if parent.name == heading else parent.select_one(heading)
        if found is not None:
            return clean_text(found.get_text(" "))
    return None


def detail_title(anchor: Tag) -> str:
    """Anchor text, or the nearest h3/h2 when the anchor text is too short."""
    title = clean_text(anchor.get_text(" "))
    if len(title) >= constants.FGV_MIN_TITLE_LENGTH:
        return title
    for heading in ("h3", "h2"):
        text = _heading_text(anchor, heading)
        if text and len(text) > constants.FGV_MIN_TITLE_LENGTH:
            return text
    return title


class FgvScraper(PagedCatalogScraper):
    """FGV free online courses, 0-based pages."""

    name = "fgv"
    provider = "FGV"
    default_base_url = constants.FGV_BASE_URL
    page_path = constants.FGV_PAGE_PATH
    start_page = 0
    status_text = ""
    page_delay = constants.FGV_PAGE_DELAY
    backoff = constants.FGV_BACKOFF

    extraction = ExtractionStrategy(
        rules=[
            SelectorRule(
                f'main a[href^="{DETAIL_PREFIX}"]',
                accept=is_detail_path,
                title_of=detail_title,
            ),
            SelectorRule(
                f'a[href^="{DETAIL_PREFIX}"]',
                accept=is_detail_path,
                title_of=detail_title,
            ),
        ]
    )

    def __init__(self, fetcher=None, area_classifier: Optional[AreaClassifier] = None):
        super().__init__(
            fetcher=fetcher,
            area_classifier=area_classifier or AreaClassifier(constants.FGV_AREA_RULES),
        )
