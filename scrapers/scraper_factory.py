"""
ScraperFactory resolving the adapter for a platform.
New platforms are added with register_scraper().
"""
from typing import Dict, List, Optional, Type

from core.exceptions import UnsupportedPlatformException
from core.logger import get_logger
from models.platform import Platform
from scrapers.base import BaseScraper
from scrapers.evg_scraper import EvgScraper
from scrapers.fgv_scraper import FgvScraper
from scrapers.sebrae_scraper import SebraeScraper

logger = get_logger(__name__)


class ScraperFactory:
    """
    Holds one adapter instance per platform and picks the first whose
    ``supports()`` accepts the platform.

    Usage:
        factory = ScraperFactory()
        scraper = factory.get_scraper(platform)
        courses = await scraper.fetch_batch(platform, max_pages=100)
    """

    _DEFAULT_SCRAPERS: List[Type[BaseScraper]] = [EvgScraper, FgvScraper, SebraeScraper]

    def __init__(self, scrapers: Optional[List[BaseScraper]] = None):
        if scrapers is None:
            scrapers = [cls() for cls in self._DEFAULT_SCRAPERS]
        self._scrapers: List[BaseScraper] = list(scrapers)

    def get_scraper(self, platform: Platform) -> BaseScraper:
        for scraper in self._scrapers:
            if scraper.supports(platform):
                logger.debug(
                    f"[SCRAPER_FACTORY] {type(scraper).__name__} selected for {platform.name}"
                )
                return scraper
        raise UnsupportedPlatformException(
            "No scraper registered for platform", {"platform": platform.name}
        )

    def register_scraper(self, scraper: BaseScraper) -> None:
        """Registered adapters take priority over the built-in ones."""
        self._scrapers.insert(0, scraper)
        logger.info(f"[SCRAPER_FACTORY] Registered scraper: {type(scraper).__name__}")

    def get_registered_scrapers(self) -> Dict[str, str]:
        return {scraper.name: type(scraper).__name__ for scraper in self._scrapers}
