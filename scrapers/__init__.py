"""
Source adapters, one per platform.
"""
from scrapers.base import BaseScraper, PagedCatalogScraper
from scrapers.evg_scraper import EvgScraper
from scrapers.fgv_scraper import FgvScraper
from scrapers.sebrae_scraper import SebraeScraper
from scrapers.scraper_factory import ScraperFactory

__all__ = [
    "BaseScraper",
    "PagedCatalogScraper",
    "EvgScraper",
    "FgvScraper",
    "SebraeScraper",
    "ScraperFactory",
]
