from core import constants
from scrapers.base import PagedCatalogScraper
from services.scraper.extraction import ExtractionStrategy, SelectorRule


class EvgScraper(PagedCatalogScraper):
    """Escola Virtual de Governo catalog, 1-based with a 0-based probe."""

    name = "evg"
    provider = "EVG"
    default_base_url = constants.EVG_BASE_URL
    page_path = constants.EVG_PAGE_PATH
    start_page = 1
    status_text = constants.ONLINE_STATUS_TEXT
    page_delay = constants.EVG_PAGE_DELAY
    backoff = constants.EVG_BACKOFF

    extraction = ExtractionStrategy(
        rules=[
            SelectorRule(".card, .resultado-cursos .card, article.card"),
            SelectorRule('a[href*="/curso/"]'),
        ]
    )
