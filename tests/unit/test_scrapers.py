"""
Unit tests for the platform adapters and the adapter registry.
"""
import asyncio
from typing import List, Optional

import pytest

from conftest import FakeFetcher, card_page
from core.exceptions import UnsupportedPlatformException
from models.platform import Platform
from scrapers import EvgScraper, FgvScraper, ScraperFactory, SebraeScraper
from services.components.hash_calculator import HashCalculator
from services.scraper.fetcher import FetchResult, parse_html
from services.scraper.pagination import StopReason

EVG = Platform(id=1, name="evg", base_url="https://evg.test")
FGV = Platform(id=2, name="fgv", base_url="https://fgv.test/")
SEBRAE = Platform(id=3, name="sebrae", base_url="https://sebrae.test")

EMPTY = "<html><body><p>Nenhum curso encontrado</p></body></html>"


def evg_url(page: int) -> str:
    return f"https://evg.test/catalogo?page={page}"


def fgv_url(page: int) -> str:
    return f"https://fgv.test/cursos/gratuitos?page={page}"


def fgv_page(start: int, count: int) -> str:
    cards = "".join(
        f'<div class="card"><h3>Curso FGV número {n}</h3>'
        f'<a href="/cursos/online/gestao/curso-{n}">Curso FGV número {n}</a></div>'
        for n in range(start, start + count)
    )
    return f"<html><body><main>{cards}</main></body></html>"


class TestEvgScraper:
    @pytest.mark.asyncio
    async def test_collects_until_empty_page(self, no_sleep):
        fetcher = FakeFetcher(
            {
                evg_url(1): card_page(["/curso/1", "/curso/2", "/curso/3"]),
                evg_url(2): card_page(["/curso/4", "/curso/5"]),
                evg_url(3): EMPTY,
            }
        )
        scraper = EvgScraper(fetcher=fetcher)

        courses = await scraper.fetch_batch(EVG, max_pages=10)

        assert [c.url for c in courses] == [f"https://evg.test/curso/{n}" for n in range(1, 6)]
        assert scraper.last_stop_reason is StopReason.NO_CARDS
        # page 3 was empty, page 4 must never be requested
        assert evg_url(4) not in fetcher.calls
        assert fetcher.closed is False

    @pytest.mark.asyncio
    async def test_course_defaults(self, no_sleep):
        fetcher = FakeFetcher({evg_url(1): card_page(["/curso/1"]), evg_url(2): EMPTY})
        course = (await EvgScraper(fetcher=fetcher).fetch_batch(EVG, 5))[0]

        assert course.title == "Curso 1"
        assert course.provider == "EVG"
        assert course.status_text == "Online (EAD)"
        assert course.price_text == ""
        assert course.free_flag is True
        assert course.platform_id is None
        assert course.external_id_hash == HashCalculator.identity_hash("Curso 1", "https://evg.test/curso/1")

    @pytest.mark.asyncio
    async def test_probes_zero_based_start(self, no_sleep):
        fetcher = FakeFetcher(
            {
                evg_url(1): EMPTY,
                evg_url(0): card_page(["/curso/7"]),
            }
        )
        scraper = EvgScraper(fetcher=fetcher)

        courses = await scraper.fetch_batch(EVG, 5)

        assert [c.url for c in courses] == ["https://evg.test/curso/7"]
        assert fetcher.calls[:2] == [evg_url(1), evg_url(0)]

    @pytest.mark.asyncio
    async def test_fallback_selector(self, no_sleep):
        html = "<ul><li><a href='/curso/42'>Libras</a></li></ul>"
        fetcher = FakeFetcher({evg_url(1): html, evg_url(2): EMPTY})

        courses = await EvgScraper(fetcher=fetcher).fetch_batch(EVG, 5)

        assert [c.title for c in courses] == ["Libras"]

    @pytest.mark.asyncio
    async def test_pager_bounds_the_run(self, no_sleep):
        pager = '<ul class="pagination"><li><a href="?page=2">2</a></li></ul>'
        fetcher = FakeFetcher(
            {
                evg_url(1): card_page(["/curso/1"]).replace("</body>", pager + "</body>"),
                evg_url(2): card_page(["/curso/2"]),
                evg_url(3): card_page(["/curso/3"]),
            }
        )
        scraper = EvgScraper(fetcher=fetcher)

        courses = await scraper.fetch_batch(EVG, 50)

        assert len(courses) == 2
        assert evg_url(3) not in fetcher.calls
        assert scraper.last_stop_reason is StopReason.OK

    @pytest.mark.asyncio
    async def test_stops_when_page_adds_nothing(self, no_sleep):
        same = card_page(["/curso/1", "/curso/2"])
        fetcher = FakeFetcher({evg_url(1): same, evg_url(2): same, evg_url(3): card_page(["/curso/3"])})
        scraper = EvgScraper(fetcher=fetcher)

        courses = await scraper.fetch_batch(EVG, 10)

        assert len(courses) == 2
        assert scraper.last_stop_reason is StopReason.ADDED_ZERO
        assert evg_url(3) not in fetcher.calls

    @pytest.mark.asyncio
    async def test_failed_page_keeps_what_was_collected(self, no_sleep):
        fetcher = FakeFetcher({evg_url(1): card_page(["/curso/1"]), evg_url(2): None})
        scraper = EvgScraper(fetcher=fetcher)

        courses = await scraper.fetch_batch(EVG, 10)

        assert len(courses) == 1
        assert scraper.last_stop_reason is StopReason.DOC_NULL

    @pytest.mark.asyncio
    async def test_unreachable_source_returns_empty(self, no_sleep):
        scraper = EvgScraper(fetcher=FakeFetcher())

        assert await scraper.fetch_batch(EVG, 10) == []
        assert scraper.last_stop_reason is StopReason.DOC_NULL

    @pytest.mark.asyncio
    async def test_item_cap(self, no_sleep):
        fetcher = FakeFetcher({evg_url(1): card_page([f"/curso/{n}" for n in range(10)])})
        scraper = EvgScraper(fetcher=fetcher)
        scraper.item_cap = 4

        courses = await scraper.fetch_batch(EVG, 10)

        assert len(courses) == 4
        assert scraper.last_stop_reason is StopReason.ITEM_CAP

    @pytest.mark.asyncio
    async def test_interrupted_run_discards_batch(self):
        fetcher = FakeFetcher({evg_url(1): card_page(["/curso/1"])})
        scraper = EvgScraper(fetcher=fetcher)
        stop = asyncio.Event()
        stop.set()

        assert await scraper.fetch_batch(EVG, 10, stop_event=stop) == []
        assert scraper.last_stop_reason is StopReason.INTERRUPTED

    @pytest.mark.asyncio
    async def test_uses_default_base_without_platform_url(self, no_sleep):
        fetcher = FakeFetcher()
        await EvgScraper(fetcher=fetcher).fetch_batch(Platform(name="evg"), 5)
        assert fetcher.calls[0] == "https://www.escolavirtual.gov.br/catalogo?page=1"


class TestFgvScraper:
    @pytest.mark.asyncio
    async def test_three_full_pages_then_empty(self, no_sleep):
        fetcher = FakeFetcher(
            {
                fgv_url(0): fgv_page(0, 20),
                fgv_url(1): fgv_page(20, 20),
                fgv_url(2): fgv_page(40, 20),
                fgv_url(3): EMPTY,
            }
        )
        scraper = FgvScraper(fetcher=fetcher)

        courses = await scraper.fetch_batch(FGV, max_pages=100)

        assert len(courses) == 60
        assert len({c.url for c in courses}) == 60
        assert scraper.last_stop_reason is StopReason.NO_CARDS
        assert fgv_url(4) not in fetcher.calls
        assert all(c.provider == "FGV" and c.status_text == "" for c in courses)

    @pytest.mark.asyncio
    async def test_overlapping_pages_keep_first_title(self, no_sleep):
        page0 = (
            '<main><a href="/cursos/online/dados/python">Python para Dados</a>'
            '<a href="/cursos/online/dados/sql">SQL Essencial</a></main>'
        )
        page1 = (
            '<main><a href="/cursos/online/dados/python">Python (nova turma)</a>'
            '<a href="/cursos/online/dados/r">Linguagem R</a></main>'
        )
        fetcher = FakeFetcher({fgv_url(0): page0, fgv_url(1): page1, fgv_url(2): EMPTY})

        courses = await FgvScraper(fetcher=fetcher).fetch_batch(FGV, 10)

        python = [c for c in courses if c.url.endswith("/python")]
        assert len(python) == 1
        assert python[0].title == "Python para Dados"
        assert len(courses) == 3

    @pytest.mark.asyncio
    async def test_only_detail_paths_and_heading_titles(self, no_sleep):
        page = (
            "<main>"
            '<a href="/cursos/online/gestao">Gestão (categoria)</a>'
            '<div><h3>Gestão de Projetos Ágeis</h3><a href="/cursos/online/gestao/projetos">Ver</a></div>'
            "</main>"
        )
        fetcher = FakeFetcher({fgv_url(0): page, fgv_url(1): EMPTY})

        courses = await FgvScraper(fetcher=fetcher).fetch_batch(FGV, 10)

        assert [(c.title, c.url) for c in courses] == [
            ("Gestão de Projetos Ágeis", "https://fgv.test/cursos/online/gestao/projetos")
        ]
        assert courses[0].area == "Gestão & Negócios"


class SequenceFetcher:
    """Session fake answering render calls in order (the URLs carry a nonce)."""

    def __init__(self, documents: List[Optional[str]]):
        self.documents = list(documents)
        self.calls: List[str] = []
        self.warmed: List[str] = []

    async def warm_up(self, url: str) -> bool:
        self.warmed.append(url)
        return True

    async def fetch(self, url: str) -> FetchResult:
        self.calls.append(url)
        html = self.documents.pop(0) if self.documents else None
        if html is None:
            return FetchResult(url, error="timeout", attempts=1)
        return FetchResult(url, 200, parse_html(html), attempts=1)

    async def close(self):
        pass


def sebrae_page(count: int, total: int, has_next: bool, qtd: int = 24) -> str:
    cards = "".join(
        f'<div class="sb-components__card"><a href="/sites/PortalSebrae/cursosonline/curso-{n}">'
        f"Curso Sebrae {n}</a></div>"
        for n in range(count)
    )
    return (
        f'<input type="hidden" id="qtd" value="{qtd}">'
        f'<input type="hidden" id="total" value="{total}">'
        f'<input type="hidden" id="hasNext" value="{"true" if has_next else "false"}">'
        f'<div id="list-cards">{cards}</div>'
    )


class TestSebraeScraper:
    @pytest.mark.asyncio
    async def test_grows_qtd_until_has_next_is_false(self, no_sleep):
        session = SequenceFetcher([sebrae_page(24, 30, True), sebrae_page(30, 30, False, qtd=36)])
        scraper = SebraeScraper(fetcher=session)

        courses = await scraper.fetch_batch(SEBRAE, max_pages=10)

        assert len(courses) == 30
        assert scraper.last_stop_reason is StopReason.HAS_NEXT_FALSE
        assert session.warmed == [
            "https://sebrae.test/",
            "https://sebrae.test/sites/PortalSebrae/cursosonline",
        ]
        assert "qtd=24" in session.calls[0] and "qtd=36" in session.calls[1]
        assert "vgnextcomponentid=" in session.calls[0] and "&_cb=" in session.calls[0]
        assert courses[0].provider == "Sebrae"
        assert courses[0].status_text == "Online (EAD)"

    @pytest.mark.asyncio
    async def test_two_null_documents_stop_the_run(self, no_sleep):
        scraper = SebraeScraper(fetcher=SequenceFetcher([None, None, sebrae_page(24, 30, True)]))

        assert await scraper.fetch_batch(SEBRAE, 10) == []
        assert scraper.last_stop_reason is StopReason.NULL_DOC_STREAK

    @pytest.mark.asyncio
    async def test_two_pages_without_new_cards_stop_the_run(self, no_sleep):
        page = sebrae_page(24, 100, True)
        scraper = SebraeScraper(fetcher=SequenceFetcher([page, page, page, page]))

        courses = await scraper.fetch_batch(SEBRAE, 10)

        assert len(courses) == 24
        assert scraper.last_stop_reason is StopReason.NO_NEW_CARDS_STREAK

    @pytest.mark.asyncio
    async def test_item_cap_from_page_budget(self, no_sleep):
        scraper = SebraeScraper(fetcher=SequenceFetcher([sebrae_page(70, 100, True)]))

        courses = await scraper.fetch_batch(SEBRAE, max_pages=1)

        assert len(courses) == 60
        assert scraper.last_stop_reason is StopReason.ITEM_CAP

    def test_max_items(self):
        assert SebraeScraper.max_items(0) == 60
        assert SebraeScraper.max_items(10) == 600
        assert SebraeScraper.max_items(500) == 3000


class TestScraperFactory:
    def test_resolves_by_platform_name(self):
        factory = ScraperFactory()
        assert isinstance(factory.get_scraper(Platform(name="EVG")), EvgScraper)
        assert isinstance(factory.get_scraper(FGV), FgvScraper)
        assert isinstance(factory.get_scraper(SEBRAE), SebraeScraper)

    def test_unknown_platform(self):
        with pytest.raises(UnsupportedPlatformException):
            ScraperFactory().get_scraper(Platform(name="coursera"))

    def test_registered_scraper_takes_priority(self):
        factory = ScraperFactory()
        custom = EvgScraper(fetcher=FakeFetcher())
        factory.register_scraper(custom)
        assert factory.get_scraper(EVG) is custom
        assert factory.get_registered_scrapers()["evg"] == "EvgScraper"


class TestFetcherConfiguration:
    @pytest.fixture
    def fetch_settings(self, monkeypatch):
        from core.config import settings

        monkeypatch.setattr(settings, "FETCH_TIMEOUT", 5.0)
        monkeypatch.setattr(settings, "RETRY_MAX_ATTEMPTS", 6)
        monkeypatch.setattr(settings, "RETRY_JITTER", 0.0)

    @pytest.mark.parametrize("scraper_cls", [EvgScraper, FgvScraper, SebraeScraper])
    def test_fetcher_follows_settings(self, fetch_settings, scraper_cls):
        scraper = scraper_cls()
        fetcher = scraper._make_fetcher()

        assert fetcher.timeout == 5.0
        assert fetcher.retry_policy.max_attempts == 6
        assert fetcher.retries == 5
        assert fetcher.retry_policy.backoff(3) == scraper.backoff
        assert fetcher.retry_policy.honor_retry_after is False
