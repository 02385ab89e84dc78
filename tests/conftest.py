import asyncio
from datetime import datetime, timezone
from typing import Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock, Mock

import pytest

from models.course import Course
from models.platform import Platform
from services.scraper.fetcher import FetchResult, parse_html

# =============================================================================
# Mock Fixtures - External Services
# =============================================================================


@pytest.fixture
def mock_supabase_client():
    """Mock Supabase client for database operations."""
    client = Mock()

    # Every query builder method returns the same chainable mock
    table_mock = Mock()
    for method in (
        "select", "insert", "update", "upsert", "delete", "eq", "neq", "gte",
        "ilike", "is_", "in_", "order", "limit", "range",
    ):
        getattr(table_mock, method).return_value = table_mock
    table_mock.execute.return_value = Mock(data=[])

    client.table.return_value = table_mock
    return client


def make_response(status=200, headers=None, json_body=None, text=""):
    """aiohttp-like response usable inside ``async with session.post(...)``."""
    resp = MagicMock()
    resp.status = status
    resp.headers = headers or {}
    resp.json = AsyncMock(return_value=json_body)
    resp.text = AsyncMock(return_value=text)
    resp.read = AsyncMock(return_value=text.encode())

    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=resp)
    ctx.__aexit__ = AsyncMock(return_value=False)
    return ctx


@pytest.fixture
def mock_aiohttp_session():
    """Mock aiohttp ClientSession answering 200 to every call."""
    session = MagicMock()
    session.post.return_value = make_response(200, json_body={"ok": True})
    session.get.return_value = make_response(200, text="<html><body>Test HTML</body></html>")
    session.close = AsyncMock()
    return session


@pytest.fixture
def no_sleep(monkeypatch):
    """Replaces asyncio.sleep; the mock records requested delays."""
    sleep = AsyncMock()
    monkeypatch.setattr(asyncio, "sleep", sleep)
    return sleep


# =============================================================================
# Fakes
# =============================================================================


class FakeFetcher:
    """Serves canned HTML per URL. Unknown URLs (or None values) fail."""

    def __init__(self, pages: Optional[Dict[str, Optional[str]]] = None, default: Optional[str] = None):
        self.pages = pages or {}
        self.default = default
        self.calls: List[str] = []
        self.warmed: List[str] = []
        self.closed = False

    async def fetch(self, url: str) -> FetchResult:
        self.calls.append(url)
        html = self.pages.get(url, self.default)
        if html is None:
            return FetchResult(url, error="HTTP 503", attempts=1)
        return FetchResult(url, 200, parse_html(html), attempts=1)

    async def warm_up(self, url: str) -> bool:
        self.warmed.append(url)
        return True

    async def close(self):
        self.closed = True


class FakeCourseRepository:
    """In-memory course store keyed by identity hash."""

    def __init__(self):
        self.rows: Dict[str, Course] = {}
        self.upserts: List[Course] = []
        self.marked: List[List[int]] = []
        self.fail_on_hash: set = set()
        self._next_id = 1

    def find_by_hash(self, external_id_hash: str) -> Optional[Course]:
        if external_id_hash in self.fail_on_hash:
            raise RuntimeError("store unavailable")
        return self.rows.get(external_id_hash)

    def upsert(self, course: Course) -> Course:
        self.upserts.append(course)
        existing = self.rows.get(course.external_id_hash)
        now = datetime.now(timezone.utc)
        if existing is None:
            stored = course.model_copy(update={"id": self._next_id, "created_at": now, "updated_at": now})
            self._next_id += 1
        else:
            stored = course.model_copy(
                update={"id": existing.id, "created_at": existing.created_at, "updated_at": now}
            )
        self.rows[course.external_id_hash] = stored
        return stored

    def find_latest(self, platform_id=None, area=None, only_free=None, since=None, page=0, size=20):
        rows = sorted(self.rows.values(), key=lambda c: c.updated_at, reverse=True)
        return rows[page * size:(page + 1) * size]

    def find_pending_to_notify(self, platform_id: int, limit: int) -> List[Course]:
        pending = [c for c in self.rows.values() if c.platform_id == platform_id and c.notified_at is None]
        return sorted(pending, key=lambda c: c.created_at)[:limit]

    def mark_notified(self, ids: List[int]) -> int:
        self.marked.append(list(ids))
        now = datetime.now(timezone.utc)
        count = 0
        for key, course in self.rows.items():
            if course.id in ids and course.notified_at is None:
                self.rows[key] = course.model_copy(update={"notified_at": now})
                count += 1
        return count


class FakeSnapshotRepository:
    def __init__(self):
        self.snapshots: List[dict] = []

    def save_snapshot(self, course_id, status_text, price_text, raw_json=None):
        self.snapshots.append(
            {"course_id": course_id, "status_text": status_text, "price_text": price_text, "raw_json": raw_json}
        )


class FakePlatformRepository:
    def __init__(self, platforms: Optional[List[Platform]] = None):
        self.platforms = {p.name: p for p in (platforms or [])}

    def find_by_name(self, name: str) -> Optional[Platform]:
        return self.platforms.get(name.strip().lower())

    def find_id_by_name(self, name: str) -> Optional[int]:
        platform = self.find_by_name(name)
        return platform.id if platform else None

    def list_enabled(self) -> List[Platform]:
        return [p for p in self.platforms.values() if p.enabled]


class FakeNotifier:
    """Notification port whose answers are scripted per call."""

    def __init__(self, results: Optional[List[object]] = None, default: bool = True):
        self.results = list(results or [])
        self.default = default
        self.new_calls: List[tuple] = []
        self.summary_calls: List[tuple] = []

    async def notify_new_courses(self, platform_name, courses) -> bool:
        self.new_calls.append((platform_name, list(courses)))
        result = self.results.pop(0) if self.results else self.default
        if isinstance(result, Exception):
            raise result
        return result

    async def notify_summary(self, platform_name, total_new, link=None) -> bool:
        self.summary_calls.append((platform_name, total_new, link))
        return True


@pytest.fixture
def course_repo():
    return FakeCourseRepository()


@pytest.fixture
def snapshot_repo():
    return FakeSnapshotRepository()


@pytest.fixture
def platform_repo():
    return FakePlatformRepository(
        [
            Platform(id=1, name="evg", base_url="https://evg.test"),
            Platform(id=2, name="fgv", base_url="https://fgv.test"),
            Platform(id=3, name="sebrae", base_url="https://sebrae.test"),
            Platform(id=4, name="off", base_url="https://off.test", enabled=False),
        ]
    )


# =============================================================================
# Sample Data Fixtures
# =============================================================================


def make_course(n: int, platform_id: Optional[int] = 1, **overrides) -> Course:
    from services.components.hash_calculator import HashCalculator

    title = overrides.pop("title", f"Curso {n}")
    url = overrides.pop("url", f"https://evg.test/curso/{n}")
    data = {
        "platform_id": platform_id,
        "external_id_hash": HashCalculator.identity_hash(title, url),
        "title": title,
        "url": url,
        "provider": "EVG",
        "status_text": "Online (EAD)",
    }
    data.update(overrides)
    return Course(**data)


@pytest.fixture
def sample_course() -> Course:
    return make_course(1, id=10, area="Dados & IA")


def card_page(urls: List[str], css_class: str = "card") -> str:
    cards = "".join(
        f'<div class="{css_class}"><a href="{url}">Curso {url.rsplit("/", 1)[-1]}</a></div>'
        for url in urls
    )
    return f"<html><body><main>{cards}</main></body></html>"
