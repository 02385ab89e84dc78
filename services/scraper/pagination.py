"""
Pagination state shared by the listing adapters.
"""
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from bs4 import BeautifulSoup

from core import constants
from core.utils import clamp

PAGER_SELECTOR = 'ul.pagination a[href*="page="]'
_PAGE_NUMBER = re.compile(r"^(\d+)")


class StopReason(str, Enum):
    OK = "OK"
    NO_CARDS = "NO_CARDS"
    DOC_NULL = "DOC_NULL"
    ITEM_CAP = "ITEM_CAP"
    INTERRUPTED = "INTERRUPTED"
    ADDED_ZERO = "ADDED_ZERO"
    NULL_DOC_STREAK = "NULL_DOC_STREAK"
    NO_NEW_CARDS_STREAK = "NO_NEW_CARDS_STREAK"
    HAS_NEXT_FALSE = "HAS_NEXT_FALSE_OR_TOTAL_REACHED"


def clamp_page_cap(max_pages: int) -> int:
    return clamp(max_pages, constants.MIN_PAGE_CAP, constants.MAX_PAGE_CAP)


def detect_last_page(document: Optional[BeautifulSoup]) -> int:
    """
    Highest ``page=`` value linked from the pager, or -1 when there is none.
    """
    last = -1
    if document is None:
        return last
    for anchor in document.select(PAGER_SELECTOR):
        href = anchor.get("href") or ""
        idx = href.rfind("page=")
        if idx < 0:
            continue
        match = _PAGE_NUMBER.match(href[idx + 5:])
        if match:
            last = max(last, int(match.group(1)))
    return last


@dataclass
class PaginationCursor:
    """
    Explicit loop state for one adapter run.

    ``seen`` keeps insertion order, so the batch comes out in the order
    listings were first met, and the first title seen for a URL wins.
    """

    start_page: int
    last_page: int
    item_cap: int = constants.DEFAULT_ITEM_CAP
    page: int = 0
    stop_reason: StopReason = StopReason.OK
    seen: Dict[str, str] = field(default_factory=dict)
    pages_fetched: int = 0

    def __post_init__(self):
        self.page = self.start_page

    @classmethod
    def for_run(
        cls,
        start_page: int,
        detected_last: int,
        max_pages: int,
        item_cap: int = constants.DEFAULT_ITEM_CAP,
    ) -> "PaginationCursor":
        ceiling = start_page + clamp_page_cap(max_pages) - 1
        last = ceiling if detected_last < 0 else min(detected_last, ceiling)
        return cls(start_page=start_page, last_page=last, item_cap=item_cap)

    @property
    def has_more(self) -> bool:
        return self.stop_reason is StopReason.OK and self.page <= self.last_page

    @property
    def cap_reached(self) -> bool:
        return len(self.seen) >= self.item_cap

    def add_all(self, pairs: List[Tuple[str, str]]) -> int:
        """Record candidates, returns how many URLs were new."""
        added = 0
        for title, url in pairs:
            if url in self.seen:
                continue
            self.seen[url] = title
            added += 1
            if self.cap_reached:
                break
        return added

    def stop(self, reason: StopReason):
        self.stop_reason = reason

    def advance(self):
        self.page += 1
        self.pages_fetched += 1

    def items(self) -> List[Tuple[str, str]]:
        return [(title, url) for url, title in self.seen.items()]
