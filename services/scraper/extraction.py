"""
Ordered selector rules that pull (title, url) pairs out of a listing page.
"""
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup, Tag

from core.utils import absolute_url

Candidate = Tuple[str, str]  # (title, absolute url)


def clean_text(value: Optional[str]) -> str:
    return " ".join((value or "").split())


def anchor_of(element: Tag) -> Optional[Tag]:
    """The element itself when it is a link, else its first descendant link."""
    if element.name == "a":
        return element
    return element.select_one("a[href]")


@dataclass
class SelectorRule:
    """
    One CSS selector plus how to read a candidate off each match.

    ``accept`` filters on the raw href; ``title_of`` may recover a title from
    surrounding markup when the anchor text is not usable.
    """

    selector: str
    accept: Optional[Callable[[str], bool]] = None
    title_of: Optional[Callable[[Tag], str]] = None

    def extract(self, document: BeautifulSoup, base_url: str) -> List[Candidate]:
        pairs: List[Candidate] = []
        for element in document.select(self.selector):
            anchor = anchor_of(element)
            if anchor is None:
                continue

            href = (anchor.get("href") or "").strip()
            if not href:
                continue
            if self.accept is not None and not self.accept(href):
                continue

            title = self.title_of(anchor) if self.title_of else clean_text(anchor.get_text(" "))
            url = absolute_url(base_url, href)
            if not title or not url:
                continue
            pairs.append((title, url))
        return pairs


@dataclass
class ExtractionStrategy:
    """Tries rules in priority order; the first one that yields anything wins."""

    rules: Sequence[SelectorRule] = field(default_factory=list)

    def has_candidates(self, document: Optional[BeautifulSoup]) -> bool:
        if document is None:
            return False
        return any(document.select(rule.selector) for rule in self.rules)

    def extract(self, document: BeautifulSoup, base_url: str) -> List[Candidate]:
        for rule in self.rules:
            pairs = rule.extract(document, base_url)
            if pairs:
                return pairs
        return []
