"""
AreaClassifier component: keyword rules over the lower-cased title.
"""
import re
from typing import List, Optional, Sequence, Tuple

from core import constants

AreaRule = Tuple[str, Sequence[str]]


class AreaClassifier:
    """
    First matching rule wins. Keywords of two characters or fewer (``ia``)
    must match a whole word; longer ones match anywhere in the title.
    """

    SHORT_KEYWORD_LENGTH = 2

    def __init__(self, rules: Optional[List[AreaRule]] = None):
        self.rules = rules if rules is not None else constants.DEFAULT_AREA_RULES
        self._compiled = [
            (area, [self._matcher(kw.lower()) for kw in keywords])
            for area, keywords in self.rules
        ]

    def _matcher(self, keyword: str):
        if len(keyword) <= self.SHORT_KEYWORD_LENGTH:
            pattern = re.compile(rf"(?<!\w){re.escape(keyword)}(?!\w)")
            return lambda text: bool(pattern.search(text))
        return lambda text: keyword in text

    def classify(self, title: Optional[str]) -> Optional[str]:
        text = (title or "").lower()
        if not text:
            return None
        for area, matchers in self._compiled:
            if any(match(text) for match in matchers):
                return area
        return None
