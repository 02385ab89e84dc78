"""
Relevance policy deciding whether a re-seen course changed in a way worth storing.
"""
from typing import Optional

from models.course import Course


def _norm(value) -> Optional[str]:
    return None if value is None else str(value)


def is_relevant_update(existing: Course, incoming: Course) -> bool:
    """
    True when status, price, start date or end date differ.

    Comparison is null-safe and case-sensitive; dates compare by their
    ISO string form.
    """
    return (
        _norm(existing.status_text) != _norm(incoming.status_text)
        or _norm(existing.price_text) != _norm(incoming.price_text)
        or _norm(existing.start_date) != _norm(incoming.start_date)
        or _norm(existing.end_date) != _norm(incoming.end_date)
    )
