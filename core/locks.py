"""
Per-platform run lease so scheduled and on-demand collections of the
same platform never overlap inside one process.
"""
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from core.logger import get_logger

logger = get_logger(__name__)


class Clock:
    def now(self) -> datetime:
        return datetime.now(tz=timezone.utc)


class FrozenClock(Clock):
    def __init__(self, now: Optional[datetime] = None) -> None:
        self._now = now or datetime.now(tz=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float) -> None:
        self._now = self._now + timedelta(seconds=seconds)


@dataclass
class Lease:
    token: str
    expires_at: datetime


class SourceRunLock:
    """
    Advisory lease keyed by platform name.

    A lease expires after ``ttl_seconds`` so a crashed run cannot block the
    platform forever. Only the holder of the current token can release it.
    """

    def __init__(self, ttl_seconds: float, clock: Optional[Clock] = None) -> None:
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock or Clock()
        self._leases: Dict[str, Lease] = {}

    def acquire(self, name: str) -> Optional[str]:
        key = name.lower()
        now = self._clock.now()
        current = self._leases.get(key)
        if current is not None and current.expires_at > now:
            return None
        if current is not None:
            logger.warning(f"[LOCK] Lease for '{key}' expired, taking over")

        token = uuid.uuid4().hex
        self._leases[key] = Lease(token=token, expires_at=now + self._ttl)
        return token

    def release(self, name: str, token: str) -> bool:
        key = name.lower()
        current = self._leases.get(key)
        if current is None or current.token != token:
            return False
        del self._leases[key]
        return True

    def is_held(self, name: str) -> bool:
        current = self._leases.get(name.lower())
        return current is not None and current.expires_at > self._clock.now()
