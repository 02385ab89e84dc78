"""
Retry policy shared by the fetch layer and the notification channels.
"""
import random
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from core.config import settings


@dataclass(frozen=True)
class RetryPolicy:
    """
    How many times to try a call and how long to wait in between.

    ``max_attempts`` counts every try, the first one included.
    With ``incremental`` the wait grows linearly (``base_delay * attempt``),
    otherwise it stays at ``base_delay``. ``jitter`` adds up to that many
    random seconds on top.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    incremental: bool = True
    jitter: float = 0.0
    honor_retry_after: bool = True
    retry_after_default: float = 1.0

    @classmethod
    def from_settings(cls, **overrides) -> "RetryPolicy":
        values = {
            "max_attempts": settings.RETRY_MAX_ATTEMPTS,
            "base_delay": settings.RETRY_BASE_DELAY,
            "jitter": settings.RETRY_JITTER,
            "retry_after_default": settings.RETRY_AFTER_DEFAULT,
        }
        values.update(overrides)
        return cls(**values)

    def backoff(self, attempt: int) -> float:
        """Seconds to wait after the given failed attempt (1-indexed)."""
        delay = self.base_delay * max(attempt, 1) if self.incremental else self.base_delay
        if self.jitter > 0:
            delay += random.uniform(0, self.jitter)
        return delay

    def retry_after(
        self,
        header_value: Optional[str] = None,
        body: Optional[Mapping[str, Any]] = None,
    ) -> float:
        """
        Seconds to wait after a 429.

        Reads the ``Retry-After`` header first, then the bot API's
        ``parameters.retry_after`` body hint, then the configured default.
        """
        if not self.honor_retry_after:
            return self.retry_after_default

        if header_value:
            try:
                return max(float(header_value), 0.0)
            except (TypeError, ValueError):
                pass

        if isinstance(body, Mapping):
            params = body.get("parameters") or {}
            hint = params.get("retry_after", body.get("retry_after"))
            if hint is not None:
                try:
                    return max(float(hint), 0.0)
                except (TypeError, ValueError):
                    pass

        return self.retry_after_default
