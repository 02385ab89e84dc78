"""
Notification System - Strategy Pattern Implementation

This module defines the abstract interface for notification channels
and the shared HTTP plumbing with rate-limit handling.
"""
import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import aiohttp

from core.config import settings
from core.logger import get_logger
from core.retry import RetryPolicy
from models.course import Course

logger = get_logger(__name__)


class NotificationChannel(ABC):
    """
    Abstract base class for notification channels (Strategy Pattern).

    New channels can be added without modifying the composite port.

    Usage:
        class SlackChannel(NotificationChannel):
            async def notify_new_courses(self, platform_name, courses):
                ...
    """

    @property
    @abstractmethod
    def channel_name(self) -> str:
        """Returns the name of this notification channel (e.g., 'telegram', 'discord')."""
        pass

    @abstractmethod
    def is_enabled(self) -> bool:
        """True if the channel has the configuration it needs to send."""
        pass

    @abstractmethod
    async def notify_new_courses(self, platform_name: str, courses: List[Course]) -> bool:
        """
        Announce a batch of courses.

        Returns:
            True only if every outbound message was accepted
        """
        pass

    @abstractmethod
    async def notify_summary(
        self, platform_name: str, total_new: int, link: Optional[str] = None
    ) -> bool:
        """Announce how many more courses were found than were listed."""
        pass


class BaseNotifier:
    """
    Common HTTP helpers for notification channels.
    Owns (or borrows) an aiohttp session and retries 429 responses.
    """

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        retry_policy: Optional[RetryPolicy] = None,
        connect_timeout: Optional[float] = None,
        read_timeout: Optional[float] = None,
    ):
        self._session = session
        self._owns_session = session is None
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        self.timeout = aiohttp.ClientTimeout(
            connect=connect_timeout or settings.NOTIFY_CONNECT_TIMEOUT,
            sock_read=read_timeout or settings.NOTIFY_READ_TIMEOUT,
        )

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self._session

    async def close(self):
        if self._owns_session and self._session is not None:
            await self._session.close()
        self._session = None

    async def _read_json(self, resp) -> Optional[Dict[str, Any]]:
        try:
            body = await resp.json(content_type=None)
        except (aiohttp.ContentTypeError, ValueError):
            return None
        return body if isinstance(body, dict) else None

    async def _post_with_backoff(
        self,
        url: str,
        label: str,
        data: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        POST the same payload until it is accepted or the budget runs out.

        429 waits for the server's retry-after; connection errors and 5xx
        wait for the policy backoff; any other status fails immediately.
        """
        session = self._get_session()
        attempts = self.retry_policy.max_attempts

        for attempt in range(1, attempts + 1):
            try:
                async with session.post(url, data=data, json=json, timeout=self.timeout) as resp:
                    status = resp.status
                    if 200 <= status < 300:
                        logger.debug(f"[NOTIFIER] {label} delivered (attempt {attempt})")
                        return True

                    if status == 429:
                        body = await self._read_json(resp)
                        wait = self.retry_policy.retry_after(resp.headers.get("Retry-After"), body)
                        if attempt < attempts:
                            logger.warning(
                                f"[NOTIFIER] {label} 429 Too Many Requests "
                                f"(attempt {attempt}/{attempts}). Waiting {wait}s..."
                            )
                            await asyncio.sleep(wait)
                            continue
                        logger.error(f"[NOTIFIER] {label} still rate limited after {attempts} attempts")
                        return False

                    error_text = (await resp.text())[:500]
                    if status >= 500 and attempt < attempts:
                        wait = self.retry_policy.backoff(attempt)
                        logger.warning(
                            f"[NOTIFIER] {label} HTTP {status} (attempt {attempt}/{attempts}). Retrying in {wait}s"
                        )
                        await asyncio.sleep(wait)
                        continue

                    logger.error(f"[NOTIFIER] {label} failed (Status {status}): {error_text}")
                    return False

            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                if attempt < attempts:
                    wait = self.retry_policy.backoff(attempt)
                    logger.warning(
                        f"[NOTIFIER] {label} request error (attempt {attempt}/{attempts}): {e!r}. Retrying in {wait}s"
                    )
                    await asyncio.sleep(wait)
                    continue
                logger.error(f"[NOTIFIER] {label} request error: {e!r}")
                return False

        return False
