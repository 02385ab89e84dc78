"""
Discord notification channel (incoming webhook with embeds).
"""
import asyncio
from typing import Any, Dict, List, Optional

import aiohttp

from core.config import settings
from core.logger import get_logger
from core.retry import RetryPolicy
from models.course import Course
from services.notification.base import BaseNotifier, NotificationChannel
from services.notification.formatters import (
    create_discord_embed,
    create_discord_summary_embed,
    estimate_embed_chars,
)

logger = get_logger(__name__)


class DiscordNotifier(BaseNotifier, NotificationChannel):
    """Handles all Discord-specific notification logic."""

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        retry_policy: Optional[RetryPolicy] = None,
        webhook_url: Optional[str] = None,
        max_embeds_per_message: Optional[int] = None,
        max_embed_total_chars: Optional[int] = None,
        batch_delay: Optional[float] = None,
    ):
        super().__init__(session=session, retry_policy=retry_policy)
        self.webhook_url = webhook_url if webhook_url is not None else settings.DISCORD_WEBHOOK_URL
        self.max_embeds = max_embeds_per_message or settings.DISCORD_MAX_EMBEDS_PER_MESSAGE
        self.max_chars = max_embed_total_chars or settings.DISCORD_MAX_EMBED_TOTAL_CHARS
        self.batch_delay = settings.DISCORD_BATCH_DELAY if batch_delay is None else batch_delay

    @property
    def channel_name(self) -> str:
        return "discord"

    def is_enabled(self) -> bool:
        return bool(self.webhook_url)

    async def _post_embeds(self, embeds: List[Dict[str, Any]]) -> bool:
        ok = await self._post_with_backoff(
            self.webhook_url, f"Discord webhook ({len(embeds)} embeds)", json={"embeds": embeds}
        )
        if ok:
            logger.info(f"[NOTIFIER] Discord sent {len(embeds)} embeds")
        return ok

    def _batch_embeds(self, embeds: List[Dict[str, Any]]) -> List[List[Dict[str, Any]]]:
        """Group embeds under both the per-message count cap and the char budget."""
        batches: List[List[Dict[str, Any]]] = []
        current: List[Dict[str, Any]] = []
        current_chars = 0

        for embed in embeds:
            size = estimate_embed_chars(embed)
            too_many = len(current) >= self.max_embeds
            too_long = current_chars + size > self.max_chars
            if current and (too_many or too_long):
                batches.append(current)
                current, current_chars = [], 0
            current.append(embed)
            current_chars += size

        if current:
            batches.append(current)
        return batches

    async def notify_new_courses(self, platform_name: str, courses: List[Course]) -> bool:
        if not courses:
            logger.debug(f"[NOTIFIER] Discord: nothing to send for {platform_name}")
            return True
        if not self.is_enabled():
            logger.warning(f"[NOTIFIER] Discord webhook URL missing. platform={platform_name}")
            return False

        embeds = [create_discord_embed(platform_name, course) for course in courses]
        batches = self._batch_embeds(embeds)

        delivered = 0
        for i, batch in enumerate(batches):
            if i > 0:
                await asyncio.sleep(self.batch_delay)
            if await self._post_embeds(batch):
                delivered += 1

        logger.info(
            f"[NOTIFIER] Discord new courses sent. platform={platform_name} "
            f"messages_ok={delivered}/{len(batches)} embeds={len(embeds)}"
        )
        return delivered == len(batches)

    async def notify_summary(
        self, platform_name: str, total_new: int, link: Optional[str] = None
    ) -> bool:
        if not self.is_enabled():
            logger.warning(f"[NOTIFIER] Discord webhook URL missing. platform={platform_name}")
            return False
        return await self._post_embeds([create_discord_summary_embed(platform_name, total_new, link)])
