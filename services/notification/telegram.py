"""
Telegram notification channel (Bot API sendMessage, Markdown).
"""
import asyncio
from typing import List, Optional, Tuple

import aiohttp

from core import constants
from core.config import settings
from core.logger import get_logger
from core.retry import RetryPolicy
from models.course import Course
from services.notification.base import BaseNotifier, NotificationChannel
from services.notification.formatters import (
    create_telegram_new_courses_message,
    create_telegram_summary_message,
    split_in_chunks,
)

logger = get_logger(__name__)


class TelegramNotifier(BaseNotifier, NotificationChannel):
    """Handles all Telegram-specific notification logic."""

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        retry_policy: Optional[RetryPolicy] = None,
        token: Optional[str] = None,
        chat_id: Optional[str] = None,
        max_message_chars: Optional[int] = None,
        batch_delay: Optional[float] = None,
        disable_web_preview: Optional[bool] = None,
    ):
        super().__init__(session=session, retry_policy=retry_policy)
        self.telegram_token = token if token is not None else settings.TELEGRAM_TOKEN
        self.chat_id = chat_id if chat_id is not None else settings.TELEGRAM_CHAT_ID
        self.max_message_chars = max_message_chars or settings.TELEGRAM_MAX_MESSAGE_CHARS
        self.batch_delay = settings.TELEGRAM_BATCH_DELAY if batch_delay is None else batch_delay
        self.disable_web_preview = (
            settings.TELEGRAM_DISABLE_WEB_PREVIEW if disable_web_preview is None else disable_web_preview
        )

    @property
    def channel_name(self) -> str:
        return "telegram"

    def is_enabled(self) -> bool:
        return bool(self.telegram_token and self.chat_id)

    async def _send_markdown_message(self, text: str) -> bool:
        url = constants.TELEGRAM_API_URL.format(token=self.telegram_token)
        form = {
            "chat_id": self.chat_id,
            "text": text,
            "parse_mode": "Markdown",
        }
        if self.disable_web_preview:
            form["disable_web_page_preview"] = "true"
        return await self._post_with_backoff(url, "Telegram sendMessage", data=form)

    async def _send_chunks(self, text: str) -> Tuple[int, int]:
        """Returns (delivered, total) chunk counts."""
        chunks = split_in_chunks(text, self.max_message_chars)
        delivered = 0
        for i, chunk in enumerate(chunks):
            if i > 0:
                await asyncio.sleep(self.batch_delay)
            if await self._send_markdown_message(chunk):
                delivered += 1
        return delivered, len(chunks)

    async def notify_new_courses(self, platform_name: str, courses: List[Course]) -> bool:
        if not courses:
            logger.debug(f"[NOTIFIER] Telegram: nothing to send for {platform_name}")
            return True
        if not self.is_enabled():
            logger.warning("[NOTIFIER] Telegram token or chat id missing")
            return False

        text = create_telegram_new_courses_message(platform_name, courses)
        delivered, total = await self._send_chunks(text)
        logger.info(
            f"[NOTIFIER] Telegram new courses sent. platform={platform_name} "
            f"courses={len(courses)} chunks_ok={delivered}/{total}"
        )
        return delivered == total

    async def notify_summary(
        self, platform_name: str, total_new: int, link: Optional[str] = None
    ) -> bool:
        if not self.is_enabled():
            logger.warning("[NOTIFIER] Telegram token or chat id missing")
            return False

        text = create_telegram_summary_message(platform_name, total_new, link)
        delivered, total = await self._send_chunks(text)
        logger.info(f"[NOTIFIER] Telegram summary sent. platform={platform_name} chunks_ok={delivered}/{total}")
        return delivered == total
