"""
Notification service - fans every call out to the configured channels.
"""
from typing import List, Optional

from core.config import settings
from core.logger import get_logger
from models.course import Course
from services.notification.base import NotificationChannel
from services.notification.discord import DiscordNotifier
from services.notification.telegram import TelegramNotifier

logger = get_logger(__name__)


def build_default_channels() -> List[NotificationChannel]:
    channels: List[NotificationChannel] = []
    if settings.TELEGRAM_ENABLED:
        channels.append(TelegramNotifier())
    if settings.DISCORD_ENABLED:
        channels.append(DiscordNotifier())
    return channels


class NotificationService:
    """
    Composite notification port.

    Each channel is called independently; an exception or a failed send in
    one channel is logged and never stops the others. A call reports success
    only when every enabled channel delivered.
    """

    def __init__(self, channels: Optional[List[NotificationChannel]] = None):
        self.channels = build_default_channels() if channels is None else list(channels)
        names = ", ".join(c.channel_name for c in self.channels) or "none"
        logger.info(f"[NOTIFIER] Channels configured: {names}")

    @property
    def enabled_channels(self) -> List[NotificationChannel]:
        return [c for c in self.channels if c.is_enabled()]

    async def notify_new_courses(self, platform_name: str, courses: List[Course]) -> bool:
        channels = self.enabled_channels
        if not channels:
            logger.warning(f"[NOTIFIER] No enabled channel, {len(courses)} courses left pending")
            return False

        all_ok = True
        for channel in channels:
            try:
                ok = await channel.notify_new_courses(platform_name, courses)
            except Exception as e:
                logger.error(
                    f"[NOTIFIER] {channel.channel_name} failed on new courses: {e}",
                    context={"platform": platform_name, "courses": len(courses)},
                    exc_info=True,
                )
                ok = False
            all_ok = all_ok and ok
        return all_ok

    async def notify_summary(
        self, platform_name: str, total_new: int, link: Optional[str] = None
    ) -> bool:
        channels = self.enabled_channels
        if not channels:
            return False

        all_ok = True
        for channel in channels:
            try:
                ok = await channel.notify_summary(platform_name, total_new, link)
            except Exception as e:
                logger.error(
                    f"[NOTIFIER] {channel.channel_name} failed on summary: {e}",
                    context={"platform": platform_name, "total": total_new},
                    exc_info=True,
                )
                ok = False
            all_ok = all_ok and ok
        return all_ok

    async def close(self):
        for channel in self.channels:
            close = getattr(channel, "close", None)
            if close is not None:
                await close()
