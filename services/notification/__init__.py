"""
Notification channels and message formatting.
"""

from services.notification import formatters
from services.notification.base import NotificationChannel
from services.notification.discord import DiscordNotifier
from services.notification.telegram import TelegramNotifier

__all__ = ["formatters", "NotificationChannel", "DiscordNotifier", "TelegramNotifier"]
