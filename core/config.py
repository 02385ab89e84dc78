from pydantic_settings import BaseSettings
from typing import Dict, List, Optional, Union
from pydantic import AliasChoices, Field, field_validator
import json
from core import constants


def _strip_env_value(v: str, key: str) -> str:
    v = v.strip()
    # Handle accidental copy-paste of "KEY=VALUE"
    if v.startswith(f"{key}="):
        v = v.split("=", 1)[1]
    # Handle surrounding quotes
    return v.strip("'").strip('"')


class Settings(BaseSettings):
    # --- Supabase ---
    SUPABASE_URL: Optional[str] = Field(None, description="Supabase Project URL")
    SUPABASE_KEY: Optional[str] = Field(None, description="Supabase Service Role Key")

    # --- Platforms ---
    PLATFORMS_ENABLED: Union[List[str], str] = Field(
        default_factory=lambda: list(constants.DEFAULT_PLATFORMS)
    )
    MAX_PAGES_PER_RUN: int = Field(constants.DEFAULT_MAX_PAGES_PER_RUN, description="Default page budget per collection")
    # Platform Name -> Max Pages
    MAX_PAGES_PER_PLATFORM: Union[Dict[str, int], str] = Field(default_factory=dict)

    # --- Schedules ---
    COLLECT_INTERVAL: int = Field(constants.DEFAULT_COLLECT_INTERVAL, description="Collection interval in seconds")
    PENDING_INTERVAL: int = Field(constants.DEFAULT_PENDING_INTERVAL, description="Pending recovery interval in seconds")

    # --- Dispatcher ---
    NOTIFY_MAX_NEW_PER_RUN: int = Field(40, description="Max new courses announced per platform per run")
    NOTIFY_PER_MESSAGE: int = Field(8, description="Courses grouped into one outbound message")
    NOTIFY_SLICE_DELAY: float = Field(0.3, description="Seconds between dispatched slices")
    NOTIFY_MARK_ON_DISPATCH: bool = Field(False, description="Mark courses delivered on dispatch success")
    PENDING_BATCH_DELAY: float = Field(0.25, description="Seconds between recovery batches")
    API_BASE_URL: Optional[str] = Field(None, description="Query API base for summary deep links")

    # --- Telegram ---
    TELEGRAM_ENABLED: bool = False
    TELEGRAM_TOKEN: Optional[str] = Field(None, description="Telegram Bot Token")
    TELEGRAM_CHAT_ID: Optional[str] = Field(
        None,
        description="Target Chat ID",
        validation_alias=AliasChoices("TELEGRAM_CHAT_ID", "CHAT_ID"),
    )
    TELEGRAM_MAX_MESSAGE_CHARS: int = 3800
    TELEGRAM_BATCH_DELAY: float = 0.3
    TELEGRAM_DISABLE_WEB_PREVIEW: bool = True

    # --- Discord ---
    DISCORD_ENABLED: bool = False
    DISCORD_WEBHOOK_URL: Optional[str] = None
    DISCORD_MAX_EMBEDS_PER_MESSAGE: int = 10
    DISCORD_MAX_EMBED_TOTAL_CHARS: int = 6000
    DISCORD_BATCH_DELAY: float = 0.35

    # --- Timeouts ---
    NOTIFY_CONNECT_TIMEOUT: float = 10.0
    NOTIFY_READ_TIMEOUT: float = 20.0
    FETCH_TIMEOUT: float = constants.DEFAULT_FETCH_TIMEOUT

    # --- Retry Policy ---
    RETRY_MAX_ATTEMPTS: int = 3
    RETRY_BASE_DELAY: float = 1.0
    RETRY_JITTER: float = 0.0
    RETRY_AFTER_DEFAULT: float = 1.0

    # --- Fetch Identity ---
    USER_AGENT_PRIMARY: str = constants.UA_PRIMARY
    USER_AGENT_FALLBACK: str = constants.UA_FALLBACK

    # --- Run Lock ---
    RUN_LOCK_TTL: int = Field(3 * 60 * 60, description="Collection lease TTL in seconds")

    # --- Logging ---
    LOG_LEVEL: str = Field(constants.DEFAULT_LOG_LEVEL, description="Logging level")
    LOG_FILE: str = Field(constants.DEFAULT_LOG_FILE, description="Log file path")
    LOG_FORMAT: str = Field(constants.DEFAULT_LOG_FORMAT, description="Log format (text/json)")
    LOG_MAX_BYTES: int = Field(constants.DEFAULT_LOG_MAX_BYTES, description="Max log file size")
    LOG_BACKUP_COUNT: int = Field(constants.DEFAULT_LOG_BACKUP_COUNT, description="Log backup count")
    LOG_TIMEZONE: str = Field(constants.DEFAULT_LOG_TIMEZONE, description="Timezone for log timestamps")
    ERROR_WEBHOOK_URL: Optional[str] = Field(None, description="Discord webhook for WARNING+ logs")

    @field_validator("PLATFORMS_ENABLED", mode="before")
    @classmethod
    def parse_platforms_enabled(cls, v):
        if isinstance(v, str):
            v = _strip_env_value(v, "PLATFORMS_ENABLED")
            if not v:
                return []
            if v.startswith("["):
                try:
                    v = json.loads(v)
                except json.JSONDecodeError as e:
                    raise ValueError(f"PLATFORMS_ENABLED must be valid JSON or comma-separated: {e}")
            else:
                v = v.split(",")
        return [str(name).strip().lower() for name in v if str(name).strip()]

    @field_validator("MAX_PAGES_PER_PLATFORM", mode="before")
    @classmethod
    def parse_max_pages_per_platform(cls, v):
        if isinstance(v, str):
            v = _strip_env_value(v, "MAX_PAGES_PER_PLATFORM")
            if not v:
                return {}
            try:
                parsed = json.loads(v)
                return {k.lower(): int(val) for k, val in parsed.items()}
            except (json.JSONDecodeError, ValueError, AttributeError) as e:
                raise ValueError(f"MAX_PAGES_PER_PLATFORM must be valid JSON: {e}")
        return v

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"
        populate_by_name = True

    def max_pages_for(self, platform_name: str) -> int:
        pages = self.MAX_PAGES_PER_PLATFORM.get(platform_name.lower(), self.MAX_PAGES_PER_RUN)
        return pages if pages > 0 else constants.DEFAULT_MAX_PAGES_PER_RUN

    def validate_all(self) -> List[str]:
        """
        Validate all configuration settings.
        Returns a list of warning/error messages.
        """
        errors = []

        # Critical
        if not self.SUPABASE_URL:
            errors.append("❌ SUPABASE_URL is missing")
        if not self.SUPABASE_KEY:
            errors.append("❌ SUPABASE_KEY is missing")
        if not self.PLATFORMS_ENABLED:
            errors.append("❌ PLATFORMS_ENABLED is empty")

        # Warnings
        if self.TELEGRAM_ENABLED and not (self.TELEGRAM_TOKEN and self.TELEGRAM_CHAT_ID):
            errors.append("⚠️ TELEGRAM_TOKEN/TELEGRAM_CHAT_ID missing - Telegram notifications will be disabled")
        if self.DISCORD_ENABLED and not self.DISCORD_WEBHOOK_URL:
            errors.append("⚠️ DISCORD_WEBHOOK_URL is missing - Discord notifications will be disabled")
        if not self.TELEGRAM_ENABLED and not self.DISCORD_ENABLED:
            errors.append("⚠️ No notification channel enabled - courses will stay pending")

        # URL Validation (Basic)
        if self.SUPABASE_URL and not self.SUPABASE_URL.startswith("https://"):
            errors.append("❌ SUPABASE_URL must start with https://")

        return errors


settings = Settings()
