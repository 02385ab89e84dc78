import time
from typing import Optional

from supabase import Client, create_client

from .config import settings
from .exceptions import ConnectionException, MissingConfigException
from .logger import get_logger
from .retry import RetryPolicy

logger = get_logger(__name__)

# Tables the bot reads and writes; a probe on each proves the schema exists
REQUIRED_TABLES = ("platforms", "courses", "course_snapshots")


class Database:
    """Process-wide Supabase client."""

    _instance: Optional[Client] = None

    @classmethod
    def get_client(cls, policy: Optional[RetryPolicy] = None) -> Client:
        """
        Create the client on first use.

        Connection attempts follow ``policy`` (waits of 2s then 4s by
        default); the last failure surfaces as ConnectionException.
        """
        if cls._instance is not None:
            return cls._instance

        if not settings.SUPABASE_URL or not settings.SUPABASE_KEY:
            raise MissingConfigException("SUPABASE_URL and SUPABASE_KEY are required")

        policy = policy or RetryPolicy(max_attempts=3, base_delay=2.0)
        last_error: Optional[Exception] = None

        for attempt in range(1, policy.max_attempts + 1):
            try:
                cls._instance = create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
                logger.info(f"[DB] Supabase client ready (attempt {attempt}/{policy.max_attempts})")
                return cls._instance
            except Exception as e:
                last_error = e
                logger.warning(f"[DB] Connect attempt {attempt}/{policy.max_attempts} failed: {e}")
                if attempt < policy.max_attempts:
                    time.sleep(policy.backoff(attempt))

        logger.critical("[DB] Giving up on Supabase")
        raise ConnectionException("Could not connect to Supabase", {"error": str(last_error)})

    @classmethod
    def health_check(cls) -> bool:
        """True when every table the bot needs answers a one-row select."""
        if cls._instance is None:
            return False
        for table in REQUIRED_TABLES:
            try:
                cls._instance.table(table).select("id").limit(1).execute()
            except Exception as e:
                logger.error(f"[DB] Health check failed on '{table}': {e}")
                return False
        return True

    @classmethod
    def reset(cls) -> None:
        """Drop the cached client so the next call reconnects."""
        cls._instance = None
