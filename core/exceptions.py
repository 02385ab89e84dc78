"""
Exception hierarchy for the course bot.

Every class carries a ``details`` dict that ends up in the log line, so the
message itself stays short.
"""


class CourseBotException(Exception):
    """Root of every error raised by the bot."""

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self):
        if not self.details:
            return self.message
        rendered = ", ".join(f"{k}={v}" for k, v in self.details.items())
        return f"{self.message} ({rendered})"


# =============================================================================
# Scraping
# =============================================================================


class ScraperException(CourseBotException):
    """A source adapter could not run."""


class UnsupportedPlatformException(ScraperException):
    """Raised when no adapter is registered for a platform name."""


# =============================================================================
# Validation
# =============================================================================


class ValidationException(CourseBotException):
    """A scraped course cannot be stored (missing hash or platform)."""


# =============================================================================
# Store
# =============================================================================


class DatabaseException(CourseBotException):
    """Supabase is unreachable or refused a statement."""


class ConnectionException(DatabaseException):
    """The client could not be created."""


class QueryException(DatabaseException):
    """A select, upsert, insert or update failed."""


# =============================================================================
# Configuration
# =============================================================================


class ConfigurationException(CourseBotException):
    """Settings are inconsistent."""


class MissingConfigException(ConfigurationException):
    """A required setting is unset."""
