from typing import List, Optional

from supabase import Client

from core.database import Database
from core.exceptions import QueryException
from core.logger import get_logger
from models.platform import Platform

logger = get_logger(__name__)


class PlatformRepository:
    """
    Read-only access to the platforms table. Rows are seeded outside the bot.
    """

    def __init__(self, client: Optional[Client] = None):
        self.db: Client = client or Database.get_client()

    def find_by_name(self, name: str) -> Optional[Platform]:
        try:
            response = (
                self.db.table("platforms")
                .select("*")
                .ilike("name", name.strip())
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise QueryException("Failed to fetch platform", {"name": name, "error": str(e)})
        if not response.data:
            logger.debug(f"[DB] No platform row for '{name}'")
            return None
        return Platform(**response.data[0])

    def find_id_by_name(self, name: str) -> Optional[int]:
        platform = self.find_by_name(name)
        return platform.id if platform else None

    def list_enabled(self) -> List[Platform]:
        try:
            response = (
                self.db.table("platforms")
                .select("*")
                .eq("enabled", True)
                .order("name")
                .execute()
            )
        except Exception as e:
            raise QueryException("Failed to list platforms", {"error": str(e)})
        return [Platform(**row) for row in response.data]
