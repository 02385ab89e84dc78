import aiohttp
import asyncio
import time

from core import constants
from core.logger import get_logger
from services.scraper.fetcher import BaseFetcher, FetchResult, build_headers

logger = get_logger(__name__)


class HttpSession(BaseFetcher):
    """
    Stateful fetch that keeps cookies across calls within one collection run.

    Call ``warm_up`` on a root page first so anti-bot cookies are in the jar
    before the real listing requests go out.
    """

    def __init__(self, *args, user_agent: str = constants.UA_SESSION, **kwargs):
        super().__init__(*args, **kwargs)
        self.user_agent = user_agent

    def _new_session(self) -> aiohttp.ClientSession:
        return aiohttp.ClientSession(cookie_jar=aiohttp.CookieJar(unsafe=True))

    @property
    def cookie_count(self) -> int:
        if self._session is None:
            return 0
        try:
            return len(self._session.cookie_jar)
        except TypeError:
            return 0

    async def warm_up(self, url: str) -> bool:
        """Visit ``url`` to collect cookies. Never fails the run."""
        start = time.monotonic()
        session = self._get_session()
        try:
            async with session.get(
                url,
                headers=build_headers(self.user_agent),
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                allow_redirects=True,
            ) as resp:
                await resp.read()
                ok = 200 <= resp.status < 300
                if ok:
                    logger.info(
                        f"[SESSION] Warm-up ok status={resp.status} url={url} cookies={self.cookie_count}",
                        duration=time.monotonic() - start,
                    )
                else:
                    logger.warning(
                        f"[SESSION] Warm-up non-2xx status={resp.status} url={url} cookies={self.cookie_count}"
                    )
                return ok
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"[SESSION] Warm-up failed url={url}: {e!r}")
            return False

    async def fetch(self, url: str) -> FetchResult:
        start = time.monotonic()
        result = await self._try_once(url, self.user_agent, self.timeout, 1)
        if not result.failed:
            return result

        for i in range(1, self.retries + 1):
            await asyncio.sleep(self.retry_policy.backoff(i))
            result = await self._try_once(url, self.user_agent, self.timeout, i + 1)
            if not result.failed:
                logger.info(f"[SESSION] Succeeded on attempt={i + 1} url={url}")
                return result

        logger.warning(
            f"[SESSION] Attempts exhausted url={url}",
            duration=time.monotonic() - start,
        )
        return result
