import aiohttp
import asyncio
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from bs4 import BeautifulSoup

from core import constants
from core.config import settings
from core.logger import get_logger
from core.retry import RetryPolicy

logger = get_logger(__name__)


@dataclass
class FetchResult:
    """
    Outcome of a GET. ``document`` is None when the fetch failed after every
    attempt; an empty listing still comes back as a parsed document.
    """

    url: str
    status: Optional[int] = None
    document: Optional[BeautifulSoup] = None
    error: Optional[str] = None
    attempts: int = 0

    @property
    def failed(self) -> bool:
        return self.document is None


def build_headers(user_agent: str) -> Dict[str, str]:
    headers = dict(constants.DEFAULT_FETCH_HEADERS)
    headers["User-Agent"] = user_agent
    headers["Referer"] = constants.DEFAULT_REFERRER
    return headers


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


class BaseFetcher:
    """
    Owns one aiohttp session and turns a single GET into a FetchResult.
    Subclasses decide the attempt plan (user agents, timeouts, retries).
    """

    def __init__(
        self,
        timeout: float = constants.DEFAULT_FETCH_TIMEOUT,
        retries: int = constants.DEFAULT_FETCH_RETRIES,
        backoff: float = constants.DEFAULT_FETCH_BACKOFF,
        retry_policy: Optional[RetryPolicy] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=max(retries, 0) + 1,
            base_delay=backoff,
            incremental=False,
            jitter=settings.RETRY_JITTER,
            honor_retry_after=False,
        )
        self._session = session
        self._owns_session = session is None

    @property
    def retries(self) -> int:
        return max(self.retry_policy.max_attempts - 1, 0)

    def _new_session(self) -> aiohttp.ClientSession:
        raise NotImplementedError

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = self._new_session()
        return self._session

    async def close(self):
        if self._owns_session and self._session is not None:
            await self._session.close()
        self._session = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def _try_once(
        self, url: str, user_agent: str, timeout: float, attempt: int
    ) -> FetchResult:
        """One GET. 2xx is parsed; 301/302 bodies are parsed when present."""
        start = time.monotonic()
        session = self._get_session()
        try:
            async with session.get(
                url,
                headers=build_headers(user_agent),
                timeout=aiohttp.ClientTimeout(total=timeout),
                allow_redirects=True,
            ) as resp:
                status = resp.status
                elapsed_ms = (time.monotonic() - start) * 1000

                if 200 <= status < 300:
                    html = await resp.text(errors="replace")
                    logger.debug(
                        f"[FETCH] attempt={attempt} status={status} url={url}",
                        duration_ms=elapsed_ms,
                    )
                    return FetchResult(url, status, parse_html(html), attempts=attempt)

                if status in (301, 302):
                    html = await resp.text(errors="replace")
                    if html and html.strip():
                        logger.warning(
                            f"[FETCH] Parsing intermediate redirect body attempt={attempt} status={status} url={url}"
                        )
                        return FetchResult(url, status, parse_html(html), attempts=attempt)

                logger.warning(
                    f"[FETCH] Unsupported status attempt={attempt} status={status} url={url}",
                    duration_ms=elapsed_ms,
                )
                return FetchResult(url, status, error=f"HTTP {status}", attempts=attempt)

        except asyncio.TimeoutError:
            logger.warning(f"[FETCH] Timeout attempt={attempt} url={url} timeout={timeout}s")
            return FetchResult(url, error="timeout", attempts=attempt)
        except aiohttp.ClientError as e:
            logger.warning(f"[FETCH] Client error attempt={attempt} url={url}: {e}")
            return FetchResult(url, error=str(e), attempts=attempt)
        except Exception as e:
            logger.error(f"[FETCH] Unexpected error attempt={attempt} url={url}: {e}")
            return FetchResult(url, error=str(e), attempts=attempt)


class HttpFetcher(BaseFetcher):
    """
    Stateless fetch: no cookie continuity between calls.

    Tries the primary user agent, then the fallback, then ``retries`` more
    times alternating the two with a backoff sleep and one extra second of
    timeout per retry.
    """

    def __init__(self, *args, user_agents: Optional[Sequence[str]] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.user_agents: List[str] = list(
            user_agents or (settings.USER_AGENT_PRIMARY, settings.USER_AGENT_FALLBACK)
        )

    def _new_session(self) -> aiohttp.ClientSession:
        return aiohttp.ClientSession(cookie_jar=aiohttp.DummyCookieJar())

    async def fetch(self, url: str) -> FetchResult:
        start = time.monotonic()
        attempt = 0
        result = FetchResult(url)

        for ua in self.user_agents:
            attempt += 1
            result = await self._try_once(url, ua, self.timeout, attempt)
            if not result.failed:
                return result

        for i in range(self.retries):
            await asyncio.sleep(self.retry_policy.backoff(i + 1))
            ua = self.user_agents[i % len(self.user_agents)]
            attempt += 1
            result = await self._try_once(
                url, ua, self.timeout + i * constants.FETCH_TIMEOUT_STEP, attempt
            )
            if not result.failed:
                logger.info(f"[FETCH] Succeeded after retry={i + 1} url={url}")
                return result

        logger.warning(
            f"[FETCH] Giving up after {attempt} attempts url={url}",
            duration=time.monotonic() - start,
        )
        return result
