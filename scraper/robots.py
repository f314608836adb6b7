"""robots.txt guard consulted by source adapters before fetching."""
import logging
import time
from typing import Dict, Optional, Tuple
from urllib.parse import urlsplit
from urllib.robotparser import RobotFileParser

import requests

logger = logging.getLogger(__name__)


class CrawlPolicyGuard:
    """
    Fetch, cache and evaluate robots.txt rules per host.

    A missing or unreachable robots.txt permits crawling; the permissive
    result is cached for the same TTL as a real one.
    """

    DEFAULT_TTL_SECONDS = 3600
    FETCH_TIMEOUT = 5

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        timeout: int = FETCH_TIMEOUT,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the guard.

        Args:
            ttl_seconds: How long parsed rules stay cached per host
            timeout: robots.txt request timeout in seconds
            session: Optional requests session to reuse
        """
        self.ttl_seconds = ttl_seconds
        self.timeout = timeout
        self.session = session or requests.Session()
        self._cache: Dict[str, Tuple[RobotFileParser, float]] = {}

    def is_allowed(self, url: str, user_agent: str) -> bool:
        """
        Check whether user_agent may fetch url.

        Args:
            url: Full URL that is about to be fetched
            user_agent: Caller identity string (e.g. "protest-scraper/1.0")

        Returns:
            True if crawling is permitted
        """
        try:
            parts = urlsplit(url)
            if not parts.netloc:
                raise ValueError(f"URL has no host: {url}")
        except ValueError as e:
            logger.error(f"Error checking robots.txt for {url}: {e}")
            return True

        parser = self._get_parser(parts.scheme or 'https', parts.netloc)
        allowed = parser.can_fetch(user_agent, url)

        if not allowed:
            logger.warning(
                f"Path {parts.path} is disallowed by robots.txt for {parts.netloc}"
            )
        return allowed

    def clear_cache(self) -> None:
        """Forget all cached robots.txt rules."""
        self._cache.clear()

    def _get_parser(self, scheme: str, host: str) -> RobotFileParser:
        now = time.monotonic()
        cached = self._cache.get(host)
        if cached and now - cached[1] < self.ttl_seconds:
            return cached[0]

        robots_url = f"{scheme}://{host}/robots.txt"
        parser = RobotFileParser(robots_url)

        try:
            response = self.session.get(robots_url, timeout=self.timeout)
            if response.status_code != 200:
                raise requests.HTTPError(
                    f"robots.txt returned status {response.status_code}",
                    response=response
                )
            parser.parse(response.text.splitlines())
        except requests.RequestException as e:
            logger.warning(f"Could not fetch robots.txt for {host}: {e}")
            parser.parse([])

        self._cache[host] = (parser, now)
        return parser
