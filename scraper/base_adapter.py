"""Common plumbing for protest event source adapters."""
import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import List, Optional

import requests
from dateutil import tz

from processor.locales import LocaleConfig, get_locale
from processor.models import CandidateEvent
from scraper.robots import CrawlPolicyGuard

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = 'protest-scraper/1.0'


class SourceAdapter(ABC):
    """
    Base class for one upstream origin.

    Subclasses implement _fetch_events(); fetch_events() wraps it with the
    robots.txt check and guarantees that no exception escapes the adapter.
    """

    source_id: str = ''
    name: str = ''
    country: str = ''
    city: Optional[str] = None
    source_name: str = ''  # value stored in CandidateEvent.source
    FETCH_URL: str = ''
    REQUEST_DELAY: float = 1.0  # seconds between requests to the origin
    ACCEPT_LANGUAGE = 'de-DE,de;q=0.9,en;q=0.8'

    def __init__(
        self,
        guard: Optional[CrawlPolicyGuard] = None,
        timeout: int = 30,
        request_delay: Optional[float] = None,
        user_agent: str = DEFAULT_USER_AGENT,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the adapter.

        Args:
            guard: Shared robots.txt guard (a private one is created if omitted)
            timeout: HTTP request timeout in seconds (default: 30)
            request_delay: Override for the minimum delay between requests
            user_agent: Identity sent to the origin and checked against robots.txt
            session: Optional requests session to reuse

        Raises:
            LocaleNotFoundError: If the adapter's country has no locale
        """
        self.locale: LocaleConfig = get_locale(self.country)
        self.guard = guard or CrawlPolicyGuard()
        self.timeout = timeout
        self.request_delay = self.REQUEST_DELAY if request_delay is None else request_delay
        self.user_agent = user_agent
        self.session = session or requests.Session()
        self._last_request_at: Optional[float] = None

    def fetch_events(self, days_ahead: int = 90) -> List[CandidateEvent]:
        """
        Fetch candidate events from this source.

        Args:
            days_ahead: Forward horizon in days (default: 90)

        Returns:
            List of CandidateEvent objects, empty on any failure
        """
        logger.info(f"[{self.name}] Fetching events for {days_ahead} days ahead")

        try:
            if not self.guard.is_allowed(self.FETCH_URL, self.user_agent):
                logger.warning(f"[{self.name}] Blocked by robots.txt, skipping source")
                return []
            # The robots.txt lookup may have just hit the same origin
            self._last_request_at = time.monotonic()

            events = self._fetch_events(days_ahead)
        except Exception as e:
            logger.error(
                f"[{self.name}] Failed to fetch events: {e}",
                extra={'source_id': self.source_id, 'error_type': type(e).__name__},
                exc_info=True
            )
            return []

        logger.info(f"[{self.name}] Found {len(events)} events")
        return events

    @abstractmethod
    def _fetch_events(self, days_ahead: int) -> List[CandidateEvent]:
        """Fetch and parse events; may raise, fetch_events() contains it."""

    def _now(self) -> datetime:
        return datetime.now(tz.gettz(self.locale.timezone))

    def _horizon(self, days_ahead: int) -> datetime:
        return self._now() + timedelta(days=days_ahead)

    def _throttle(self) -> None:
        if self._last_request_at is None or self.request_delay <= 0:
            return
        wait = self.request_delay - (time.monotonic() - self._last_request_at)
        if wait > 0:
            time.sleep(wait)

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        """
        Issue one polite HTTP request to the origin.

        Raises:
            requests.RequestException: On network errors or non-2xx status
        """
        headers = {
            'User-Agent': self.user_agent,
            'Accept-Language': self.ACCEPT_LANGUAGE,
        }
        headers.update(kwargs.pop('headers', {}))

        self._throttle()
        try:
            response = self.session.request(
                method,
                url,
                headers=headers,
                timeout=self.timeout,
                **kwargs
            )
        finally:
            self._last_request_at = time.monotonic()
        response.raise_for_status()
        return response

    def _get(self, url: str, **kwargs) -> requests.Response:
        return self._request('GET', url, **kwargs)

    def _post_form(self, url: str, data: dict, **kwargs) -> requests.Response:
        headers = {
            'Content-Type': 'application/x-www-form-urlencoded; charset=UTF-8',
            'X-Requested-With': 'XMLHttpRequest',
        }
        headers.update(kwargs.pop('headers', {}))
        return self._request('POST', url, data=data, headers=headers, **kwargs)

    @staticmethod
    def _city_from_location(location: Optional[str]) -> Optional[str]:
        """First comma-separated part of a location string."""
        if not location:
            return None
        city = location.split(',')[0].strip()
        return city or None
