"""Scraper for the DemokraTEAM action calendar (WordPress Modern Events Calendar)."""
import json
import logging
import math
import re
from datetime import datetime
from typing import List, Optional

import requests
from bs4 import BeautifulSoup
from dateutil import tz
from dateutil.relativedelta import relativedelta

from processor.attendee_parser import parse_german_attendees
from processor.date_parser import parse_date
from processor.models import CandidateEvent
from scraper.base_adapter import SourceAdapter

logger = logging.getLogger(__name__)

CLOCK_PATTERN = re.compile(r'(\d{1,2}):(\d{2})')

# Label id of the "Demo/Protest" filter in the calendar
PROTEST_LABEL = '4324'


class DemokrateamAdapter(SourceAdapter):
    """
    Adapter for https://www.demokrateam.org.

    One request per calendar month, enough months to cover the horizon
    (ceil(days / 30)).
    """

    source_id = 'demokrateam'
    name = 'DemokraTEAM'
    country = 'DE'
    city = None
    source_name = 'www.demokrateam.org'
    BASE_URL = 'https://www.demokrateam.org'
    FETCH_URL = 'https://www.demokrateam.org/wp-admin/admin-ajax.php'
    FALLBACK_URL = 'https://www.demokrateam.org/aktionen/'
    REQUEST_DELAY = 1.5

    def _fetch_events(self, days_ahead: int) -> List[CandidateEvent]:
        now = self._now()
        max_date = now + relativedelta(days=days_ahead)
        events = []

        for offset in range(math.ceil(days_ahead / 30)):
            target_month = now + relativedelta(months=offset)
            logger.info(f"[{self.name}] Scraping month: {target_month:%Y-%m}")

            try:
                response = self._post_form(self.FETCH_URL, self._form_data(target_month))
                data = response.json()
            except (requests.RequestException, ValueError) as e:
                logger.warning(f"[{self.name}] Error on month {target_month:%Y-%m}: {e}")
                continue

            html_content = data.get('month') if isinstance(data, dict) else None
            if not html_content or not isinstance(html_content, str):
                continue

            events.extend(self._parse_month(html_content, target_month, max_date))

        return events

    @staticmethod
    def _form_data(target_month: datetime) -> dict:
        # The endpoint only answers when the calendar's atts[] configuration is echoed back
        return {
            'action': 'mec_daily_view_load_month',
            'mec_year': f"{target_month:%Y}",
            'mec_month': f"{target_month:%m}",
            'mec_day': str(target_month.day),
            'atts[skin]': 'daily_view',
            'atts[sk-options][list][limit]': '30',
            'atts[sk-options][daily_view][style]': 'classic',
            'atts[sk-options][daily_view][start_date_type]': 'today',
            'atts[sk-options][daily_view][limit]': '250',
            'atts[sk-options][daily_view][display_label]': '1',
            'atts[sk-options][daily_view][display_categories]': '1',
            'atts[sf-options][daily_view][label][type]': 'simple-checkboxes',
            'atts[sf_status]': '1',
            'atts[show_ongoing_events]': '1',
            'sf[label]': PROTEST_LABEL,
            'sf[month]': f"{target_month:%m}",
            'sf[year]': f"{target_month:%Y}",
            'apply_sf_date': '1',
        }

    def _parse_month(
        self,
        html_content: str,
        target_month: datetime,
        max_date: datetime
    ) -> List[CandidateEvent]:
        soup = BeautifulSoup(html_content, 'html.parser')
        events = []

        for article in soup.select('.mec-event-article'):
            if article.select_one('.mec-no-event') is not None:
                continue
            try:
                event = self._parse_article(article, target_month, max_date)
                if event:
                    events.append(event)
            except Exception as e:
                logger.warning(f"[{self.name}] Failed to parse event article: {e}")
                continue

        return events

    def _parse_article(
        self,
        article,
        target_month: datetime,
        max_date: datetime
    ) -> Optional[CandidateEvent]:
        """
        Parse one event article.

        The date comes from the JSON-LD script immediately following the
        article, combined with the first clock time shown in the article.
        Without usable JSON-LD the event is placed on the 15th of the
        requested month with no known time.

        Args:
            article: The .mec-event-article element
            target_month: Month that was requested
            max_date: Forward horizon

        Returns:
            CandidateEvent or None if it lies beyond the horizon
        """
        title_link = article.select_one('h4.mec-event-title a')
        title = title_link.get_text(strip=True) if title_link else ''
        title = title or 'Demo'
        url = (title_link.get('href') if title_link else None) or self.FALLBACK_URL

        time_element = article.select_one('.mec-event-time')
        time_text = ' '.join(time_element.get_text().split()) if time_element else ''

        start = None
        has_time = False
        start_date = self._json_ld_start_date(article)
        if start_date:
            date_text = start_date
            clock = CLOCK_PATTERN.search(time_text)
            if clock:
                date_text = f"{start_date} {int(clock.group(1)):02d}:{clock.group(2)}"
            parsed = parse_date(date_text, self.locale)
            if parsed:
                start = parsed.value
                has_time = parsed.has_time

        if start is None:
            start = datetime(
                target_month.year,
                target_month.month,
                15,
                tzinfo=tz.gettz(self.locale.timezone)
            )
            has_time = False

        if start > max_date:
            return None

        place = article.select_one('.mec-event-loc-place')
        location = place.get_text(strip=True) if place else ''
        location = location or None

        return CandidateEvent(
            source=self.source_name,
            city=self._city_from_location(location),
            country=self.locale.country_code,
            title=title,
            start=start,
            start_time_known=has_time,
            language=self.locale.language,
            location=location,
            url=url,
            attendees=parse_german_attendees(title, self.locale),
        )

    def _json_ld_start_date(self, article) -> Optional[str]:
        sibling = article.find_next_sibling()
        if sibling is None or sibling.name != 'script' or sibling.get('type') != 'application/ld+json':
            return None

        try:
            data = json.loads(sibling.string or '')
        except ValueError as e:
            logger.debug(f"[{self.name}] Invalid JSON-LD after article: {e}")
            return None

        start_date = data.get('startDate') if isinstance(data, dict) else None
        if not start_date or not isinstance(start_date, str):
            return None
        # "2025-10-25" or "2025-10-25T18:00:00+02:00"; the time comes from the article
        return start_date.split('T')[0]
