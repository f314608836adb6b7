"""Scraper for the Friedenskooperative peace movement calendar."""
import logging
import re
from datetime import datetime
from typing import List, Optional

import requests
from bs4 import BeautifulSoup

from processor.attendee_parser import parse_german_attendees
from processor.date_parser import parse_date
from processor.models import CandidateEvent
from scraper.base_adapter import SourceAdapter

logger = logging.getLogger(__name__)

# veranstaltungsart filter value -> category name
CATEGORIES = {
    '34': 'Demonstration',
    '35': 'Vigil',
    '53': 'Government Event',
    '54': 'Counter-Demonstration',
    '55': 'Blockade',
}

MAX_PAGES = 20
YEAR_PATTERN = re.compile(r'(\d{4})')


class FriedenskooperativeAdapter(SourceAdapter):
    """
    Adapter for https://www.friedenskooperative.de/termine.

    The listing is loaded through the site's Drupal views AJAX endpoint, one
    category at a time, page by page until a page comes back empty.
    """

    source_id = 'friedenskooperative'
    name = 'Friedenskooperative'
    country = 'DE'
    city = None
    source_name = 'www.friedenskooperative.de'
    BASE_URL = 'https://www.friedenskooperative.de'
    FETCH_URL = 'https://www.friedenskooperative.de/views/ajax'
    REQUEST_DELAY = 1.5

    def _fetch_events(self, days_ahead: int) -> List[CandidateEvent]:
        events = []
        for category_id, category_name in CATEGORIES.items():
            logger.info(f"[{self.name}] Scraping category {category_id}: {category_name}")
            events.extend(self._fetch_category(category_id, category_name, days_ahead))
        return events

    def _fetch_category(
        self,
        category_id: str,
        category_name: str,
        days_ahead: int
    ) -> List[CandidateEvent]:
        events = []

        for page in range(MAX_PAGES):
            try:
                response = self._post_form(self.FETCH_URL, self._form_data(category_id, page))
                commands = response.json()
            except (requests.RequestException, ValueError) as e:
                logger.warning(
                    f"[{self.name}] Error on category {category_id}, page {page}: {e}"
                )
                break

            html_content = self._extract_insert_html(commands)
            if not html_content:
                break

            page_events, row_count = self._parse_page(html_content, category_name, days_ahead)
            events.extend(page_events)
            if row_count == 0:
                break

        return events

    @staticmethod
    def _form_data(category_id: str, page: int) -> dict:
        # Most parameters are boilerplate the site expects on every call
        return {
            'page': str(page),
            'view_name': 'termine',
            'view_display_id': 'page',
            'view_args': '',
            'view_path': 'node/33',
            'view_base_path': 'termine',
            'view_dom_id': 'c591d6225e0201870f07992dce6c489c',
            'pager_element': '0',
            'field_date_event_rrule': '1',
            'bundesland': 'All',
            'veranstaltungsart': category_id,
            'thema': 'All',
        }

    @staticmethod
    def _extract_insert_html(commands) -> Optional[str]:
        """Return the HTML of the first "insert" command in an AJAX response."""
        if not isinstance(commands, list):
            return None
        for command in commands:
            if isinstance(command, dict) and command.get('command') == 'insert' and command.get('data'):
                return command['data']
        return None

    def _parse_page(
        self,
        html_content: str,
        category_name: str,
        days_ahead: int
    ):
        """
        Parse one listing page.

        Events are grouped under month headings ("Oktober 2025"); each
        heading is followed by boxes holding one row per event.

        Args:
            html_content: HTML fragment from the AJAX insert command
            category_name: Category assigned to every event on the page
            days_ahead: Forward horizon in days

        Returns:
            Tuple of (events within the horizon, number of event rows seen)
        """
        soup = BeautifulSoup(html_content, 'html.parser')
        containers = soup.select('.view-content')
        if not containers:
            return [], 0

        max_date = self._horizon(days_ahead)
        fallback_year = str(self._now().year)
        current_heading = ''
        row_count = 0
        events = []

        for element in containers[-1].find_all(recursive=False):
            if element.name == 'h3':
                current_heading = element.get_text(strip=True)
                continue
            if 'box' not in (element.get('class') or []):
                continue

            year_match = YEAR_PATTERN.search(current_heading)
            year = year_match.group(1) if year_match else fallback_year

            for row in element.select('.row.row-eq-height'):
                row_count += 1
                try:
                    event = self._parse_row(row, year, category_name, max_date)
                    if event:
                        events.append(event)
                except Exception as e:
                    logger.warning(f"[{self.name}] Failed to parse event row: {e}")
                    continue

        return events, row_count

    def _parse_row(
        self,
        row,
        year: str,
        category_name: str,
        max_date: datetime
    ) -> Optional[CandidateEvent]:
        title_link = row.select_one('h2.node-title a')
        title = title_link.get_text(strip=True) if title_link else ''
        href = title_link.get('href', '') if title_link else ''
        url = href if href.startswith('http') else self.BASE_URL + href

        date_element = row.select_one('.date-column .date')
        if date_element is None:
            return None

        single = date_element.select_one('.date-display-single')
        # "18. Okt", optionally followed by a time range in sibling elements
        day_text = single.get_text(strip=True) if single else ''
        start_text = day_text
        end_text = None

        date_range = date_element.select_one('.date-display-range')
        if date_range is not None:
            start_time = date_range.select_one('.date-display-start')
            end_time = date_range.select_one('.date-display-end')
            start_time = start_time.get_text(strip=True) if start_time else ''
            end_time = end_time.get_text(strip=True) if end_time else ''
            if start_time:
                start_text = f"{day_text} {start_time}"
            if end_time:
                end_text = f"{day_text} {end_time}"

        start = parse_date(f"{start_text} {year}", self.locale)
        if not start:
            logger.warning(f"[{self.name}] Unparseable date: {start_text!r} {year}")
            return None
        if start.value > max_date:
            return None

        end = parse_date(f"{end_text} {year}", self.locale) if end_text else None

        city_element = row.select_one('.date-column .city')
        city = city_element.get_text(strip=True) if city_element else ''
        city = city or None

        place = row.select_one('.place.line.info span')
        location = place.get_text(strip=True) if place else ''
        location = location or None
        if location and not city:
            city = self._city_from_location(location)

        return CandidateEvent(
            source=self.source_name,
            city=city,
            country=self.locale.country_code,
            title=title or 'Friedensaktion',
            start=start.value,
            start_time_known=start.has_time,
            end=end.value if end else None,
            end_time_known=end.has_time if end else False,
            language=self.locale.language,
            location=location or city,
            url=url,
            attendees=parse_german_attendees(row.get_text(' '), self.locale),
            categories=[category_name],
        )
