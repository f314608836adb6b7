"""Scraper for the Amnesty International Switzerland demo calendar."""
import logging
import re
from datetime import datetime
from typing import List, Optional

from bs4 import BeautifulSoup, Tag

from processor.attendee_parser import parse_german_attendees
from processor.date_parser import parse_date
from processor.models import CandidateEvent
from scraper.base_adapter import SourceAdapter

logger = logging.getLogger(__name__)

# "22. November | Bern"
HEADLINE_PATTERN = re.compile(r'(\d{1,2}\.\s*\w+)\s*\|\s*(.+)')
# "14:15 Uhr" or "14.15 Uhr"
TIME_PATTERN = re.compile(r'(\d{1,2}[:.]\d{2})\s*Uhr')
YEAR_PATTERN = re.compile(r'(\d{4})')

CONTENT_SELECTORS = ('#article-body', '.main-content', 'main', 'body')


class AmnestySwissAdapter(SourceAdapter):
    """
    Adapter for the Amnesty Switzerland protest calendar.

    The page lists events as <li> items grouped under <h5> month headings.
    Each item has two lines separated by <br>:

        22. November | Bern
        Kundgebung für das Gesundheitspersonal, Bundesplatz, 14:15 Uhr, Link

    The site sits behind Cloudflare rate limiting, hence the longer delay.
    """

    source_id = 'amnesty-swiss'
    name = 'Amnesty International Switzerland'
    country = 'CH'
    city = None
    source_name = 'www.amnesty.ch'
    BASE_URL = 'https://www.amnesty.ch'
    FETCH_URL = 'https://www.amnesty.ch/de/themen/recht-auf-protest/demo-kalender'
    REFERER = 'https://www.amnesty.ch/de/themen/recht-auf-protest'
    REQUEST_DELAY = 2.0
    ACCEPT_LANGUAGE = 'de-CH,de;q=0.9,en;q=0.8'

    def _fetch_events(self, days_ahead: int) -> List[CandidateEvent]:
        response = self._get(self.FETCH_URL, headers={'Referer': self.REFERER})
        return self.parse_html(response.text, days_ahead)

    def parse_html(self, html_content: str, days_ahead: int = 90) -> List[CandidateEvent]:
        """
        Parse events from calendar HTML.

        Usable on pre-fetched HTML, e.g. saved from a browser when the site
        blocks plain HTTP clients.

        Args:
            html_content: HTML of the calendar page
            days_ahead: Forward horizon in days

        Returns:
            List of CandidateEvent objects
        """
        soup = BeautifulSoup(html_content, 'html.parser')
        content = None
        for selector in CONTENT_SELECTORS:
            content = soup.select_one(selector)
            if content is not None:
                break
        if content is None:
            content = soup

        max_date = self._horizon(days_ahead)
        fallback_year = str(self._now().year)
        current_heading = ''
        events = []

        for element in content.find_all(['h5', 'li']):
            if element.name == 'h5':
                current_heading = element.get_text(strip=True)
                continue

            year_match = YEAR_PATTERN.search(current_heading)
            year = year_match.group(1) if year_match else fallback_year
            try:
                event = self._parse_item(element, year, max_date)
                if event:
                    events.append(event)
            except Exception as e:
                logger.warning(f"[{self.name}] Error parsing event: {e}")
                continue

        return events

    def _parse_item(self, item: Tag, year: str, max_date: datetime) -> Optional[CandidateEvent]:
        lines = self._split_lines(item)
        if len(lines) < 2:
            return None

        headline = HEADLINE_PATTERN.search(lines[0])
        if not headline:
            return None

        day_month = headline.group(1).strip()
        city = headline.group(2).strip()
        # "Verschiedene Städte" is not a single protest location
        if 'verschieden' in city.lower():
            return None

        details = lines[1]
        time_match = TIME_PATTERN.search(details)
        if time_match:
            time_text = time_match.group(1)
            parts = [part.strip() for part in details[:time_match.start()].split(',')]
            parts = [part for part in parts if part]
        else:
            time_text = None
            parts = [part.strip() for part in details.split(',')]
            parts = [part for part in parts if part and 'link' not in part.lower()]

        if not parts:
            return None
        if len(parts) == 1:
            title, location = parts[0], None
        else:
            title, location = ', '.join(parts[:-1]), parts[-1]

        link = item.find('a')
        url = self.FETCH_URL
        if link is not None and link.get('href'):
            href = link['href']
            url = href if href.startswith('http') else self.BASE_URL + href

        date_text = f"{day_month} {year}"
        if time_text:
            date_text = f"{date_text} {time_text}"

        start = parse_date(date_text, self.locale)
        if not start:
            logger.warning(f"[{self.name}] Failed to parse date: {date_text!r}")
            return None
        if start.value > max_date:
            return None

        return CandidateEvent(
            source=self.source_name,
            city=city,
            country=self.locale.country_code,
            title=title,
            start=start.value,
            start_time_known=start.has_time,
            language=self.locale.language,
            location=location or city,
            url=url,
            attendees=parse_german_attendees(item.get_text(' '), self.locale),
            categories=['Demonstration'],
        )

    @staticmethod
    def _split_lines(item: Tag) -> List[str]:
        """Text of a list item split on <br> tags, blank lines dropped."""
        lines = []
        current = []
        for node in item.children:
            if isinstance(node, Tag) and node.name == 'br':
                lines.append(''.join(current))
                current = []
            elif isinstance(node, Tag):
                current.append(node.get_text())
            else:
                current.append(str(node))
        lines.append(''.join(current))
        return [' '.join(line.split()) for line in lines if line.strip()]
