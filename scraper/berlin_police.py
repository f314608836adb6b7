"""Scraper for the Berlin Police public assembly registry."""
import logging
from datetime import datetime
from typing import List, Optional

from bs4 import BeautifulSoup

from processor.attendee_parser import parse_german_attendees
from processor.date_parser import parse_date
from processor.models import CandidateEvent
from scraper.base_adapter import SourceAdapter

logger = logging.getLogger(__name__)


class BerlinPoliceAdapter(SourceAdapter):
    """Adapter for the assembly table published by the Berlin Police."""

    source_id = 'berlin-police'
    name = 'Berlin Police'
    country = 'DE'
    city = 'Berlin'
    source_name = 'www.berlin.de'
    FETCH_URL = 'https://www.berlin.de/polizei/service/versammlungsbehoerde/versammlungen-aufzuege/'
    REQUEST_DELAY = 1.0

    def _fetch_events(self, days_ahead: int) -> List[CandidateEvent]:
        html_content = self._get(self.FETCH_URL).text
        return self._parse_events(html_content, days_ahead)

    def _parse_events(self, html_content: str, days_ahead: int) -> List[CandidateEvent]:
        """
        Parse events from the registry HTML.

        Table columns: Datum, Von, Bis, Thema, PLZ, Versammlungsort, Aufzugsstrecke

        Args:
            html_content: HTML of the registry page
            days_ahead: Forward horizon in days

        Returns:
            List of CandidateEvent objects
        """
        soup = BeautifulSoup(html_content, 'html.parser')
        max_date = self._horizon(days_ahead)
        events = []

        for row in soup.select('table#searchresults-table tbody tr'):
            try:
                event = self._parse_row(row, max_date)
                if event:
                    events.append(event)
            except Exception as e:
                logger.warning(f"[{self.name}] Failed to parse table row: {e}")
                continue

        return events

    def _parse_row(self, row, max_date: datetime) -> Optional[CandidateEvent]:
        cells = [td.get_text(strip=True) for td in row.find_all('td')]
        if len(cells) < 4:
            return None

        datum, von, bis, thema, plz, ort = (cells + [''] * 6)[:6]

        start = parse_date(f"{datum} {von}", self.locale)
        if not start:
            logger.warning(f"[{self.name}] Unparseable date: {datum!r} {von!r}")
            return None
        if start.value > max_date:
            return None

        end = parse_date(f"{datum} {bis}", self.locale) if bis else None

        place = f"{plz} Berlin" if plz else 'Berlin'
        location = ', '.join(part for part in (place, ort) if part)

        return CandidateEvent(
            source=self.source_name,
            city=self.city,
            country=self.locale.country_code,
            title=thema or 'Versammlung',
            start=start.value,
            start_time_known=start.has_time,
            end=end.value if end else None,
            end_time_known=end.has_time if end else False,
            language=self.locale.language,
            location=location,
            url=self.FETCH_URL,
            attendees=parse_german_attendees(thema, self.locale),
        )
