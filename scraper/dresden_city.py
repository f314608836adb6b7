"""Scraper for the Dresden City assembly overview JSON feed."""
import logging
import re
from datetime import datetime
from typing import List, Optional

from processor.attendee_parser import parse_german_attendees
from processor.date_parser import parse_date
from processor.models import CandidateEvent
from scraper.base_adapter import SourceAdapter

logger = logging.getLogger(__name__)


class DresdenCityAdapter(SourceAdapter):
    """Adapter for the public assembly feed of the City of Dresden."""

    source_id = 'dresden-city'
    name = 'Dresden City'
    country = 'DE'
    city = 'Dresden'
    source_name = 'www.dresden.de'
    FETCH_URL = 'https://www.dresden.de/data_ext/versammlungsuebersicht/Versammlungen.json'
    EVENT_URL = 'https://www.dresden.de/de/rathaus/dienstleistungen/versammlungsuebersicht.php'
    REQUEST_DELAY = 1.0

    def _fetch_events(self, days_ahead: int) -> List[CandidateEvent]:
        response = self._get(self.FETCH_URL, headers={'Accept': 'application/json'})
        return self._parse_events(response.json(), days_ahead)

    def _parse_events(self, data, days_ahead: int) -> List[CandidateEvent]:
        """
        Parse events from the decoded feed.

        Args:
            data: Decoded JSON document with a "Versammlungen" list
            days_ahead: Forward horizon in days

        Returns:
            List of CandidateEvent objects
        """
        records = data.get('Versammlungen') if isinstance(data, dict) else None
        if not isinstance(records, list):
            logger.warning(f"[{self.name}] No Versammlungen array found")
            return []

        logger.info(f"[{self.name}] Processing {len(records)} records")
        max_date = self._horizon(days_ahead)
        events = []

        for record in records:
            try:
                event = self._parse_record(record, max_date)
                if event:
                    events.append(event)
            except Exception as e:
                logger.warning(f"[{self.name}] Failed to parse record: {e}")
                continue

        return events

    def _parse_record(self, record: dict, max_date: datetime) -> Optional[CandidateEvent]:
        date_text = record.get('Datum') or ''
        # Zeit looks like "14:00 - 16:00"
        time_text = record.get('Zeit') or ''

        if time_text:
            start_text = f"{date_text} {time_text[0:5]}"
            end_text = f"{date_text} {time_text[8:13]}"
        else:
            start_text = date_text
            end_text = None

        start = parse_date(start_text, self.locale)
        if not start:
            logger.warning(f"[{self.name}] Failed to parse date: {start_text!r}")
            return None
        if start.value > max_date:
            return None

        end = parse_date(end_text, self.locale) if end_text else None

        title = record.get('Thema') or ''
        attendees = self._parse_count(record.get('Teilnehmer'))
        if attendees is None:
            attendees = parse_german_attendees(title, self.locale)

        place = record.get('Ort') or record.get('Startpunkt')
        location = f"Dresden, {place}" if place else 'Dresden'

        return CandidateEvent(
            source=self.source_name,
            city=self.city,
            country=self.locale.country_code,
            title=title or 'Versammlung',
            start=start.value,
            start_time_known=start.has_time,
            end=end.value if end else None,
            end_time_known=end.has_time if end else False,
            language=self.locale.language,
            location=location,
            url=self.EVENT_URL,
            attendees=attendees,
        )

    @staticmethod
    def _parse_count(value) -> Optional[int]:
        """Positive integer from the Teilnehmer field, tolerating trailing text."""
        if value is None:
            return None
        match = re.match(r'\s*(\d+)', str(value))
        if not match:
            return None
        count = int(match.group(1))
        return count if count > 0 else None
