"""Event processor for collapsing and filtering one run's candidate events."""
import logging
from datetime import datetime
from typing import List, Optional

from dateutil import tz

from processor.date_parser import within_next_days
from processor.models import CandidateEvent

logger = logging.getLogger(__name__)


class EventProcessor:
    """Processor for in-batch deduplication and horizon filtering."""

    def deduplicate(self, events: List[CandidateEvent]) -> List[CandidateEvent]:
        """
        Remove duplicate candidates from one run.

        Two candidates are duplicates when they share the same URL and the
        same start instant, both known. The first occurrence wins; fields are
        never merged. Candidates missing a URL or start are always kept.

        Args:
            events: Candidates in adapter order

        Returns:
            List of unique candidates in their original order
        """
        seen = set()
        unique_events = []

        for event in events:
            if event.url and event.start is not None:
                key = (event.url, event.start.astimezone(tz.UTC))
                if key in seen:
                    logger.debug(f"Dropping duplicate event '{event.title}' ({event.url})")
                    continue
                seen.add(key)
            unique_events.append(event)

        removed = len(events) - len(unique_events)
        if removed:
            logger.info(f"Removed {removed} duplicate events from batch")
        return unique_events

    def process_events(
        self,
        events: List[CandidateEvent],
        days_ahead: int,
        reference: Optional[datetime] = None
    ) -> List[CandidateEvent]:
        """
        Deduplicate a batch and keep only events inside the forward horizon.

        Args:
            events: Candidates from all adapters, in adapter order
            days_ahead: Forward horizon in days
            reference: Reference instant for the horizon (default: now)

        Returns:
            List of candidates ready for geocoding
        """
        processed_events = []

        for event in self.deduplicate(events):
            if not within_next_days(event.start, days_ahead, reference):
                logger.debug(f"Event '{event.title}' is outside the {days_ahead}-day horizon")
                continue
            processed_events.append(event)

        logger.info(
            f"Processed {len(processed_events)} events out of "
            f"{len(events)} total events"
        )
        return processed_events
