"""Merge a batch of candidate events into the events table."""
import logging
from typing import List

from processor.models import (
    SCRAPED_FIELDS,
    CandidateEvent,
    PersistedEvent,
    SyncResult,
    geo_point,
    utc_now,
)
from storage.dynamodb_manager import DynamoDBManager

logger = logging.getLogger(__name__)


class EventReconciler:
    """
    Insert new events, refresh untouched ones, leave human-managed ones alone.

    Events are matched on the exact (url, start) pair. Records that were
    edited by a moderator, soft-deleted or created by hand are skipped.
    """

    def __init__(self, store: DynamoDBManager):
        self.store = store

    def sync_events(self, events: List[CandidateEvent]) -> SyncResult:
        """
        Synchronize candidate events with the store.

        Args:
            events: Deduplicated, geocoded candidates in adapter order

        Returns:
            SyncResult with inserted, updated, skipped and errored counts
        """
        logger.info(f"Starting sync process with {len(events)} events")
        result = SyncResult()

        for event in events:
            try:
                outcome = self._sync_event(event)
            except Exception as e:
                error_msg = f"Failed to sync event '{event.title}' ({event.url}): {e}"
                logger.error(error_msg, extra={'url': event.url, 'error_type': type(e).__name__})
                result.errored += 1
                result.errors.append(error_msg)
                continue

            if outcome == 'inserted':
                result.inserted += 1
            elif outcome == 'updated':
                result.updated += 1
            else:
                result.skipped += 1

        logger.info(
            f"Sync complete: {result.inserted} inserted, {result.updated} updated, "
            f"{result.skipped} skipped, {result.errored} errored",
            extra=result.to_dict()
        )
        return result

    def _sync_event(self, event: CandidateEvent) -> str:
        existing = self.store.find_by_url_and_start(event.url, event.start)
        now = utc_now()

        if existing is None:
            persisted = PersistedEvent(
                event_id='',
                created_at=now,
                updated_at=now,
                geo_location=geo_point(event.coordinates),
                verified=True,
                **{name: getattr(event, name) for name in SCRAPED_FIELDS}
            )
            self.store.insert_event(persisted)
            return 'inserted'

        if existing.is_ingestion_locked:
            logger.debug(
                f"Skipping {existing.state.value} event {existing.event_id}: {existing.title}"
            )
            return 'skipped'

        values = {name: getattr(event, name) for name in SCRAPED_FIELDS}
        # A failed lookup this run keeps the point resolved by an earlier run
        if event.coordinates:
            values['geo_location'] = geo_point(event.coordinates)
        values['verified'] = True
        values['updated_at'] = now
        self.store.update_fields(existing.event_id, values)
        return 'updated'
