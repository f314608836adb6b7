"""Find and remove duplicate events that were stored across separate runs."""
import logging
from datetime import timedelta
from typing import Dict, List, Tuple

from processor.models import EARLIEST, CleanupResult, PersistedEvent, utc_now
from storage.dynamodb_manager import DynamoDBManager

logger = logging.getLogger(__name__)

# Bookkeeping attributes that a moderator edit can never carry over
NON_MERGEABLE_FIELDS = ('event_id', 'created_at', 'updated_at', 'edited_fields', 'manually_edited')


class DuplicateCleaner:
    """
    Merge duplicate events into the oldest copy and delete the rest.

    Two events are duplicates when url, title, city and source are equal
    and their starts are at most three days apart (or both missing).
    Moderator edits on a duplicate are copied onto the surviving event
    before the duplicate is deleted; when several copies edited the same
    field, the most recently updated copy wins.
    """

    START_WINDOW = timedelta(days=3)

    def __init__(self, store: DynamoDBManager):
        self.store = store

    def cleanup(self, dry_run: bool = False) -> CleanupResult:
        """
        Run one cleanup pass over the table.

        Args:
            dry_run: Only report what would be merged and deleted

        Returns:
            CleanupResult with checked, found, deleted and error counts
        """
        events = [
            event for event in self.store.scan_events()
            if not event.deleted and not event.fully_manual
        ]
        result = CleanupResult(total_checked=len(events), dry_run=dry_run)
        logger.info(f"Found {len(events)} events to check for duplicates")

        processed = set()
        for event in events:
            if event.event_id in processed:
                continue

            duplicates = [
                other for other in events
                if other.event_id != event.event_id
                and other.event_id not in processed
                and self._is_duplicate(event, other)
            ]
            if not duplicates:
                continue

            processed.add(event.event_id)
            processed.update(duplicate.event_id for duplicate in duplicates)
            result.duplicates_found += len(duplicates)

            logger.info(
                f"Found {len(duplicates)} duplicates of event {event.event_id}: {event.title}",
                extra={
                    'event_id': event.event_id,
                    'start': event.start.isoformat() if event.start else None,
                    'city': event.city,
                    'source': event.source,
                    'duplicate_ids': [duplicate.event_id for duplicate in duplicates],
                }
            )

            if dry_run:
                for duplicate in duplicates:
                    logger.info(f"[DRY RUN] Would delete duplicate {duplicate.event_id}")
                continue

            try:
                self._resolve_group(event, duplicates, result)
            except Exception as e:
                logger.error(
                    f"Failed to resolve duplicates of event {event.event_id}: {e}",
                    extra={'event_id': event.event_id, 'error_type': type(e).__name__},
                    exc_info=True
                )
                result.errors += 1

        logger.info(
            f"Cleanup complete: {result.total_checked} checked, "
            f"{result.duplicates_found} duplicates found, "
            f"{result.events_deleted} deleted, {result.errors} errors",
            extra=result.to_dict()
        )
        if dry_run:
            logger.info("DRY RUN - no changes made to the table")
        return result

    def _is_duplicate(self, event: PersistedEvent, other: PersistedEvent) -> bool:
        if (other.url, other.title, other.city, other.source) != (
            event.url, event.title, event.city, event.source
        ):
            return False
        if event.start is None:
            return other.start is None
        if other.start is None:
            return False
        return abs(other.start - event.start) <= self.START_WINDOW

    def _resolve_group(
        self,
        survivor: PersistedEvent,
        duplicates: List[PersistedEvent],
        result: CleanupResult
    ) -> None:
        merge_failed = False
        merged_values, merged_names = self.merge_edits(survivor, duplicates)

        if merged_values:
            values = dict(merged_values)
            values['edited_fields'] = merged_names
            values['manually_edited'] = True
            values['updated_at'] = utc_now()
            try:
                self.store.update_fields(survivor.event_id, values)
                logger.info(
                    f"Merged edited fields {sorted(merged_values)} into event {survivor.event_id}"
                )
            except Exception as e:
                logger.error(f"Failed to merge edits into event {survivor.event_id}: {e}")
                result.errors += 1
                merge_failed = True

        for duplicate in duplicates:
            # Never lose a moderator's edit because the merge did not land
            if merge_failed and duplicate.manually_edited and duplicate.edited_fields:
                logger.warning(f"Keeping edited duplicate {duplicate.event_id} after failed merge")
                continue
            try:
                self.store.delete_event(duplicate.event_id)
                result.events_deleted += 1
            except Exception as e:
                logger.error(f"Failed to delete duplicate {duplicate.event_id}: {e}")
                result.errors += 1

    def merge_edits(
        self,
        survivor: PersistedEvent,
        duplicates: List[PersistedEvent]
    ) -> Tuple[Dict[str, object], List[str]]:
        """
        Work out which edited values the survivor should take over.

        Every edited field is claimed by the copy with the latest
        updated_at, the survivor's own edits included. A copy without
        updated_at counts as last touched at created_at.

        Args:
            survivor: Oldest event of the group
            duplicates: The other events of the group

        Returns:
            Tuple of (field values to write onto the survivor, union of all
            edited field names in first-seen order)
        """
        names = list(survivor.edited_fields if survivor.manually_edited else [])
        claims = {name: (self._last_touched(survivor), None) for name in names}

        for duplicate in duplicates:
            if not (duplicate.manually_edited and duplicate.edited_fields):
                continue
            logger.info(
                f"Duplicate {duplicate.event_id} has manual edits: "
                f"{', '.join(duplicate.edited_fields)}"
            )
            for name in duplicate.edited_fields:
                if name not in names:
                    names.append(name)
                if name in NON_MERGEABLE_FIELDS or not hasattr(duplicate, name):
                    logger.warning(f"Ignoring unmergeable edited field '{name}' on {duplicate.event_id}")
                    continue
                touched_at = self._last_touched(duplicate)
                if name not in claims or touched_at > claims[name][0]:
                    claims[name] = (touched_at, duplicate)

        values = {
            name: getattr(source, name)
            for name, (_, source) in claims.items()
            if source is not None
        }
        return values, names

    @staticmethod
    def _last_touched(event: PersistedEvent):
        return event.updated_at or event.created_at or EARLIEST
