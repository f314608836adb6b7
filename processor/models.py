"""Data models for protest event ingestion."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

# Fields an ingestion run owns; everything else is store bookkeeping
SCRAPED_FIELDS = (
    'source',
    'city',
    'country',
    'title',
    'start',
    'start_time_known',
    'end',
    'end_time_known',
    'language',
    'location',
    'location_details',
    'url',
    'attendees',
    'categories',
)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime without microseconds."""
    return datetime.now(timezone.utc).replace(microsecond=0)


# Sorts records that lack a timestamp before all others
EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """Serialize an aware datetime as a UTC ISO-8601 string."""
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat(timespec='seconds')


def from_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored ISO-8601 string back into an aware datetime."""
    if not value:
        return None
    if value.endswith('Z'):
        value = value[:-1] + '+00:00'
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class CandidateEvent:
    """Event scraped from a source, not yet reconciled with the store."""
    source: str
    city: Optional[str]
    country: Optional[str]
    title: str
    start: Optional[datetime]
    url: str
    start_time_known: bool = False
    end: Optional[datetime] = None
    end_time_known: bool = False
    language: Optional[str] = None
    location: Optional[str] = None
    location_details: Optional[str] = None
    attendees: Optional[int] = None
    categories: List[str] = field(default_factory=list)
    coordinates: Optional[List[float]] = None  # [longitude, latitude]


class EventState(Enum):
    """Lifecycle state of a persisted event as seen by the pipeline."""
    ACTIVE = 'active'
    EDITED = 'edited'
    DELETED = 'deleted'
    FULLY_MANUAL = 'fully_manual'


@dataclass
class PersistedEvent:
    """Event stored in the events table."""
    event_id: str
    source: str
    city: Optional[str]
    country: Optional[str]
    title: str
    start: Optional[datetime]
    url: str
    created_at: datetime
    updated_at: datetime
    start_time_known: bool = False
    end: Optional[datetime] = None
    end_time_known: bool = False
    language: Optional[str] = None
    location: Optional[str] = None
    location_details: Optional[str] = None
    attendees: Optional[int] = None
    categories: List[str] = field(default_factory=list)
    geo_location: Optional[dict] = None
    verified: bool = False
    created_by: Optional[str] = None
    manually_edited: bool = False
    edited_fields: List[str] = field(default_factory=list)
    deleted: bool = False
    fully_manual: bool = False

    @property
    def state(self) -> EventState:
        if self.deleted:
            return EventState.DELETED
        if self.fully_manual:
            return EventState.FULLY_MANUAL
        if self.manually_edited:
            return EventState.EDITED
        return EventState.ACTIVE

    @property
    def is_ingestion_locked(self) -> bool:
        """True when ingestion must not touch this record."""
        return self.state is not EventState.ACTIVE

    @property
    def coordinates(self) -> Optional[List[float]]:
        if not self.geo_location:
            return None
        return self.geo_location.get('coordinates')


def geo_point(coordinates: Optional[List[float]]) -> Optional[dict]:
    """
    Build a GeoJSON point from [longitude, latitude].

    Args:
        coordinates: [longitude, latitude] pair or None

    Returns:
        GeoJSON point dict or None
    """
    if not coordinates:
        return None
    longitude, latitude = coordinates
    return {'type': 'Point', 'coordinates': [longitude, latitude]}


@dataclass
class GeocodeResult:
    """Coordinates and addresses for a geocoded location."""
    latitude: float
    longitude: float
    normalized_address: Optional[str]
    formatted_address: Optional[str]

    @property
    def coordinates(self) -> List[float]:
        return [self.longitude, self.latitude]


@dataclass
class SyncResult:
    """Result of reconciling a batch with the store."""
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    errored: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'inserted': self.inserted,
            'updated': self.updated,
            'skipped': self.skipped,
            'errored': self.errored,
            'errors': list(self.errors),
        }


@dataclass
class CleanupResult:
    """Result of a duplicate cleanup pass."""
    total_checked: int = 0
    duplicates_found: int = 0
    events_deleted: int = 0
    errors: int = 0
    dry_run: bool = False

    def to_dict(self) -> dict:
        return {
            'totalChecked': self.total_checked,
            'duplicatesFound': self.duplicates_found,
            'eventsDeleted': self.events_deleted,
            'errors': self.errors,
            'dryRun': self.dry_run,
        }
