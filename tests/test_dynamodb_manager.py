"""Unit tests for DynamoDBManager."""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from botocore.exceptions import ClientError
from dateutil import tz

from storage.dynamodb_manager import from_dynamo, to_dynamo


class TestDynamoDBManager:
    """Test cases for DynamoDBManager class."""

    def test_insert_assigns_id_and_round_trips(self, store, make_persisted, future_start):
        event = make_persisted(
            end=future_start + timedelta(hours=2),
            attendees=1500,
            categories=['Demonstration'],
            geo_location={'type': 'Point', 'coordinates': [13.4132, 52.5219]},
        )

        stored = store.insert_event(event)

        assert stored.event_id
        loaded = store.get_event(stored.event_id)
        assert loaded == stored
        assert loaded.start == future_start
        assert loaded.start.tzinfo is not None
        assert loaded.attendees == 1500
        assert isinstance(loaded.attendees, int)
        assert loaded.coordinates == [13.4132, 52.5219]
        assert loaded.language is None

    def test_insert_stores_datetimes_as_utc_strings(self, store, dynamodb_table, make_persisted):
        start = datetime(2025, 7, 1, 14, 0, tzinfo=tz.gettz('Europe/Berlin'))
        stored = store.insert_event(make_persisted(start=start))

        item = dynamodb_table.get_item(Key={'event_id': stored.event_id})['Item']

        assert item['start'] == '2025-07-01T12:00:00+00:00'
        assert 'end' not in item

    def test_insert_existing_id_fails(self, store, make_persisted):
        store.insert_event(make_persisted(event_id='fixed-id'))

        with pytest.raises(ClientError):
            store.insert_event(make_persisted(event_id='fixed-id'))

    def test_get_missing_event(self, store):
        assert store.get_event('missing') is None

    def test_find_by_url(self, store, make_persisted, future_start):
        store.insert_event(make_persisted())
        store.insert_event(make_persisted(start=future_start + timedelta(days=7)))
        store.insert_event(make_persisted(url='https://example.com/other'))

        found = store.find_by_url('https://example.com/demo')

        assert len(found) == 2
        assert store.find_by_url('https://example.com/none') == []

    def test_find_by_url_and_start_compares_instants(self, store, make_persisted, future_start):
        stored = store.insert_event(make_persisted())
        berlin = future_start.astimezone(tz.gettz('Europe/Berlin'))

        assert store.find_by_url_and_start('https://example.com/demo', berlin).event_id == stored.event_id
        assert store.find_by_url_and_start(
            'https://example.com/demo', future_start + timedelta(minutes=1)
        ) is None

    def test_find_by_url_and_start_without_start(self, store, make_persisted):
        undated = store.insert_event(make_persisted(start=None))
        store.insert_event(make_persisted())

        assert store.find_by_url_and_start('https://example.com/demo', None).event_id == undated.event_id

    def test_find_by_url_and_start_prefers_oldest(self, store, make_persisted):
        store.insert_event(make_persisted(created_at=datetime(2025, 3, 1, tzinfo=timezone.utc)))
        oldest = store.insert_event(make_persisted(created_at=datetime(2025, 2, 1, tzinfo=timezone.utc)))

        match = store.find_by_url_and_start('https://example.com/demo', oldest.start)

        assert match.event_id == oldest.event_id

    def test_update_fields_sets_and_removes(self, store, make_persisted):
        stored = store.insert_event(make_persisted(attendees=100, location_details='Vor dem Rathaus'))

        store.update_fields(stored.event_id, {
            'title': 'Neue Demo',
            'attendees': 250,
            'location_details': None,
            'categories': ['Vigil'],
        })

        loaded = store.get_event(stored.event_id)
        assert loaded.title == 'Neue Demo'
        assert loaded.attendees == 250
        assert loaded.location_details is None
        assert loaded.categories == ['Vigil']
        assert loaded.created_at == stored.created_at

    def test_update_fields_rejects_unknown_and_immutable(self, store, make_persisted):
        stored = store.insert_event(make_persisted())

        with pytest.raises(ValueError):
            store.update_fields(stored.event_id, {'colour': 'red'})
        with pytest.raises(ValueError):
            store.update_fields(stored.event_id, {'created_at': datetime.now(timezone.utc)})
        with pytest.raises(ValueError):
            store.update_fields(stored.event_id, {'event_id': 'other'})

    def test_update_fields_missing_event_fails(self, store):
        with pytest.raises(ClientError):
            store.update_fields('missing', {'title': 'X'})

    def test_scan_events_ordered_by_created_at(self, store, make_persisted):
        late = store.insert_event(make_persisted(
            url='https://example.com/late', created_at=datetime(2025, 5, 1, tzinfo=timezone.utc)
        ))
        early = store.insert_event(make_persisted(
            url='https://example.com/early', created_at=datetime(2025, 4, 1, tzinfo=timezone.utc)
        ))

        events = store.scan_events()

        assert [event.event_id for event in events] == [early.event_id, late.event_id]

    def test_scan_events_without_created_at_sort_first(self, store, make_persisted):
        dated = store.insert_event(make_persisted(
            url='https://example.com/dated', created_at=datetime(2025, 4, 1, tzinfo=timezone.utc)
        ))
        legacy = store.insert_event(make_persisted(
            url='https://example.com/legacy', created_at=None, updated_at=None
        ))

        events = store.scan_events()

        assert [event.event_id for event in events] == [legacy.event_id, dated.event_id]
        assert events[0].created_at is None

    def test_scan_skips_unreadable_items(self, store, dynamodb_table, make_persisted):
        store.insert_event(make_persisted())
        dynamodb_table.put_item(Item={'event_id': 'broken', 'url': 'https://example.com/broken'})

        events = store.scan_events()

        assert len(events) == 1
        assert events[0].event_id != 'broken'

    def test_delete_event(self, store, make_persisted):
        stored = store.insert_event(make_persisted())

        store.delete_event(stored.event_id)

        assert store.get_event(stored.event_id) is None


def test_to_dynamo_converts_nested_values():
    start = datetime(2025, 7, 1, 12, 0, tzinfo=timezone.utc)

    converted = to_dynamo({'start': start, 'point': [13.5, 52.25], 'flag': True, 'count': 3})

    assert converted == {
        'start': '2025-07-01T12:00:00+00:00',
        'point': [Decimal('13.5'), Decimal('52.25')],
        'flag': True,
        'count': 3,
    }


def test_from_dynamo_restores_numbers():
    assert from_dynamo({'a': Decimal('3'), 'b': [Decimal('1.5')]}) == {'a': 3, 'b': [1.5]}
