"""DynamoDB manager for protest event storage operations."""
import logging
import uuid
from dataclasses import fields
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from processor.models import EARLIEST, PersistedEvent, from_iso, to_iso

logger = logging.getLogger(__name__)

DATETIME_FIELDS = ('start', 'end', 'created_at', 'updated_at')
PERSISTED_FIELDS = tuple(f.name for f in fields(PersistedEvent))


def to_dynamo(value: Any) -> Any:
    """Convert a Python value to something boto3 can store."""
    if isinstance(value, datetime):
        return to_iso(value)
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {key: to_dynamo(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_dynamo(item) for item in value]
    return value


def from_dynamo(value: Any) -> Any:
    """Convert boto3 Decimals back to int or float, recursively."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {key: from_dynamo(item) for key, item in value.items()}
    if isinstance(value, list):
        return [from_dynamo(item) for item in value]
    return value


class DynamoDBManager:
    """
    Manager for the events table.

    Table layout: hash key "event_id" (UUID string) and a global secondary
    index "url-index" with hash key "url". Datetimes are stored as UTC
    ISO-8601 strings so equal instants compare equal as strings.
    """

    URL_INDEX = 'url-index'

    def __init__(self, table_name: str, region_name: Optional[str] = None):
        """
        Initialize DynamoDB resource and table reference.

        Args:
            table_name: Name of the DynamoDB table
            region_name: AWS region (default: from the environment)
        """
        self.table_name = table_name
        self.dynamodb = boto3.resource('dynamodb', region_name=region_name)
        self.table = self.dynamodb.Table(table_name)
        logger.info(f"Initialized DynamoDBManager for table: {table_name}")

    def find_by_url(self, url: str) -> List[PersistedEvent]:
        """
        Get all events stored for a URL.

        Args:
            url: External event URL

        Returns:
            List of PersistedEvent objects (any state)
        """
        kwargs = {
            'IndexName': self.URL_INDEX,
            'KeyConditionExpression': Key('url').eq(url),
        }
        response = self.table.query(**kwargs)
        items = response.get('Items', [])

        while 'LastEvaluatedKey' in response:
            response = self.table.query(
                ExclusiveStartKey=response['LastEvaluatedKey'],
                **kwargs
            )
            items.extend(response.get('Items', []))

        return [event for event in map(self._item_to_event, items) if event]

    def find_by_url_and_start(
        self,
        url: str,
        start: Optional[datetime]
    ) -> Optional[PersistedEvent]:
        """
        Exact lookup on (url, start instant).

        Args:
            url: External event URL
            start: Start instant; None matches records without a start

        Returns:
            Matching PersistedEvent (oldest if several) or None
        """
        start_iso = to_iso(start)
        matches = [
            event for event in self.find_by_url(url)
            if to_iso(event.start) == start_iso
        ]
        if not matches:
            return None
        matches.sort(key=lambda event: event.created_at or EARLIEST)
        return matches[0]

    def get_event(self, event_id: str) -> Optional[PersistedEvent]:
        response = self.table.get_item(Key={'event_id': event_id})
        item = response.get('Item')
        return self._item_to_event(item) if item else None

    def insert_event(self, event: PersistedEvent) -> PersistedEvent:
        """
        Insert a new event, assigning an event_id if it has none.

        Args:
            event: Event to store

        Returns:
            The stored event

        Raises:
            ClientError: If the write fails or the event_id already exists
        """
        if not event.event_id:
            event.event_id = str(uuid.uuid4())

        item = self._event_to_item(event)
        self.table.put_item(
            Item=item,
            ConditionExpression=Attr('event_id').not_exists()
        )
        logger.debug(f"Inserted event {event.event_id}: {event.title}")
        return event

    def update_fields(self, event_id: str, values: Dict[str, Any]) -> None:
        """
        Set or remove individual attributes of an existing event.

        None values remove the attribute. event_id and created_at can never
        be changed through this method.

        Args:
            event_id: Key of the event to update
            values: Mapping of attribute name to new value

        Raises:
            ValueError: For unknown or immutable attribute names
            ClientError: If the event does not exist or the write fails
        """
        unknown = [name for name in values if name not in PERSISTED_FIELDS]
        if unknown:
            raise ValueError(f"Unknown event attribute(s): {', '.join(unknown)}")
        if 'event_id' in values or 'created_at' in values:
            raise ValueError("event_id and created_at are immutable")
        if not values:
            return

        names = {}
        expression_values = {}
        set_parts = []
        remove_parts = []

        # Many attribute names (url, start, end, location, ...) are reserved words
        for index, (name, value) in enumerate(values.items()):
            placeholder = f"#f{index}"
            names[placeholder] = name
            if value is None:
                remove_parts.append(placeholder)
            else:
                expression_values[f":v{index}"] = to_dynamo(value)
                set_parts.append(f"{placeholder} = :v{index}")

        expression = []
        if set_parts:
            expression.append('SET ' + ', '.join(set_parts))
        if remove_parts:
            expression.append('REMOVE ' + ', '.join(remove_parts))

        kwargs = {
            'Key': {'event_id': event_id},
            'UpdateExpression': ' '.join(expression),
            'ExpressionAttributeNames': names,
            'ConditionExpression': Attr('event_id').exists(),
        }
        if expression_values:
            kwargs['ExpressionAttributeValues'] = expression_values

        self.table.update_item(**kwargs)

    def scan_events(self) -> List[PersistedEvent]:
        """
        Retrieve all events using Scan operation.

        Returns:
            List of PersistedEvent objects ordered by created_at ascending
        """
        logger.info("Scanning DynamoDB table for all events")

        try:
            response = self.table.scan()
            items = response.get('Items', [])

            while 'LastEvaluatedKey' in response:
                response = self.table.scan(
                    ExclusiveStartKey=response['LastEvaluatedKey']
                )
                items.extend(response.get('Items', []))

        except ClientError as e:
            logger.error(f"Error scanning DynamoDB table: {e}")
            raise

        events = [event for event in map(self._item_to_event, items) if event]
        events.sort(key=lambda event: (event.created_at or EARLIEST, event.event_id))
        logger.info(f"Retrieved {len(events)} events from DynamoDB")
        return events

    def delete_event(self, event_id: str) -> None:
        """Permanently delete an event."""
        self.table.delete_item(Key={'event_id': event_id})
        logger.debug(f"Deleted event {event_id}")

    def _item_to_event(self, item: dict) -> Optional[PersistedEvent]:
        """
        Convert DynamoDB item to PersistedEvent object.

        Args:
            item: DynamoDB item dictionary

        Returns:
            PersistedEvent object or None if conversion fails
        """
        try:
            data = {
                name: from_dynamo(value)
                for name, value in item.items()
                if name in PERSISTED_FIELDS
            }
            for name in DATETIME_FIELDS:
                data[name] = from_iso(data.get(name))
            data.setdefault('city', None)
            data.setdefault('country', None)
            return PersistedEvent(**data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Failed to convert item {item.get('event_id')} to PersistedEvent: {e}")
            return None

    def _event_to_item(self, event: PersistedEvent) -> dict:
        """
        Convert PersistedEvent object to DynamoDB item.

        None values are left out of the item.

        Args:
            event: PersistedEvent object

        Returns:
            DynamoDB item dictionary
        """
        item = {}
        for name in PERSISTED_FIELDS:
            value = getattr(event, name)
            if value is not None:
                item[name] = to_dynamo(value)
        return item
