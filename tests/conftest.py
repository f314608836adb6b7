"""Shared fixtures for the test suite."""
from datetime import datetime, timedelta, timezone

import boto3
import pytest
from moto import mock_aws

from processor.models import CandidateEvent, PersistedEvent
from storage.dynamodb_manager import DynamoDBManager

TABLE_NAME = 'test-protest-events'


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Fake AWS credentials so boto3 never talks to a real account."""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_SECURITY_TOKEN', 'testing')
    monkeypatch.setenv('AWS_SESSION_TOKEN', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')


@pytest.fixture
def dynamodb_table():
    """Create a mock events table with the url-index GSI."""
    with mock_aws():
        dynamodb = boto3.resource('dynamodb', region_name='us-east-1')

        table = dynamodb.create_table(
            TableName=TABLE_NAME,
            KeySchema=[
                {'AttributeName': 'event_id', 'KeyType': 'HASH'}
            ],
            AttributeDefinitions=[
                {'AttributeName': 'event_id', 'AttributeType': 'S'},
                {'AttributeName': 'url', 'AttributeType': 'S'}
            ],
            GlobalSecondaryIndexes=[
                {
                    'IndexName': 'url-index',
                    'KeySchema': [
                        {'AttributeName': 'url', 'KeyType': 'HASH'}
                    ],
                    'Projection': {'ProjectionType': 'ALL'}
                }
            ],
            BillingMode='PAY_PER_REQUEST'
        )

        yield table


@pytest.fixture
def store(dynamodb_table):
    """DynamoDBManager bound to the mock table."""
    return DynamoDBManager(TABLE_NAME, region_name='us-east-1')


@pytest.fixture
def future_start():
    """A start instant safely inside any horizon used by the tests."""
    start = datetime.now(timezone.utc) + timedelta(days=5)
    return start.replace(hour=14, minute=0, second=0, microsecond=0)


@pytest.fixture
def make_candidate(future_start):
    """Factory for CandidateEvent objects with sensible defaults."""
    def _make(**overrides):
        values = {
            'source': 'www.berlin.de',
            'city': 'Berlin',
            'country': 'DE',
            'title': 'Demo',
            'start': future_start,
            'url': 'https://example.com/demo',
            'start_time_known': True,
            'language': 'de-DE',
            'location': 'Alexanderplatz',
        }
        values.update(overrides)
        return CandidateEvent(**values)
    return _make


@pytest.fixture
def make_persisted(future_start):
    """Factory for PersistedEvent objects with sensible defaults."""
    def _make(**overrides):
        created = datetime(2025, 1, 1, tzinfo=timezone.utc)
        values = {
            'event_id': '',
            'source': 'www.berlin.de',
            'city': 'Berlin',
            'country': 'DE',
            'title': 'Demo',
            'start': future_start,
            'url': 'https://example.com/demo',
            'created_at': created,
            'updated_at': created,
            'start_time_known': True,
            'location': 'Alexanderplatz',
            'verified': True,
        }
        values.update(overrides)
        return PersistedEvent(**values)
    return _make
