"""Integration tests for Lambda handler."""
import json
import logging
import os
import sys
from unittest.mock import Mock, patch

import boto3
import pytest
import responses
from moto import mock_aws

from lambda_function import (
    JsonFormatter,
    build_calendar_store,
    lambda_handler,
    setup_logging,
    sync_events_to_calendar,
)
from processor.models import SyncResult
from sync.config import SyncConfig, load_config
from sync.runner import SyncOutcome, SyncStatus

FEED_URL = 'https://api.example.com/events'
TABLE_NAME = 'test-calendar-events'


@pytest.fixture
def mock_env():
    """Set up environment variables for testing."""
    env_vars = {
        'API_ENDPOINT': FEED_URL,
        'CALENDAR_ID': '',
        'CALENDAR_BACKEND': 'dynamodb',
        'TABLE_NAME': TABLE_NAME,
        'LOG_LEVEL': 'INFO',
        'TIMEZONE': 'UTC',
        'AWS_DEFAULT_REGION': 'us-east-1',
        'AWS_ACCESS_KEY_ID': 'testing',
        'AWS_SECRET_ACCESS_KEY': 'testing'
    }
    with patch.dict(os.environ, env_vars):
        yield env_vars


@pytest.fixture
def mock_context():
    """Create a mock Lambda context."""
    context = Mock()
    context.function_name = 'test-function'
    context.memory_limit_in_mb = 512
    context.invoked_function_arn = 'arn:aws:lambda:us-east-1:123456789012:function:test-function'
    context.aws_request_id = 'test-request-id'
    return context


@pytest.fixture
def restore_root_logger():
    """Put the root logger back the way the test found it."""
    root_logger = logging.getLogger()
    handlers = root_logger.handlers[:]
    level = root_logger.level
    yield
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)


@pytest.fixture
def calendar_table(mock_env):
    """Create the calendar table in a mocked AWS account."""
    with mock_aws():
        dynamodb = boto3.resource('dynamodb', region_name='us-east-1')
        table = dynamodb.create_table(
            TableName=TABLE_NAME,
            KeySchema=[
                {'AttributeName': 'calendar_id', 'KeyType': 'HASH'},
                {'AttributeName': 'event_id', 'KeyType': 'RANGE'}
            ],
            AttributeDefinitions=[
                {'AttributeName': 'calendar_id', 'AttributeType': 'S'},
                {'AttributeName': 'event_id', 'AttributeType': 'S'}
            ],
            BillingMode='PAY_PER_REQUEST'
        )
        yield table


def completed_outcome(added=0, updated=0, deleted=0, errors=None):
    result = SyncResult(added=added, updated=updated, deleted=deleted, errors=errors or [])
    return SyncOutcome(
        status=SyncStatus.COMPLETED,
        message=(
            f"Sync completed successfully. Added: {added}, "
            f"Updated: {updated}, Deleted: {deleted}"
        ),
        result=result
    )


class TestLambdaHandler:
    """Test cases for Lambda handler."""

    @patch('lambda_function.setup_logging')
    @patch('lambda_function.run_sync')
    def test_successful_sync(self, mock_run_sync, mock_setup_logging, mock_env, mock_context):
        """Test a completed run is reported with its statistics."""
        mock_run_sync.return_value = completed_outcome(added=2, updated=1, deleted=3)

        response = lambda_handler({}, mock_context)

        assert response['statusCode'] == 200
        body = json.loads(response['body'])
        assert body['message'] == 'Sync completed successfully. Added: 2, Updated: 1, Deleted: 3'
        assert body['status'] == 'completed'
        assert body['statistics'] == {
            'events_added': 2,
            'events_updated': 1,
            'events_deleted': 3
        }
        assert body['errors'] == []

        config = mock_run_sync.call_args.args[0]
        assert config.api_endpoint == FEED_URL
        assert mock_run_sync.call_args.args[2] is build_calendar_store
        mock_setup_logging.assert_called_once_with('INFO')

    @patch('lambda_function.run_sync')
    @patch('lambda_function.load_config', wraps=load_config)
    @patch('lambda_function.setup_logging')
    def test_logging_configured_before_config(
        self, mock_setup_logging, mock_load_config, mock_run_sync, mock_env, mock_context
    ):
        """Test config fallback warnings are logged after logging is set up."""
        mock_run_sync.return_value = completed_outcome()
        calls = Mock()
        calls.attach_mock(mock_setup_logging, 'setup_logging')
        calls.attach_mock(mock_load_config, 'load_config')

        with patch.dict(os.environ, {'LOG_LEVEL': 'DEBUG', 'EVENT_DURATION_MINUTES': 'ninety'}):
            lambda_handler({}, mock_context)

        assert [c[0] for c in calls.mock_calls][:2] == ['setup_logging', 'load_config']
        mock_setup_logging.assert_called_once_with('DEBUG')
        assert mock_run_sync.call_args.args[0].event_duration_minutes == 90

    @patch('lambda_function.setup_logging')
    @patch('lambda_function.run_sync')
    def test_not_configured(self, mock_run_sync, mock_setup_logging, mock_context):
        """Test an early exit is reported without statistics."""
        mock_run_sync.return_value = SyncOutcome(
            status=SyncStatus.NOT_CONFIGURED,
            message='API endpoint not configured. Please set API_ENDPOINT.'
        )

        response = lambda_handler({}, mock_context)

        assert response['statusCode'] == 200
        body = json.loads(response['body'])
        assert body['status'] == 'not_configured'
        assert 'statistics' not in body

    @patch('lambda_function.setup_logging')
    @patch('lambda_function.run_sync')
    def test_unexpected_failure_is_contained(
        self, mock_run_sync, mock_setup_logging, mock_env, mock_context
    ):
        """Test an exception inside the run is logged, not raised."""
        mock_run_sync.side_effect = RuntimeError('calendar unavailable')

        response = lambda_handler({}, mock_context)

        assert response['statusCode'] == 500
        assert json.loads(response['body'])['message'] == 'Sync failed'

    @patch('lambda_function.setup_logging')
    @patch('lambda_function.run_sync')
    def test_logging_output(
        self, mock_run_sync, mock_setup_logging, mock_env, mock_context, caplog
    ):
        """Test the end-of-run log line carries the counts."""
        mock_run_sync.return_value = completed_outcome(added=1, deleted=1)

        with caplog.at_level(logging.INFO, logger='lambda_function'):
            lambda_handler({}, mock_context)

        log_messages = [record.message for record in caplog.records]
        assert any('Sync started' in msg for msg in log_messages)
        assert any(
            'Sync completed successfully. Added: 1, Updated: 0, Deleted: 1' in msg
            for msg in log_messages
        )
        summary = [record for record in caplog.records if record.message.startswith('Sync completed')][0]
        assert summary.events_added == 1
        assert summary.events_deleted == 1

    @patch('lambda_function.setup_logging')
    @patch('lambda_function.run_sync')
    def test_failure_logged_with_error_type(
        self, mock_run_sync, mock_setup_logging, mock_env, mock_context, caplog
    ):
        """Test failures are logged with the exception type."""
        mock_run_sync.side_effect = ValueError('Unknown CALENDAR_BACKEND: caldav')

        with caplog.at_level(logging.ERROR, logger='lambda_function'):
            sync_events_to_calendar()

        error_records = [record for record in caplog.records if record.levelno == logging.ERROR]
        assert len(error_records) == 1
        assert 'Unknown CALENDAR_BACKEND' in error_records[0].message
        assert error_records[0].error_type == 'ValueError'
        assert error_records[0].exc_info is not None

    @patch('lambda_function.setup_logging')
    def test_end_to_end_dynamodb_sync(
        self, mock_setup_logging, calendar_table, mock_context
    ):
        """Test a full run against a mocked feed and DynamoDB calendar."""
        calendar_table.put_item(Item={
            'calendar_id': 'primary',
            'event_id': 'old-park-c',
            'title': 'Park C',
            'description': '',
            'location': '',
            'start_time': '2024-06-01T10:00:00Z',
            'end_time': '2024-06-01T11:30:00Z'
        })
        calendar_table.put_item(Item={
            'calendar_id': 'primary',
            'event_id': 'old-park-a',
            'title': 'Park A',
            'description': '',
            'location': '',
            'start_time': '2024-06-01T18:00:00Z',
            'end_time': '2024-06-01T19:30:00Z'
        })
        with responses.RequestsMock() as rsps:
            rsps.add(
                responses.GET,
                FEED_URL,
                json={'events': [
                    {'location': 'Park A', 'date': '2024-06-01T18:00:00Z'},
                    {'location': 'Park B', 'date': '2024-06-02T18:00:00Z', 'sponsor': 'Lions'}
                ]},
                status=200
            )

            first = json.loads(lambda_handler({}, mock_context)['body'])
            second = json.loads(lambda_handler({}, mock_context)['body'])

        assert first['statistics'] == {
            'events_added': 1,
            'events_updated': 0,
            'events_deleted': 1
        }
        assert second['statistics'] == {
            'events_added': 0,
            'events_updated': 0,
            'events_deleted': 0
        }

        items = calendar_table.scan()['Items']
        titles = sorted(item['title'] for item in items)
        assert titles == ['Park A', 'Park B']
        park_b = [item for item in items if item['title'] == 'Park B'][0]
        assert park_b['description'] == 'Sponsor: Lions\n'
        assert park_b['start_time'] == '2024-06-02T18:00:00Z'
        assert park_b['end_time'] == '2024-06-02T19:30:00Z'

    @patch('lambda_function.setup_logging')
    def test_end_to_end_feed_failure(self, mock_setup_logging, calendar_table, mock_context):
        """Test a failing feed leaves the calendar untouched."""
        calendar_table.put_item(Item={
            'calendar_id': 'primary',
            'event_id': 'keep-me',
            'title': 'Park A',
            'description': '',
            'location': '',
            'start_time': '2024-06-01T18:00:00Z',
            'end_time': '2024-06-01T19:30:00Z'
        })
        with responses.RequestsMock() as rsps, patch('feed.events_api.time.sleep'):
            for _ in range(3):
                rsps.add(responses.GET, FEED_URL, body='Bad Gateway', status=502)

            response = lambda_handler({}, mock_context)

        body = json.loads(response['body'])
        assert response['statusCode'] == 200
        assert body['status'] == 'no_events'
        assert len(calendar_table.scan()['Items']) == 1


class TestBuildCalendarStore:
    """Test cases for calendar backend selection."""

    @patch('lambda_function.DynamoDBCalendarStore')
    def test_dynamodb_backend(self, mock_store_class):
        """Test the DynamoDB backend uses the table and calendar id."""
        config = SyncConfig(api_endpoint=FEED_URL, calendar_id='club', table_name='events-table')

        store = build_calendar_store(config)

        mock_store_class.assert_called_once_with(table_name='events-table', calendar_id='club')
        assert store is mock_store_class.return_value

    @patch('lambda_function.GoogleCalendarStore')
    @patch('lambda_function.build_google_service')
    def test_google_backend(self, mock_build_service, mock_store_class):
        """Test the Google backend is built from the service account file."""
        config = SyncConfig(
            api_endpoint=FEED_URL,
            calendar_backend='google',
            google_credentials_file='/secrets/key.json'
        )

        store = build_calendar_store(config)

        mock_build_service.assert_called_once_with('/secrets/key.json')
        mock_store_class.assert_called_once_with(
            service=mock_build_service.return_value,
            calendar_id='',
            timezone=config.timezone
        )
        assert store is mock_store_class.return_value

    def test_unknown_backend(self):
        """Test an unknown backend raises ValueError."""
        with pytest.raises(ValueError):
            build_calendar_store(SyncConfig(api_endpoint=FEED_URL, calendar_backend='caldav'))


@pytest.mark.usefixtures('restore_root_logger')
class TestSetupLogging:
    """Test cases for logging setup."""

    def test_setup_logging_default_level(self):
        """Test logging setup with default INFO level."""
        setup_logging()
        assert logging.getLogger().level == logging.INFO

    def test_setup_logging_debug_level(self):
        """Test logging setup with DEBUG level."""
        setup_logging('DEBUG')
        assert logging.getLogger().level == logging.DEBUG

    def test_setup_logging_unknown_level(self):
        """Test an unknown level name falls back to INFO."""
        setup_logging('CHATTY')
        assert logging.getLogger().level == logging.INFO

    def test_setup_logging_installs_json_formatter(self):
        """Test a single handler with the JSON formatter is installed."""
        setup_logging('ERROR')
        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0].formatter, JsonFormatter)


class TestJsonFormatter:
    """Test cases for the JSON log formatter."""

    def test_format_includes_sync_fields(self):
        """Test known extra fields are serialized."""
        record = logging.LogRecord('lambda_function', logging.INFO, __file__, 1, 'done', None, None)
        record.events_added = 4
        record.errors = ['one']

        data = json.loads(JsonFormatter().format(record))

        assert data['message'] == 'done'
        assert data['level'] == 'INFO'
        assert data['logger'] == 'lambda_function'
        assert data['events_added'] == 4
        assert data['errors'] == ['one']
        assert 'events_deleted' not in data

    def test_format_includes_exception(self):
        """Test exception details are serialized."""
        try:
            raise RuntimeError('boom')
        except RuntimeError:
            record = logging.LogRecord(
                'lambda_function', logging.ERROR, __file__, 1, 'failed', None, sys.exc_info()
            )

        data = json.loads(JsonFormatter().format(record))

        assert 'RuntimeError: boom' in data['exception']
