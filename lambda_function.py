"""AWS Lambda handler for the events feed calendar sync."""
import json
import logging
import os
import time
from typing import Any, Dict, Optional

from feed.events_api import EventsApiClient
from storage.calendar_store import CalendarStore
from storage.dynamodb_calendar import DynamoDBCalendarStore
from storage.google_calendar import GoogleCalendarStore, build_google_service
from sync.config import SyncConfig, load_config
from sync.runner import SyncOutcome, SyncStatus, run_sync

logger = logging.getLogger(__name__)

EXTRA_LOG_FIELDS = (
    'status',
    'events_added',
    'events_updated',
    'events_deleted',
    'errors',
    'duration_seconds',
    'error_type',
)


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for field_name in EXTRA_LOG_FIELDS:
            if hasattr(record, field_name):
                log_data[field_name] = getattr(record, field_name)

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def build_calendar_store(config: SyncConfig) -> CalendarStore:
    """
    Create the calendar store selected by CALENDAR_BACKEND.

    Args:
        config: Settings for this run

    Returns:
        CalendarStore for the configured backend

    Raises:
        ValueError: If the backend name is unknown
    """
    if config.calendar_backend == 'dynamodb':
        return DynamoDBCalendarStore(
            table_name=config.table_name,
            calendar_id=config.calendar_id
        )
    if config.calendar_backend == 'google':
        return GoogleCalendarStore(
            service=build_google_service(config.google_credentials_file),
            calendar_id=config.calendar_id,
            timezone=config.timezone
        )
    raise ValueError(f"Unknown CALENDAR_BACKEND: {config.calendar_backend}")


def sync_events_to_calendar() -> Optional[SyncOutcome]:
    """
    Sync events from the feed to the calendar.

    Reads its settings from the environment and never raises; every
    outcome is logged. Suitable for a scheduled trigger.

    Returns:
        SyncOutcome, or None if the run failed unexpectedly
    """
    start_time = time.time()

    try:
        # Before load_config so its fallback warnings use the JSON format
        setup_logging(os.environ.get('LOG_LEVEL', 'INFO'))
        config = load_config()

        logger.info(
            "Sync started",
            extra={'status': 'started'}
        )

        client = EventsApiClient(timeout=config.timeout_seconds)
        outcome = run_sync(config, client, build_calendar_store)
        duration = round(time.time() - start_time, 2)

        if outcome.status is SyncStatus.COMPLETED:
            logger.info(
                outcome.message,
                extra={
                    'status': outcome.status.value,
                    'events_added': outcome.result.added,
                    'events_updated': outcome.result.updated,
                    'events_deleted': outcome.result.deleted,
                    'errors': outcome.result.errors,
                    'duration_seconds': duration
                }
            )
        else:
            logger.warning(
                outcome.message,
                extra={'status': outcome.status.value, 'duration_seconds': duration}
            )
        return outcome

    except Exception as e:
        logger.error(
            f"Error syncing events: {str(e)}",
            extra={
                'duration_seconds': round(time.time() - start_time, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )
        return None


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function, invoked by an EventBridge schedule.

    Args:
        event: EventBridge event payload (unused)
        context: Lambda context object (unused)

    Returns:
        Response dict with statusCode and summary statistics
    """
    outcome = sync_events_to_calendar()

    if outcome is None:
        return {
            'statusCode': 500,
            'body': json.dumps({'message': 'Sync failed'})
        }

    body = {
        'message': outcome.message,
        'status': outcome.status.value
    }
    if outcome.result is not None:
        body['statistics'] = {
            'events_added': outcome.result.added,
            'events_updated': outcome.result.updated,
            'events_deleted': outcome.result.deleted
        }
        body['errors'] = outcome.result.errors

    return {
        'statusCode': 200,
        'body': json.dumps(body)
    }
