"""Calendar store backed by a DynamoDB table."""
import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from processor.models import CalendarEvent
from storage.calendar_store import CalendarStore, CalendarStoreError

logger = logging.getLogger(__name__)

DEFAULT_CALENDAR_ID = 'primary'


def _to_item_time(value: datetime) -> str:
    """Render a datetime as a sortable UTC ISO 8601 string."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')


def _from_item_time(value: str) -> datetime:
    return datetime.strptime(value, '%Y-%m-%dT%H:%M:%SZ').replace(tzinfo=timezone.utc)


class DynamoDBCalendarStore(CalendarStore):
    """
    Calendar kept in a DynamoDB table.

    The table is keyed by ``calendar_id`` (HASH) and ``event_id`` (RANGE),
    so one table can hold several calendars.
    """

    def __init__(self, table_name: str, calendar_id: str = ''):
        """
        Initialize DynamoDB client and table reference.

        Args:
            table_name: Name of the DynamoDB table
            calendar_id: Calendar partition; empty selects the default calendar
        """
        self.table_name = table_name
        self.calendar_id = calendar_id or DEFAULT_CALENDAR_ID
        self.dynamodb = boto3.resource('dynamodb')
        self.table = self.dynamodb.Table(table_name)
        logger.info(
            f"Initialized DynamoDBCalendarStore for table: {table_name}, "
            f"calendar: {self.calendar_id}"
        )

    def list_events(self, start: datetime, end: datetime) -> List[CalendarEvent]:
        """
        Query the calendar partition for events overlapping a window.

        Args:
            start: Window start (inclusive)
            end: Window end (exclusive)

        Returns:
            List of CalendarEvent objects ordered by start time
        """
        query_args = {
            'KeyConditionExpression': Key('calendar_id').eq(self.calendar_id),
            'FilterExpression': (
                Attr('start_time').lt(_to_item_time(end)) &
                Attr('end_time').gt(_to_item_time(start))
            )
        }

        try:
            response = self.table.query(**query_args)
            items = response.get('Items', [])

            # Handle pagination
            while 'LastEvaluatedKey' in response:
                response = self.table.query(
                    ExclusiveStartKey=response['LastEvaluatedKey'],
                    **query_args
                )
                items.extend(response.get('Items', []))

        except ClientError as e:
            logger.error(f"Error querying DynamoDB table {self.table_name}: {e}")
            raise CalendarStoreError(f"Failed to list events: {e}") from e

        events = []
        for item in items:
            event = self._item_to_calendar_event(item)
            if event:
                events.append(event)

        events.sort(key=lambda event: event.start)
        logger.info(f"Retrieved {len(events)} events from DynamoDB")
        return events

    def create_event(
        self,
        title: str,
        start: datetime,
        end: datetime,
        description: str,
        location: Optional[str]
    ) -> CalendarEvent:
        """
        Put a new event item into the calendar partition.

        Returns:
            The created CalendarEvent
        """
        event = CalendarEvent(
            event_id=str(uuid.uuid4()),
            title=title,
            description=description,
            location=location or '',
            start=start,
            end=end
        )

        try:
            self.table.put_item(Item=self._calendar_event_to_item(event))
        except ClientError as e:
            raise CalendarStoreError(f"Failed to create event: {e}") from e

        return event

    def update_event(self, event: CalendarEvent) -> None:
        """Write the event's title, description and location back."""
        try:
            self.table.update_item(
                Key={'calendar_id': self.calendar_id, 'event_id': event.event_id},
                UpdateExpression='SET #title = :title, #desc = :description, #loc = :location',
                ExpressionAttributeNames={
                    '#title': 'title',
                    '#desc': 'description',
                    '#loc': 'location'
                },
                ExpressionAttributeValues={
                    ':title': event.title,
                    ':description': event.description,
                    ':location': event.location or ''
                },
                ConditionExpression=Attr('event_id').exists()
            )
        except ClientError as e:
            raise CalendarStoreError(f"Failed to update event: {e}") from e

    def delete_event(self, event: CalendarEvent) -> None:
        """Remove the event item from the calendar partition."""
        try:
            self.table.delete_item(
                Key={'calendar_id': self.calendar_id, 'event_id': event.event_id}
            )
        except ClientError as e:
            raise CalendarStoreError(f"Failed to delete event: {e}") from e

    def _item_to_calendar_event(self, item: dict) -> Optional[CalendarEvent]:
        """
        Convert DynamoDB item to CalendarEvent object.

        Args:
            item: DynamoDB item dictionary

        Returns:
            CalendarEvent object or None if conversion fails
        """
        try:
            return CalendarEvent(
                event_id=item['event_id'],
                title=item['title'],
                description=item.get('description', ''),
                location=item.get('location', ''),
                start=_from_item_time(item['start_time']),
                end=_from_item_time(item['end_time'])
            )
        except (KeyError, ValueError) as e:
            logger.warning(f"Failed to convert item to CalendarEvent: {e}")
            return None

    def _calendar_event_to_item(self, event: CalendarEvent) -> dict:
        """
        Convert CalendarEvent object to DynamoDB item.

        Args:
            event: CalendarEvent object

        Returns:
            DynamoDB item dictionary
        """
        return {
            'calendar_id': self.calendar_id,
            'event_id': event.event_id,
            'title': event.title,
            'description': event.description,
            'location': event.location,
            'start_time': _to_item_time(event.start),
            'end_time': _to_item_time(event.end)
        }
