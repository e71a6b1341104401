"""Calendar store backed by the Google Calendar API."""
import logging
from datetime import datetime, tzinfo
from typing import List, Optional
from zoneinfo import ZoneInfo

from dateutil.parser import isoparse
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from processor.models import CalendarEvent
from storage.calendar_store import CalendarStore, CalendarStoreError

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/calendar"]
DEFAULT_CALENDAR_ID = 'primary'


def build_google_service(credentials_file: str):
    """
    Build a Calendar v3 service from a service account key file.

    Args:
        credentials_file: Path to the service account JSON key

    Returns:
        googleapiclient Resource for the Calendar API
    """
    credentials = service_account.Credentials.from_service_account_file(
        credentials_file, scopes=SCOPES
    )
    return build("calendar", "v3", credentials=credentials, cache_discovery=False)


class GoogleCalendarStore(CalendarStore):
    """Google calendar accessed through the Calendar API v3."""

    PAGE_SIZE = 2500

    def __init__(self, service, calendar_id: str = '', timezone: tzinfo = ZoneInfo('UTC')):
        """
        Initialize the store.

        Args:
            service: Calendar API service from build_google_service
            calendar_id: Calendar to sync; empty selects the primary calendar
            timezone: Zone applied to all-day events
        """
        self.service = service
        self.calendar_id = calendar_id or DEFAULT_CALENDAR_ID
        self.timezone = timezone

    def list_events(self, start: datetime, end: datetime) -> List[CalendarEvent]:
        """Fetch single (expanded) events overlapping ``[start, end)``."""
        logger.info(f"Fetching existing events from {start} to {end}")
        events = []
        page_token = None

        try:
            while True:
                events_result = (
                    self.service.events()
                    .list(
                        calendarId=self.calendar_id,
                        timeMin=start.isoformat(),
                        timeMax=end.isoformat(),
                        singleEvents=True,
                        orderBy='startTime',
                        showDeleted=False,
                        maxResults=self.PAGE_SIZE,
                        pageToken=page_token,
                    )
                    .execute()
                )
                for item in events_result.get("items", []):
                    events.append(self._item_to_calendar_event(item))
                page_token = events_result.get("nextPageToken")
                if not page_token:
                    break
        except HttpError as e:
            logger.error(f"Error listing events for calendar {self.calendar_id}: {e}")
            raise CalendarStoreError(f"Failed to list events: {e}") from e

        logger.info(f"Found {len(events)} existing events")
        return events

    def create_event(
        self,
        title: str,
        start: datetime,
        end: datetime,
        description: str,
        location: Optional[str]
    ) -> CalendarEvent:
        body = {
            "summary": title,
            "description": description,
            "start": {"dateTime": start.isoformat()},
            "end": {"dateTime": end.isoformat()},
        }
        if location:
            body["location"] = location

        try:
            created = (
                self.service.events()
                .insert(calendarId=self.calendar_id, body=body)
                .execute()
            )
        except HttpError as e:
            raise CalendarStoreError(f"Failed to create event: {e}") from e

        return CalendarEvent(
            event_id=created["id"],
            title=title,
            description=description,
            location=location or '',
            start=start,
            end=end
        )

    def update_event(self, event: CalendarEvent) -> None:
        body = {
            "summary": event.title,
            "description": event.description,
            "location": event.location or '',
        }
        try:
            (
                self.service.events()
                .patch(calendarId=self.calendar_id, eventId=event.event_id, body=body)
                .execute()
            )
        except HttpError as e:
            raise CalendarStoreError(f"Failed to update event: {e}") from e

    def delete_event(self, event: CalendarEvent) -> None:
        try:
            (
                self.service.events()
                .delete(calendarId=self.calendar_id, eventId=event.event_id)
                .execute()
            )
        except HttpError as e:
            raise CalendarStoreError(f"Failed to delete event: {e}") from e

    def _parse_time(self, value: dict) -> datetime:
        # All-day events carry a date instead of a dateTime.
        if "dateTime" in value:
            return isoparse(value["dateTime"])
        return isoparse(value["date"]).replace(tzinfo=self.timezone)

    def _item_to_calendar_event(self, item: dict) -> CalendarEvent:
        return CalendarEvent(
            event_id=item["id"],
            title=item.get("summary", ""),
            description=item.get("description", ""),
            location=item.get("location", ""),
            start=self._parse_time(item["start"]),
            end=self._parse_time(item["end"])
        )
