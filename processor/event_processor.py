"""Event processor for normalizing source feed records."""
import logging
from datetime import datetime, timedelta, tzinfo
from typing import List, Optional

from dateutil.parser import isoparse

from processor.models import CanonicalEvent, DateRange, SourceRecord

logger = logging.getLogger(__name__)


class InvalidEventDate(ValueError):
    """Raised when a source record's date cannot be parsed."""


class EventProcessor:
    """Processor for turning source records into canonical events."""

    DESCRIPTION_FIELDS = (
        ('Alert', 'alert'),
        ('Notes', 'notes'),
        ('Sponsor', 'sponsor'),
    )

    def __init__(self, timezone: tzinfo, duration_minutes: int = 90):
        """
        Initialize the event processor.

        Args:
            timezone: Canonical zone, applied to dates without an offset
            duration_minutes: Length given to every created event
        """
        self.timezone = timezone
        self.duration = timedelta(minutes=duration_minutes)

    def normalize(self, record: SourceRecord) -> CanonicalEvent:
        """
        Map a source record onto the canonical event shape.

        Args:
            record: Raw SourceRecord from the feed

        Returns:
            CanonicalEvent object

        Raises:
            InvalidEventDate: If the record's date cannot be parsed
        """
        start = self.parse_event_date(record.date)
        return CanonicalEvent(
            title=record.location,
            description=self.build_description(record),
            location=record.address or None,
            start=start,
            end=start + self.duration
        )

    def process_records(self, records: List[SourceRecord]) -> List[CanonicalEvent]:
        """
        Normalize records in order, skipping those that fail.

        Args:
            records: List of SourceRecord objects

        Returns:
            List of CanonicalEvent objects for the records that parsed
        """
        events = []

        for record in records:
            try:
                events.append(self.normalize(record))
            except InvalidEventDate as e:
                logger.warning(f"Skipping event '{record.location}': {e}")
                continue

        return events

    def build_description(self, record: SourceRecord) -> str:
        """
        Build the event description from alert, notes and sponsor.

        Each present value is rendered as ``"<Label>: <value>\\n"``;
        absent or empty values are omitted.
        """
        lines = []
        for label, attribute in self.DESCRIPTION_FIELDS:
            value = getattr(record, attribute)
            if value:
                lines.append(f"{label}: {value}\n")
        return ''.join(lines)

    def parse_event_date(self, date_str: str) -> datetime:
        """
        Parse an ISO 8601 date or date-time into an aware datetime.

        Args:
            date_str: Date string from the feed

        Returns:
            Timezone-aware datetime

        Raises:
            InvalidEventDate: If the string is empty or not ISO 8601
        """
        if not date_str or not date_str.strip():
            raise InvalidEventDate("missing date")

        try:
            parsed = isoparse(date_str.strip())
        except (ValueError, OverflowError) as e:
            raise InvalidEventDate(f"invalid date '{date_str}': {e}") from e

        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=self.timezone)
        return parsed

    def get_date_range(self, records: List[SourceRecord]) -> Optional[DateRange]:
        """
        Determine the earliest and latest start times of the records.

        Records with unparseable dates are ignored.

        Args:
            records: List of SourceRecord objects

        Returns:
            DateRange, or None if no record has a usable date
        """
        starts = []
        for record in records:
            try:
                starts.append(self.parse_event_date(record.date))
            except InvalidEventDate:
                continue

        if not starts:
            return None

        return DateRange(earliest=min(starts), latest=max(starts))
