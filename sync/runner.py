"""Orchestration of a single feed-to-calendar sync run."""
import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta, tzinfo
from enum import Enum
from typing import Callable, Optional, Tuple

from feed.events_api import EventsApiClient
from processor.event_processor import EventProcessor
from processor.models import DateRange, SyncResult
from storage.calendar_store import CalendarStore
from sync.config import SyncConfig
from sync.reconciler import CalendarReconciler

logger = logging.getLogger(__name__)


class SyncStatus(Enum):
    """How a sync run ended."""
    COMPLETED = 'completed'
    NOT_CONFIGURED = 'not_configured'
    NO_EVENTS = 'no_events'


@dataclass
class SyncOutcome:
    """Outcome of a sync run."""
    status: SyncStatus
    message: str
    result: Optional[SyncResult] = None


def get_sync_window(date_range: DateRange, timezone: tzinfo) -> Tuple[datetime, datetime]:
    """
    Widen a date range to whole days in the canonical zone.

    The window opens at midnight of the earliest feed day, not at the
    earliest feed time. Calendar events earlier on that day which the
    feed does not list are therefore inside the window and get deleted.

    Args:
        date_range: Earliest and latest feed start times
        timezone: Canonical zone

    Returns:
        Tuple of (window start, window end), end exclusive
    """
    first_day = date_range.earliest.astimezone(timezone).date()
    last_day = date_range.latest.astimezone(timezone).date()
    return (
        datetime.combine(first_day, time.min, tzinfo=timezone),
        datetime.combine(last_day + timedelta(days=1), time.min, tzinfo=timezone)
    )


def run_sync(
    config: SyncConfig,
    client: EventsApiClient,
    store_factory: Callable[[SyncConfig], CalendarStore]
) -> SyncOutcome:
    """
    Fetch the source feed and reconcile the calendar against it.

    Expected early exits are reported through the returned outcome;
    unexpected failures propagate to the caller.

    Args:
        config: Settings for this run
        client: Source feed client
        store_factory: Builds the calendar store for the configured backend

    Returns:
        SyncOutcome describing the run
    """
    if not config.api_endpoint:
        return SyncOutcome(
            status=SyncStatus.NOT_CONFIGURED,
            message='API endpoint not configured. Please set API_ENDPOINT.'
        )

    records = client.fetch_events(config.api_endpoint)
    if not records:
        return SyncOutcome(
            status=SyncStatus.NO_EVENTS,
            message='No events found or failed to fetch events'
        )

    processor = EventProcessor(
        timezone=config.timezone,
        duration_minutes=config.event_duration_minutes
    )

    date_range = processor.get_date_range(records)
    if date_range is None:
        return SyncOutcome(
            status=SyncStatus.NO_EVENTS,
            message=f'None of the {len(records)} fetched events has a valid date'
        )

    store = store_factory(config)

    window_start, window_end = get_sync_window(date_range, config.timezone)
    # Events that began before the window only overlap it; they are not ours.
    existing_events = [
        event for event in store.list_events(window_start, window_end)
        if event.start >= window_start
    ]
    logger.info(
        f"Found {len(existing_events)} calendar events between "
        f"{window_start.isoformat()} and {window_end.isoformat()}"
    )

    reconciler = CalendarReconciler(
        store=store,
        processor=processor,
        timezone=config.timezone
    )
    result = reconciler.reconcile(records, existing_events)

    return SyncOutcome(
        status=SyncStatus.COMPLETED,
        message=(
            f"Sync completed successfully. Added: {result.added}, "
            f"Updated: {result.updated}, Deleted: {result.deleted}"
        ),
        result=result
    )
