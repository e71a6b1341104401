"""Reconciliation of source feed records against calendar events."""
import logging
from datetime import tzinfo
from typing import Dict, List, Optional

from processor.event_key import create_event_key
from processor.event_processor import EventProcessor
from processor.models import CalendarEvent, CanonicalEvent, SourceRecord, SyncResult
from storage.calendar_store import CalendarStore, CalendarStoreError

logger = logging.getLogger(__name__)


def build_event_index(
    events: List[CalendarEvent],
    timezone: tzinfo
) -> Dict[str, CalendarEvent]:
    """
    Create a lookup of calendar events keyed by identity key.

    When several events share a key the last one wins; the others are
    left for the deletion sweep.

    Args:
        events: Calendar events in fetch order
        timezone: Canonical zone for identity keys

    Returns:
        Dictionary mapping event key to CalendarEvent
    """
    index = {}
    for event in events:
        index[create_event_key(event.title, event.start, timezone)] = event
    return index


class CalendarReconciler:
    """Makes a calendar's events match the source feed."""

    def __init__(
        self,
        store: CalendarStore,
        processor: EventProcessor,
        timezone: tzinfo
    ):
        """
        Initialize the reconciler.

        Args:
            store: Calendar to modify
            processor: Normalizer for source records
            timezone: Canonical zone for identity keys
        """
        self.store = store
        self.processor = processor
        self.timezone = timezone

    def reconcile(
        self,
        records: List[SourceRecord],
        existing_events: List[CalendarEvent]
    ) -> SyncResult:
        """
        Add new events, update changed ones and delete stale ones.

        Args:
            records: Source records in feed order
            existing_events: Calendar events inside the feed's date window

        Returns:
            SyncResult with counts of added, updated, deleted events
        """
        result = SyncResult()
        processed_keys = set()
        index = build_event_index(existing_events, self.timezone)

        logger.info(
            f"Reconciling {len(records)} source records against "
            f"{len(existing_events)} calendar events"
        )

        # Records sharing a key collapse to the last one, like the index.
        source_events = {}
        for event in self.processor.process_records(records):
            key = create_event_key(event.title, event.start, self.timezone)
            processed_keys.add(key)
            source_events[key] = event

        for key, event in source_events.items():
            existing_event = index.get(key)
            if existing_event is None:
                if self._create(event, result) is not None:
                    result.added += 1
            elif self._events_differ(existing_event, event):
                if self._update(existing_event, event, result):
                    result.updated += 1

        # Sweep the fetched list, not the index, so that duplicates shadowed
        # in the index are removed along with orphans.
        for existing_event in existing_events:
            key = create_event_key(
                existing_event.title, existing_event.start, self.timezone
            )
            if key in processed_keys and index[key] is existing_event:
                continue
            if self._delete(existing_event, result):
                result.deleted += 1

        return result

    def _create(
        self,
        event: CanonicalEvent,
        result: SyncResult
    ) -> Optional[CalendarEvent]:
        try:
            created_event = self.store.create_event(
                title=event.title,
                start=event.start,
                end=event.end,
                description=event.description,
                location=event.location
            )
        except CalendarStoreError as e:
            self._record_error(f"Failed to create event '{event.title}': {e}", result)
            return None
        logger.debug(f"Created event '{event.title}' at {event.start.isoformat()}")
        return created_event

    def _update(
        self,
        existing_event: CalendarEvent,
        event: CanonicalEvent,
        result: SyncResult
    ) -> bool:
        # All three fields are rewritten even when only one differs.
        existing_event.title = event.title
        existing_event.description = event.description
        existing_event.location = event.location or ''

        try:
            self.store.update_event(existing_event)
        except CalendarStoreError as e:
            self._record_error(
                f"Failed to update event '{event.title}' "
                f"({existing_event.event_id}): {e}",
                result
            )
            return False
        logger.debug(f"Updated event '{event.title}' ({existing_event.event_id})")
        return True

    def _delete(self, existing_event: CalendarEvent, result: SyncResult) -> bool:
        try:
            self.store.delete_event(existing_event)
        except CalendarStoreError as e:
            self._record_error(
                f"Failed to delete event '{existing_event.title}' "
                f"({existing_event.event_id}): {e}",
                result
            )
            return False
        logger.debug(
            f"Deleted event '{existing_event.title}' ({existing_event.event_id})"
        )
        return True

    def _record_error(self, message: str, result: SyncResult) -> None:
        logger.error(message)
        result.errors.append(message)

    def _events_differ(
        self,
        existing_event: CalendarEvent,
        event: CanonicalEvent
    ) -> bool:
        """
        Compare the fields a sync is allowed to change.

        Start and end times are not compared; a missing location equals
        an empty one.
        """
        return (
            existing_event.title != event.title or
            existing_event.description != event.description or
            (existing_event.location or '') != (event.location or '')
        )
