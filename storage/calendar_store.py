"""Calendar store interface shared by the storage backends."""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from processor.models import CalendarEvent


class CalendarStoreError(Exception):
    """Raised when a calendar store operation fails."""


class CalendarStore(ABC):
    """Operations the reconciler needs from a calendar."""

    @abstractmethod
    def list_events(self, start: datetime, end: datetime) -> List[CalendarEvent]:
        """
        Return events overlapping ``[start, end)``, ordered by start time.

        Raises:
            CalendarStoreError: If the calendar cannot be queried
        """

    @abstractmethod
    def create_event(
        self,
        title: str,
        start: datetime,
        end: datetime,
        description: str,
        location: Optional[str]
    ) -> CalendarEvent:
        """
        Create a new event and return it.

        Raises:
            CalendarStoreError: If the event cannot be created
        """

    @abstractmethod
    def update_event(self, event: CalendarEvent) -> None:
        """
        Persist the title, description and location of an existing event.

        Raises:
            CalendarStoreError: If the event cannot be updated
        """

    @abstractmethod
    def delete_event(self, event: CalendarEvent) -> None:
        """
        Delete an existing event.

        Raises:
            CalendarStoreError: If the event cannot be deleted
        """
