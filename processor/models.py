"""Data models for event feed reconciliation."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class SourceRecord:
    """Raw event record from the source feed."""
    location: str
    date: str
    address: Optional[str] = None
    sponsor: Optional[str] = None
    notes: Optional[str] = None
    alert: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SourceRecord':
        """
        Build a record from a decoded feed entry.

        Args:
            data: Single entry of the feed's ``events`` list

        Returns:
            SourceRecord object

        Raises:
            KeyError: If ``location`` or ``date`` is missing or null
        """
        for name in ('location', 'date'):
            if data.get(name) is None:
                raise KeyError(name)

        return cls(
            location=str(data['location']),
            date=str(data['date']),
            address=data.get('address'),
            sponsor=data.get('sponsor'),
            notes=data.get('notes'),
            alert=data.get('alert')
        )


@dataclass(frozen=True)
class CanonicalEvent:
    """Normalized event derived from a SourceRecord."""
    title: str
    description: str
    location: Optional[str]
    start: datetime
    end: datetime


@dataclass
class CalendarEvent:
    """Event held by a calendar store."""
    event_id: str
    title: str
    description: str
    location: str
    start: datetime
    end: datetime


@dataclass(frozen=True)
class DateRange:
    """Earliest and latest start times found in the source feed."""
    earliest: datetime
    latest: datetime


@dataclass
class SyncResult:
    """Result of sync operation."""
    added: int = 0
    updated: int = 0
    deleted: int = 0
    errors: list[str] = field(default_factory=list)
