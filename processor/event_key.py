"""Identity keys used to match feed records to calendar events."""
from datetime import datetime, tzinfo

KEY_DELIMITER = '|'


def create_event_key(title: str, start: datetime, timezone: tzinfo) -> str:
    """
    Create the identity key for an event from its title and start day.

    Two events with the same title starting on the same calendar day in
    ``timezone`` share a key. The delimiter is not escaped, so a title
    containing it can collide with another title.

    Args:
        title: Event title
        start: Event start time; naive values are taken as already in ``timezone``
        timezone: Canonical zone used for the calendar day

    Returns:
        Key of the form ``<title>|<YYYY-MM-DD>``
    """
    if start.tzinfo is not None:
        start = start.astimezone(timezone)
    return f"{title}{KEY_DELIMITER}{start.date().isoformat()}"
