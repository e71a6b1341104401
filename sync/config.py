"""Configuration for the calendar sync, read from environment variables."""
import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_EVENT_DURATION_MINUTES = 90
DEFAULT_TIMEZONE = 'UTC'


@dataclass(frozen=True)
class SyncConfig:
    """Settings for one sync run."""
    api_endpoint: str
    calendar_id: str = ''
    event_duration_minutes: int = DEFAULT_EVENT_DURATION_MINUTES
    timezone: ZoneInfo = ZoneInfo(DEFAULT_TIMEZONE)
    calendar_backend: str = 'dynamodb'
    table_name: str = 'calendar-events'
    google_credentials_file: str = 'credentials.json'
    timeout_seconds: int = 30
    log_level: str = 'INFO'


def _get_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name, '').strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Invalid {name} '{raw}', falling back to {default}")
        return default
    if value <= 0:
        logger.warning(f"Non-positive {name} '{raw}', falling back to {default}")
        return default
    return value


def get_timezone(name: str) -> ZoneInfo:
    """
    Resolve the canonical time zone, falling back to UTC.

    Args:
        name: IANA zone name such as ``America/New_York``

    Returns:
        ZoneInfo object
    """
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Invalid TIMEZONE '{name}', falling back to {DEFAULT_TIMEZONE}")
        return ZoneInfo(DEFAULT_TIMEZONE)


def load_config(environ: Optional[Mapping[str, str]] = None) -> SyncConfig:
    """
    Build a SyncConfig from environment variables.

    A missing API_ENDPOINT is not an error here; the runner reports it.

    Args:
        environ: Mapping to read from (default: os.environ)

    Returns:
        SyncConfig object
    """
    if environ is None:
        environ = os.environ

    timezone_name = environ.get('TIMEZONE', '').strip() or DEFAULT_TIMEZONE

    return SyncConfig(
        api_endpoint=environ.get('API_ENDPOINT', '').strip(),
        calendar_id=environ.get('CALENDAR_ID', '').strip(),
        event_duration_minutes=_get_int(
            environ, 'EVENT_DURATION_MINUTES', DEFAULT_EVENT_DURATION_MINUTES
        ),
        timezone=get_timezone(timezone_name),
        calendar_backend=environ.get('CALENDAR_BACKEND', 'dynamodb').strip().lower(),
        table_name=environ.get('TABLE_NAME', 'calendar-events'),
        google_credentials_file=environ.get(
            'GOOGLE_APPLICATION_CREDENTIALS', 'credentials.json'
        ),
        timeout_seconds=_get_int(environ, 'TIMEOUT_SECONDS', 30),
        log_level=environ.get('LOG_LEVEL', 'INFO')
    )
