"""HTTP client for the JSON events feed."""
import json
import logging
import time
from typing import Any, List

import requests

from processor.models import SourceRecord

logger = logging.getLogger(__name__)


class EventsApiClient:
    """Client for the remote events feed."""

    def __init__(self, timeout: int = 30, max_retries: int = 3, base_delay: float = 1):
        """
        Initialize the feed client.

        Args:
            timeout: HTTP request timeout in seconds (default: 30)
            max_retries: Number of attempts before giving up (default: 3)
            base_delay: First retry delay in seconds, doubled per attempt
        """
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.base_delay = base_delay

    def fetch_events(self, url: str) -> List[SourceRecord]:
        """
        Fetch the feed and parse its events.

        Network errors, non-2xx responses and malformed bodies are logged
        and yield an empty list.

        Args:
            url: Feed endpoint

        Returns:
            List of SourceRecord objects
        """
        logger.info(f"Fetching events from {url}")

        try:
            response = self._fetch_response(url)
        except requests.RequestException as e:
            logger.error(f"Error fetching event data from {url}: {e}")
            return []

        try:
            payload = json.loads(response.text)
        except ValueError as e:
            logger.error(f"Malformed JSON body from {url}: {e}")
            return []

        records = self._parse_events(payload)

        logger.info(f"Successfully fetched {len(records)} events")
        return records

    def _fetch_response(self, url: str) -> requests.Response:
        """
        GET the feed with retry logic.

        Args:
            url: Feed endpoint

        Returns:
            Successful response

        Raises:
            requests.RequestException: If all retry attempts fail
        """
        for attempt in range(self.max_retries):
            try:
                logger.info(f"Fetching feed (attempt {attempt + 1}/{self.max_retries})")
                response = requests.get(url, timeout=self.timeout)
                response.raise_for_status()
                return response

            except requests.RequestException as e:
                if attempt < self.max_retries - 1:
                    # Calculate exponential backoff delay
                    delay = self.base_delay * (2 ** attempt)
                    logger.warning(
                        f"Request failed (attempt {attempt + 1}/{self.max_retries}): {e}. "
                        f"Retrying in {delay} seconds..."
                    )
                    time.sleep(delay)
                else:
                    logger.error(
                        f"All {self.max_retries} retry attempts failed. Last error: {e}"
                    )
                    raise

    def _parse_events(self, payload: Any) -> List[SourceRecord]:
        """
        Parse the ``events`` list of a decoded feed body.

        Args:
            payload: Decoded JSON body

        Returns:
            List of SourceRecord objects
        """
        if not isinstance(payload, dict) or not isinstance(payload.get('events'), list):
            logger.error("Feed body has no 'events' list")
            return []

        records = []
        for entry in payload['events']:
            if not isinstance(entry, dict):
                logger.warning(f"Skipping non-object event entry: {entry!r}")
                continue
            try:
                records.append(SourceRecord.from_dict(entry))
            except KeyError as e:
                logger.warning(f"Skipping event missing required field {e}: {entry!r}")
                continue

        return records
