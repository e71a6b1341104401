"""Shared fixtures for calendar sync tests."""
from datetime import timezone

import pytest

from fakes import FakeCalendarStore


@pytest.fixture
def utc():
    """Canonical zone used by most tests."""
    return timezone.utc


@pytest.fixture
def fake_store():
    """Empty in-memory calendar store."""
    return FakeCalendarStore()
