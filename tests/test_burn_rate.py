"""
Unit tests for burn rate estimation.
"""

from datetime import datetime, timedelta, timezone

import pytest

from session_meter.core.burn_rate import calculate_burn_rate
from session_meter.core.token_counter import UsageCounts
from session_meter.storage.models import Event

NOW = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


def event_at(minutes_ago: float, tokens: int = 100) -> Event:
    return Event(
        id=f"msg-{minutes_ago}",
        timestamp=NOW - timedelta(minutes=minutes_ago),
        usage=UsageCounts(input_tokens=tokens),
    )


def tokens(event: Event) -> float:
    return event.quota_tokens


class TestBurnRate:
    """Test trailing-window rate computation."""

    def test_no_events(self):
        """Verify zero rate without events."""
        assert calculate_burn_rate([], NOW, tokens) == 0.0

    def test_no_recent_events(self):
        """Verify events older than ten minutes are ignored."""
        assert calculate_burn_rate([event_at(11), event_at(30)], NOW, tokens) == 0.0

    def test_elapsed_from_earliest_recent_event(self):
        """Verify the divisor runs from the earliest event in the window to now."""
        events = [event_at(4, 100), event_at(2, 300)]
        # 400 tokens over 4 minutes
        assert calculate_burn_rate(events, NOW, tokens) == pytest.approx(100.0)

    def test_older_events_excluded_from_sum(self):
        """Verify only events inside the trailing window are summed."""
        events = [event_at(20, 10_000), event_at(5, 500)]
        assert calculate_burn_rate(events, NOW, tokens) == pytest.approx(100.0)

    def test_event_at_window_start_included(self):
        """Verify an event exactly ten minutes old is inside the window."""
        assert calculate_burn_rate([event_at(10, 1000)], NOW, tokens) == pytest.approx(100.0)

    def test_zero_elapsed_guarded(self):
        """Verify an event at now yields zero instead of dividing by zero."""
        assert calculate_burn_rate([event_at(0, 1000)], NOW, tokens) == 0.0

    def test_message_counting_extractor(self):
        """Verify the same routine counts messages with a constant extractor."""
        events = [event_at(2), event_at(1), event_at(0.5)]
        assert calculate_burn_rate(events, NOW, lambda e: 1) == pytest.approx(1.5)
