"""
Session window partitioning.

Splits a chronological event stream into fixed five-hour accounting windows
anchored to the top of the hour, and picks the window that is live at a
given instant.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from session_meter.storage.models import Event

SESSION_DURATION = timedelta(hours=5)


def floor_to_hour(instant: datetime) -> datetime:
    """Truncate an instant down to the top of its hour."""
    return instant.replace(minute=0, second=0, microsecond=0)


@dataclass
class SessionWindow:
    """One five-hour accounting window.

    Mutable only while it is the open window during partitioning.
    """
    start: datetime
    end: datetime
    last_event_time: datetime
    events: List[Event] = field(default_factory=list)

    @classmethod
    def open_at(cls, event: Event) -> "SessionWindow":
        """Open a window floor-anchored on the event's hour, seeded with it."""
        start = floor_to_hour(event.timestamp)
        return cls(
            start=start,
            end=start + SESSION_DURATION,
            last_event_time=event.timestamp,
            events=[event],
        )

    def append(self, event: Event) -> None:
        """Add an event to this window."""
        self.events.append(event)
        self.last_event_time = event.timestamp

    def contains(self, instant: datetime) -> bool:
        """True if ``start <= instant <= end``."""
        return self.start <= instant <= self.end


def group_into_windows(events: Sequence[Event]) -> List[SessionWindow]:
    """Partition chronologically sorted events into session windows.

    A new window opens when an event reaches the current window's end, or
    when it follows the previous event by a full window duration or more.

    Args:
        events: Events sorted by timestamp ascending

    Returns:
        Windows in chronological order; every event is in exactly one
    """
    windows: List[SessionWindow] = []
    current: Optional[SessionWindow] = None

    for event in events:
        if current is None:
            current = SessionWindow.open_at(event)
            continue

        if (event.timestamp >= current.end
                or event.timestamp - current.last_event_time >= SESSION_DURATION):
            windows.append(current)
            current = SessionWindow.open_at(event)
        else:
            current.append(event)

    if current is not None:
        windows.append(current)

    return windows


def select_active_window(windows: Sequence[SessionWindow], now: datetime) -> Optional[SessionWindow]:
    """Return the last window whose ``[start, end]`` contains ``now``."""
    candidates = [window for window in windows if window.contains(now)]
    return candidates[-1] if candidates else None
