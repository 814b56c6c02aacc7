"""
Burn rate estimation.

Trailing-window consumption rates for tokens, cost and messages.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Sequence

from session_meter.storage.models import Event

BURN_RATE_WINDOW = timedelta(minutes=10)


@dataclass(frozen=True)
class BurnRates:
    """Per-minute consumption rates over the trailing window."""
    tokens_per_minute: float = 0.0
    cost_per_minute: float = 0.0
    messages_per_minute: float = 0.0


def calculate_burn_rate(
    events: Sequence[Event],
    now: datetime,
    value_of: Callable[[Event], float],
    window: timedelta = BURN_RATE_WINDOW,
) -> float:
    """Calculate a per-minute rate over events in the trailing window.

    The elapsed time runs from the earliest event inside the window to
    ``now`` rather than the full window length, so sparse activity is not
    diluted. A zero elapsed time yields 0.

    Args:
        events: Chronologically sorted events
        now: End of the trailing window
        value_of: Extracts the quantity to sum from each event
        window: Trailing window length

    Returns:
        Units per minute
    """
    window_start = now - window
    recent = [event for event in events if event.timestamp >= window_start]
    if not recent:
        return 0.0

    total = sum(value_of(event) for event in recent)
    elapsed_minutes = (now - recent[0].timestamp).total_seconds() / 60

    return total / elapsed_minutes if elapsed_minutes > 0 else 0.0
