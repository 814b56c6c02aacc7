"""
Data models for the event store.

Defines the usage event read from conversation log shards.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from session_meter.core.token_counter import UsageCounts

UNKNOWN_CORRELATION_ID = "unknown"


class Role(Enum):
    """Author of a conversational message."""
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Event:
    """Immutable usage-bearing message record.

    The pair ``(id, correlation_id)`` identifies one logical message; the same
    message is often written several times while it streams.
    """
    id: str
    timestamp: datetime
    role: Role = Role.USER
    correlation_id: str = UNKNOWN_CORRELATION_ID
    model: Optional[str] = None
    project_label: Optional[str] = None
    usage: Optional[UsageCounts] = None

    def __post_init__(self):
        """Store the timestamp as an aware UTC instant."""
        if self.timestamp.tzinfo is None:
            object.__setattr__(self, "timestamp", self.timestamp.replace(tzinfo=timezone.utc))
        else:
            object.__setattr__(self, "timestamp", self.timestamp.astimezone(timezone.utc))

    @property
    def dedup_key(self) -> str:
        """Compound identity used for deduplication."""
        return f"{self.id}:{self.correlation_id}"

    @property
    def quota_tokens(self) -> int:
        """Quota-relevant tokens, zero when the event carries no usage."""
        return self.usage.quota_tokens if self.usage else 0
