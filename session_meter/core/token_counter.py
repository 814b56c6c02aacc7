"""
Token counting and usage tracking.

Holds the four usage counters carried by a single message.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class UsageCounts:
    """Token counters reported for one message.

    Cache counters are billed but do not count toward the session quota.
    """
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0

    def __post_init__(self):
        """Validate counters are non-negative."""
        for name in ("input_tokens", "output_tokens", "cache_creation_tokens", "cache_read_tokens"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative")

    @property
    def quota_tokens(self) -> int:
        """Tokens counted toward the quota (input + output only)."""
        return self.input_tokens + self.output_tokens

    @property
    def all_tokens(self) -> int:
        """Every token type, including both cache counters."""
        return (
            self.input_tokens
            + self.output_tokens
            + self.cache_creation_tokens
            + self.cache_read_tokens
        )
