"""
Quota guardrails.

Measures a session snapshot against its quota and classifies how close each
dimension is to its limit.

Status level is driven by token usage only:
1. OK - below 75% of the token limit
2. WARNING - 75% or more
3. CRITICAL - 90% or more
"""

from dataclasses import dataclass
from enum import Enum, auto

from .metrics import Metrics
from session_meter.config.loader import QuotaConfig

WARNING_PERCENT = 75.0
CRITICAL_PERCENT = 90.0


class QuotaLevel(Enum):
    """Session status levels in order of severity."""
    OK = auto()
    WARNING = auto()
    CRITICAL = auto()


class UsageBand(Enum):
    """Colour band for a single usage percentage."""
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"


@dataclass(frozen=True)
class QuotaAssessment:
    """Usage percentages of a session against its quota."""
    token_percent: float
    cost_percent: float
    message_percent: float
    level: QuotaLevel

    @property
    def token_band(self) -> UsageBand:
        return usage_band(self.token_percent)

    @property
    def cost_band(self) -> UsageBand:
        return usage_band(self.cost_percent)

    @property
    def message_band(self) -> UsageBand:
        return usage_band(self.message_percent)


def usage_band(percent: float) -> UsageBand:
    """Classify a percentage: red from 80, yellow from 60."""
    if percent >= 80:
        return UsageBand.RED
    elif percent >= 60:
        return UsageBand.YELLOW
    return UsageBand.GREEN


def assess_quota(metrics: Metrics, quota: QuotaConfig) -> QuotaAssessment:
    """Compute usage percentages and the overall status level.

    Args:
        metrics: Active session snapshot
        quota: Limits to compare against

    Returns:
        QuotaAssessment for the snapshot
    """
    token_percent = metrics.total_tokens / quota.token_limit * 100
    cost_percent = metrics.total_cost / quota.cost_limit * 100
    message_percent = metrics.message_count / quota.message_limit * 100

    if token_percent >= CRITICAL_PERCENT:
        level = QuotaLevel.CRITICAL
    elif token_percent >= WARNING_PERCENT:
        level = QuotaLevel.WARNING
    else:
        level = QuotaLevel.OK

    return QuotaAssessment(
        token_percent=token_percent,
        cost_percent=cost_percent,
        message_percent=message_percent,
        level=level,
    )
