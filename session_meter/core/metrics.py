"""
Session metrics engine.

Derives the current session summary from the full event history:

1. Deduplicate by ``id:correlation_id``, keeping the first occurrence
2. Sort chronologically (stable)
3. Drop events older than the staleness horizon
4. Partition into five-hour windows
5. Select the window containing ``now``
6. Aggregate tokens, cost and breakdowns over that window
7. Compute time remaining and trailing burn rates

The engine is a pure function of its inputs: it keeps no state between
calls and never raises for degenerate input.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from .burn_rate import BurnRates, calculate_burn_rate
from .pricing import PRICING_TABLE, ModelTier, PricingTable, calculate_cost_decimal
from .trace import TraceSink, emit
from .windows import SessionWindow, group_into_windows, select_active_window
from session_meter.config.loader import QuotaConfig
from session_meter.storage.models import Event

STALENESS_HORIZON = timedelta(hours=192)
DEFAULT_SESSION_ID = "combined"


@dataclass(frozen=True)
class ModelBreakdown:
    """Quota-relevant tokens per pricing tier."""
    opus: int = 0
    sonnet: int = 0
    haiku: int = 0

    def get(self, tier: ModelTier) -> int:
        return getattr(self, tier.value)


@dataclass(frozen=True)
class NoActiveSession:
    """No window contains the current instant (or there was no usable data)."""

    def __bool__(self) -> bool:
        return False


NO_ACTIVE_SESSION = NoActiveSession()


@dataclass(frozen=True)
class Metrics:
    """Immutable snapshot of the active session."""
    total_tokens: int
    input_tokens: int
    output_tokens: int
    cache_creation_tokens: int
    cache_read_tokens: int
    total_cost: float
    message_count: int
    start: datetime
    end: datetime
    last_event_time: datetime
    time_remaining: timedelta
    is_active: bool
    burn_rates: BurnRates
    model_breakdown: ModelBreakdown
    project_breakdown: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))
    token_limit: int = 0
    cost_limit: float = 0.0
    message_limit: int = 0
    session_id: str = DEFAULT_SESSION_ID

    @property
    def token_burn_rate(self) -> float:
        return self.burn_rates.tokens_per_minute

    @property
    def cost_burn_rate(self) -> float:
        return self.burn_rates.cost_per_minute

    @property
    def message_burn_rate(self) -> float:
        return self.burn_rates.messages_per_minute

    def projects_by_usage(self) -> List[Tuple[str, int]]:
        """Project breakdown sorted by tokens, largest first."""
        return sorted(self.project_breakdown.items(), key=lambda item: item[1], reverse=True)

    def with_now(self, now: datetime) -> "Metrics":
        """Copy with time remaining and activity recomputed for ``now``.

        Totals are left untouched; this only advances the countdown.
        """
        time_remaining = _time_remaining(self.end, _as_utc(now))
        return replace(self, time_remaining=time_remaining, is_active=time_remaining > timedelta(0))

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serialisable representation."""
        return {
            "session_id": self.session_id,
            "total_tokens": self.total_tokens,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "cache_creation_tokens": self.cache_creation_tokens,
            "cache_read_tokens": self.cache_read_tokens,
            "total_cost": self.total_cost,
            "message_count": self.message_count,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "last_event_time": self.last_event_time.isoformat(),
            "time_remaining_seconds": self.time_remaining.total_seconds(),
            "is_active": self.is_active,
            "token_burn_rate": self.token_burn_rate,
            "cost_burn_rate": self.cost_burn_rate,
            "message_burn_rate": self.message_burn_rate,
            "model_breakdown": {
                "opus": self.model_breakdown.opus,
                "sonnet": self.model_breakdown.sonnet,
                "haiku": self.model_breakdown.haiku,
            },
            "project_breakdown": dict(self.projects_by_usage()),
            "limits": {
                "tokens": self.token_limit,
                "cost": self.cost_limit,
                "messages": self.message_limit,
            },
        }


SessionResult = Union[Metrics, NoActiveSession]


def dedupe_events(events: Iterable[Event]) -> List[Event]:
    """Keep the first occurrence of each ``id:correlation_id`` key.

    Later copies are stale rewrites of a streaming message, not corrections.
    """
    seen = set()
    unique = []
    for event in events:
        key = event.dedup_key
        if key in seen:
            continue
        seen.add(key)
        unique.append(event)
    return unique


def compute(
    events: Iterable[Event],
    quota: QuotaConfig,
    now: datetime,
    trace: Optional[TraceSink] = None,
    pricing: PricingTable = PRICING_TABLE,
    session_id: str = DEFAULT_SESSION_ID,
) -> SessionResult:
    """Compute metrics for the session window live at ``now``.

    Args:
        events: All events from every source, in arrival order
        quota: Limits the session is measured against
        now: Current instant (naive values are taken as UTC)
        trace: Optional sink receiving one TraceEvent per step
        pricing: Pricing table used for cost
        session_id: Label carried into the result

    Returns:
        Metrics for the active window, or NO_ACTIVE_SESSION
    """
    now = _as_utc(now)
    events = list(events)

    unique = dedupe_events(events)
    emit(trace, "deduplicated", total=len(events), unique=len(unique))

    ordered = sorted(unique, key=lambda event: event.timestamp)

    cutoff = now - STALENESS_HORIZON
    recent = [event for event in ordered if event.timestamp >= cutoff and _is_billable(event)]
    emit(trace, "filtered", sorted=len(ordered), recent=len(recent), cutoff=cutoff.isoformat())

    if not recent:
        emit(trace, "no_active_session", reason="no recent events")
        return NO_ACTIVE_SESSION

    windows = group_into_windows(recent)
    emit(trace, "partitioned", windows=len(windows))

    window = select_active_window(windows, now)
    if window is None:
        emit(trace, "no_active_session", reason="no window contains now", now=now.isoformat())
        return NO_ACTIVE_SESSION

    emit(
        trace,
        "active_window",
        start=window.start.isoformat(),
        end=window.end.isoformat(),
        events=len(window.events),
    )

    return _aggregate(window, quota, now, trace, pricing, session_id)


def _aggregate(
    window: SessionWindow,
    quota: QuotaConfig,
    now: datetime,
    trace: Optional[TraceSink],
    pricing: PricingTable,
    session_id: str,
) -> Metrics:
    """Sum usage, cost and breakdowns over the active window."""
    input_tokens = 0
    output_tokens = 0
    cache_creation_tokens = 0
    cache_read_tokens = 0
    message_count = 0
    total_cost = Decimal("0")
    tiers: Dict[ModelTier, int] = {tier: 0 for tier in ModelTier}
    projects: Dict[str, int] = {}

    counted: List[Event] = []
    costs: Dict[str, float] = {}
    seen = set()

    for event in window.events:
        if event.usage is None:
            continue
        if event.dedup_key in seen:
            emit(trace, "duplicate_skipped", key=event.dedup_key)
            continue
        seen.add(event.dedup_key)

        usage = event.usage
        tokens = usage.quota_tokens
        cost = calculate_cost_decimal(usage, event.model, pricing)

        message_count += 1
        input_tokens += usage.input_tokens
        output_tokens += usage.output_tokens
        cache_creation_tokens += usage.cache_creation_tokens
        cache_read_tokens += usage.cache_read_tokens
        total_cost += cost

        tiers[pricing.resolve_tier(event.model)] += tokens
        if event.project_label:
            projects[event.project_label] = projects.get(event.project_label, 0) + tokens

        counted.append(event)
        costs[event.dedup_key] = float(cost)

    burn_rates = BurnRates(
        tokens_per_minute=calculate_burn_rate(counted, now, lambda e: e.quota_tokens),
        cost_per_minute=calculate_burn_rate(counted, now, lambda e: costs[e.dedup_key]),
        messages_per_minute=calculate_burn_rate(counted, now, lambda e: 1),
    )

    time_remaining = _time_remaining(window.end, now)

    metrics = Metrics(
        total_tokens=input_tokens + output_tokens,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        cache_creation_tokens=cache_creation_tokens,
        cache_read_tokens=cache_read_tokens,
        total_cost=float(total_cost),
        message_count=message_count,
        start=window.start,
        end=window.end,
        last_event_time=window.last_event_time,
        time_remaining=time_remaining,
        is_active=time_remaining > timedelta(0),
        burn_rates=burn_rates,
        model_breakdown=ModelBreakdown(
            opus=tiers[ModelTier.OPUS],
            sonnet=tiers[ModelTier.SONNET],
            haiku=tiers[ModelTier.HAIKU],
        ),
        project_breakdown=MappingProxyType(projects),
        token_limit=quota.token_limit,
        cost_limit=quota.cost_limit,
        message_limit=quota.message_limit,
        session_id=session_id,
    )

    emit(
        trace,
        "aggregated",
        messages=metrics.message_count,
        total_tokens=metrics.total_tokens,
        input_tokens=metrics.input_tokens,
        output_tokens=metrics.output_tokens,
        cache_creation_tokens=metrics.cache_creation_tokens,
        cache_read_tokens=metrics.cache_read_tokens,
        cost=f"{metrics.total_cost:.6f}",
        minutes_remaining=int(time_remaining.total_seconds() // 60),
    )
    return metrics


def _is_billable(event: Event) -> bool:
    """Events without usage or with zero input+output carry no consumption."""
    return event.usage is not None and event.usage.quota_tokens > 0


def _time_remaining(end: datetime, now: datetime) -> timedelta:
    return max(timedelta(0), end - now)


def _as_utc(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)
