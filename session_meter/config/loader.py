"""
Configuration management and loading.

Quota presets for each subscription plan and the monitor settings file.
"""

from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Dict, Optional

import yaml

DEFAULT_SETTINGS_PATH = Path.home() / ".config" / "session-meter" / "config.yaml"
DEFAULT_REFRESH_INTERVAL = 5
MIN_REFRESH_INTERVAL = 1
MAX_REFRESH_INTERVAL = 60
DEFAULT_CUSTOM_TOKEN_LIMIT = 44_000


class Plan(Enum):
    """Subscription plans with fixed quota presets."""
    PRO = "pro"
    MAX5 = "max5"
    MAX20 = "max20"
    CUSTOM = "custom"


@dataclass(frozen=True)
class QuotaConfig:
    """Limits a session is measured against."""
    token_limit: int
    cost_limit: float
    message_limit: int

    def __post_init__(self):
        """Validate limits are positive."""
        if self.token_limit <= 0:
            raise ValueError("token_limit must be > 0")
        if self.cost_limit <= 0:
            raise ValueError("cost_limit must be > 0")
        if self.message_limit <= 0:
            raise ValueError("message_limit must be > 0")


PLAN_LIMITS: Dict[Plan, QuotaConfig] = {
    Plan.PRO: QuotaConfig(token_limit=19_000, cost_limit=18.0, message_limit=250),
    Plan.MAX5: QuotaConfig(token_limit=88_000, cost_limit=35.0, message_limit=1_000),
    Plan.MAX20: QuotaConfig(token_limit=220_000, cost_limit=140.0, message_limit=2_000),
    Plan.CUSTOM: QuotaConfig(token_limit=DEFAULT_CUSTOM_TOKEN_LIMIT, cost_limit=50.0, message_limit=250),
}


def get_quota_config(plan: Plan, custom_token_limit: Optional[int] = None) -> QuotaConfig:
    """Get the quota preset for a plan.

    Only the custom plan honours ``custom_token_limit``.

    Raises:
        ValueError: If custom_token_limit is given for the custom plan and is not positive
    """
    config = PLAN_LIMITS[plan]
    if plan == Plan.CUSTOM and custom_token_limit is not None:
        config = replace(config, token_limit=int(custom_token_limit))
    return config


def parse_plan(value: str) -> Plan:
    """Parse a plan name case-insensitively."""
    try:
        return Plan(value.strip().lower())
    except ValueError:
        valid_plans = [plan.value for plan in Plan]
        raise ValueError(f"plan must be one of: {valid_plans}")


@dataclass(frozen=True)
class MonitorSettings:
    """User settings for the monitor."""
    plan: Plan = Plan.MAX5
    custom_token_limit: int = DEFAULT_CUSTOM_TOKEN_LIMIT
    refresh_interval: int = DEFAULT_REFRESH_INTERVAL
    data_dir: Optional[Path] = None

    def __post_init__(self):
        """Validate settings values."""
        if self.custom_token_limit <= 0:
            raise ValueError("custom_token_limit must be > 0")

    @property
    def quota(self) -> QuotaConfig:
        return get_quota_config(self.plan, self.custom_token_limit)


def clamp_refresh_interval(seconds: int) -> int:
    """Clamp a refresh interval to 1..60 seconds."""
    return max(MIN_REFRESH_INTERVAL, min(MAX_REFRESH_INTERVAL, int(seconds)))


def load_settings(path: str) -> MonitorSettings:
    """Load and validate monitor settings from a YAML file.

    An empty file yields the defaults.

    Args:
        path: Path to YAML settings file

    Returns:
        Validated MonitorSettings

    Raises:
        FileNotFoundError: If the file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If settings are invalid
    """
    settings_path = Path(path)
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {path}")

    with open(settings_path, 'r', encoding='utf-8') as f:
        try:
            raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in settings file {path}: {e}")

    if raw is None:
        return MonitorSettings()

    if not isinstance(raw, dict):
        raise ValueError("Settings file must contain a mapping")

    allowed_keys = {'plan', 'custom_token_limit', 'refresh_interval', 'data_dir'}
    unknown_keys = set(raw.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown settings keys: {unknown_keys}")

    plan = Plan.MAX5
    if 'plan' in raw:
        if not isinstance(raw['plan'], str):
            raise ValueError("'plan' must be a string")
        plan = parse_plan(raw['plan'])

    custom_token_limit = raw.get('custom_token_limit', DEFAULT_CUSTOM_TOKEN_LIMIT)
    if isinstance(custom_token_limit, bool) or not isinstance(custom_token_limit, int):
        raise ValueError("'custom_token_limit' must be an integer")

    refresh_interval = raw.get('refresh_interval', DEFAULT_REFRESH_INTERVAL)
    if isinstance(refresh_interval, bool) or not isinstance(refresh_interval, (int, float)):
        raise ValueError("'refresh_interval' must be a number")

    data_dir = raw.get('data_dir')
    if data_dir is not None and not isinstance(data_dir, str):
        raise ValueError("'data_dir' must be a string")

    return MonitorSettings(
        plan=plan,
        custom_token_limit=custom_token_limit,
        refresh_interval=clamp_refresh_interval(refresh_interval),
        data_dir=Path(data_dir).expanduser() if data_dir else None,
    )
