"""
Event normalization.

Turns one decoded log record into a validated Event, or discards it.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from session_meter.core.token_counter import UsageCounts
from .models import UNKNOWN_CORRELATION_ID, Event, Role

logger = logging.getLogger(__name__)


def normalize_record(record: Any, project_label: Optional[str] = None) -> Optional[Event]:
    """Normalize a raw log record into an Event.

    Records are discarded (None is returned) when they:
    - are not JSON objects or are summary records
    - have no usage object
    - report zero input and output tokens (cache-only activity)
    - have a missing or unparseable timestamp
    - carry usage counters that are not non-negative integers

    Message fields may sit under a nested ``message`` object or at the top
    level of the record.

    Args:
        record: Decoded JSON value of one log line
        project_label: Source group the record was read from

    Returns:
        The Event, or None if the record was discarded
    """
    if not isinstance(record, dict):
        logger.debug("Discarding non-object record")
        return None

    if record.get('type') == 'summary':
        return None

    message = record.get('message')
    if not isinstance(message, dict):
        message = record

    raw_usage = message.get('usage')
    if not isinstance(raw_usage, dict):
        return None

    usage = _parse_usage(raw_usage)
    if usage is None:
        logger.debug("Discarding record with invalid usage counters")
        return None

    if usage.quota_tokens == 0:
        return None

    timestamp = _parse_timestamp(record.get('timestamp', message.get('timestamp')))
    if timestamp is None:
        logger.debug("Discarding record without a valid timestamp")
        return None

    return Event(
        id=_first_string(message.get('id'), record.get('id'), record.get('uuid')) or "",
        timestamp=timestamp,
        role=_parse_role(message.get('role', record.get('role'))),
        correlation_id=_first_string(
            record.get('request_id'),
            record.get('requestId'),
        ) or UNKNOWN_CORRELATION_ID,
        model=extract_model(record, message),
        project_label=project_label,
        usage=usage,
    )


def extract_model(record: Dict[str, Any], message: Optional[Dict[str, Any]] = None) -> Optional[str]:
    """Find the model identifier, probing candidate fields in priority order."""
    message = message if message is not None else record
    usage = message.get('usage')
    request = record.get('request')

    return _first_string(
        message.get('model'),
        record.get('model'),
        record.get('Model'),
        usage.get('model') if isinstance(usage, dict) else None,
        request.get('model') if isinstance(request, dict) else None,
    )


def _first_string(*candidates: Any) -> Optional[str]:
    for candidate in candidates:
        if isinstance(candidate, str) and candidate:
            return candidate
    return None


def _parse_usage(raw: Dict[str, Any]) -> Optional[UsageCounts]:
    counters = {}
    for field_name, key in (
        ('input_tokens', 'input_tokens'),
        ('output_tokens', 'output_tokens'),
        ('cache_creation_tokens', 'cache_creation_input_tokens'),
        ('cache_read_tokens', 'cache_read_input_tokens'),
    ):
        value = raw.get(key) or 0
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            return None
        counters[field_name] = value
    return UsageCounts(**counters)


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    text = value.strip()
    if text.endswith(('Z', 'z')):
        text = text[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _parse_role(value: Any) -> Role:
    if isinstance(value, str):
        try:
            return Role(value.lower())
        except ValueError:
            pass
    return Role.USER
