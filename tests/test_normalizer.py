"""
Unit tests for event normalization.

Tests discard rules, field fallbacks and model resolution order.
"""

from datetime import datetime, timezone

import pytest

from session_meter.core.token_counter import UsageCounts
from session_meter.storage.models import Event, Role
from session_meter.storage.normalizer import extract_model, normalize_record


def log_record(**overrides) -> dict:
    """A realistic assistant log line with nested message fields."""
    record = {
        "type": "assistant",
        "uuid": "uuid-1",
        "requestId": "req_01",
        "timestamp": "2025-01-01T10:17:00.000Z",
        "message": {
            "id": "msg_01",
            "role": "assistant",
            "model": "claude-sonnet-4-20250514",
            "usage": {
                "input_tokens": 100,
                "output_tokens": 50,
                "cache_creation_input_tokens": 500,
                "cache_read_input_tokens": 2000,
            },
        },
    }
    record.update(overrides)
    return record


class TestNormalizeRecord:
    """Test conversion of raw records into events."""

    def test_nested_log_record(self):
        """Verify all fields of a nested log record."""
        event = normalize_record(log_record(), project_label="my-project")

        assert isinstance(event, Event)
        assert event.id == "msg_01"
        assert event.correlation_id == "req_01"
        assert event.timestamp == datetime(2025, 1, 1, 10, 17, tzinfo=timezone.utc)
        assert event.role == Role.ASSISTANT
        assert event.model == "claude-sonnet-4-20250514"
        assert event.project_label == "my-project"
        assert event.usage == UsageCounts(
            input_tokens=100,
            output_tokens=50,
            cache_creation_tokens=500,
            cache_read_tokens=2000,
        )

    def test_flat_record(self):
        """Verify the flat record shape with top-level fields."""
        record = {
            "usage": {"input_tokens": 10, "output_tokens": 5},
            "id": "msg_02",
            "request_id": "req_02",
            "timestamp": "2025-01-01T10:00:00+00:00",
            "role": "user",
            "model": "claude-3-haiku",
        }
        event = normalize_record(record)
        assert event.id == "msg_02"
        assert event.correlation_id == "req_02"
        assert event.role == Role.USER
        assert event.model == "claude-3-haiku"
        assert event.project_label is None
        assert event.usage.cache_read_tokens == 0

    def test_missing_usage_discarded(self):
        """Verify records without usage are discarded."""
        record = log_record()
        del record["message"]["usage"]
        assert normalize_record(record) is None

    def test_summary_discarded(self):
        """Verify summary records are discarded."""
        assert normalize_record({"type": "summary", "summary": "Refactor"}) is None

    def test_zero_billed_tokens_discarded(self):
        """Verify cache-only usage is discarded."""
        record = log_record()
        record["message"]["usage"] = {
            "input_tokens": 0,
            "output_tokens": 0,
            "cache_creation_input_tokens": 1000,
        }
        assert normalize_record(record) is None

    @pytest.mark.parametrize("value", [None, "", "yesterday", 1735726620])
    def test_invalid_timestamp_discarded(self, value):
        """Verify missing or unparseable timestamps are discarded."""
        record = log_record(timestamp=value)
        assert normalize_record(record) is None

    def test_absent_timestamp_discarded(self):
        """Verify a record without any timestamp is discarded."""
        record = log_record()
        del record["timestamp"]
        assert normalize_record(record) is None

    @pytest.mark.parametrize("value", ["100", -5, 1.5, True])
    def test_invalid_counters_discarded(self, value):
        """Verify non-integer or negative counters are discarded."""
        record = log_record()
        record["message"]["usage"]["input_tokens"] = value
        assert normalize_record(record) is None

    def test_null_counters_default_to_zero(self):
        """Verify missing or null sub-fields default to zero."""
        record = log_record()
        record["message"]["usage"] = {"input_tokens": None, "output_tokens": 7}
        event = normalize_record(record)
        assert event.usage == UsageCounts(output_tokens=7)

    def test_non_object_discarded(self):
        """Verify non-object JSON values are discarded."""
        assert normalize_record(["not", "a", "record"]) is None
        assert normalize_record("text") is None
        assert normalize_record(None) is None

    def test_correlation_id_fallbacks(self):
        """Verify request_id, then requestId, then the unknown sentinel."""
        assert normalize_record(log_record(request_id="req_snake")).correlation_id == "req_snake"

        record = log_record()
        del record["requestId"]
        assert normalize_record(record).correlation_id == "unknown"

    def test_id_falls_back_to_uuid(self):
        """Verify the record uuid is used when the message has no id."""
        record = log_record()
        del record["message"]["id"]
        assert normalize_record(record).id == "uuid-1"

        del record["uuid"]
        assert normalize_record(record).id == ""

    def test_role_defaults_to_user(self):
        """Verify missing or unknown roles become user."""
        record = log_record()
        record["message"]["role"] = "system"
        assert normalize_record(record).role == Role.USER

    def test_offset_timestamp_converted_to_utc(self):
        """Verify timestamps with an offset are stored in UTC."""
        event = normalize_record(log_record(timestamp="2025-01-01T12:17:00+02:00"))
        assert event.timestamp == datetime(2025, 1, 1, 10, 17, tzinfo=timezone.utc)
        assert event.timestamp.tzinfo == timezone.utc

    def test_naive_timestamp_taken_as_utc(self):
        """Verify timestamps without an offset are interpreted as UTC."""
        event = normalize_record(log_record(timestamp="2025-01-01T10:17:00"))
        assert event.timestamp == datetime(2025, 1, 1, 10, 17, tzinfo=timezone.utc)

    def test_model_absent_is_legal(self):
        """Verify a record without any model still normalizes."""
        record = log_record()
        del record["message"]["model"]
        assert normalize_record(record).model is None


class TestExtractModel:
    """Test model resolution priority."""

    def test_priority_order(self):
        """Verify message, record, Model, usage, request are probed in order."""
        record = {
            "model": "record-model",
            "Model": "capital-model",
            "request": {"model": "request-model"},
        }
        message = {"model": "message-model", "usage": {"model": "usage-model"}}

        assert extract_model(record, message) == "message-model"
        del message["model"]
        assert extract_model(record, message) == "record-model"
        del record["model"]
        assert extract_model(record, message) == "capital-model"
        del record["Model"]
        assert extract_model(record, message) == "usage-model"
        del message["usage"]
        assert extract_model(record, message) == "request-model"
        del record["request"]
        assert extract_model(record, message) is None

    def test_empty_and_non_string_skipped(self):
        """Verify empty strings and non-strings are not accepted."""
        record = {"model": "", "Model": 42, "request": {"model": "request-model"}}
        assert extract_model(record, {}) == "request-model"
