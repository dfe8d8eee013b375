import json
import logging

import pytest
from prometheus_client import REGISTRY

from portal.common.logging import JsonFormatter
from portal.infra.observability.metrics import track_operation


def _count(operation: str, outcome: str) -> float:
    value = REGISTRY.get_sample_value(
        "storage_operations_total",
        {"operation": operation, "outcome": outcome},
    )
    return value or 0.0


def test_track_operation_counts_success():
    before = _count("test_success", "success")

    with track_operation("test_success"):
        pass

    assert _count("test_success", "success") == before + 1
    assert (
        REGISTRY.get_sample_value(
            "storage_operation_duration_seconds_count", {"operation": "test_success"}
        )
        >= 1
    )


def test_track_operation_counts_errors_and_reraises():
    before = _count("test_error", "error")

    with pytest.raises(KeyError):
        with track_operation("test_error"):
            raise KeyError("boom")

    assert _count("test_error", "error") == before + 1
    assert _count("test_error", "success") == 0


def test_json_formatter_merges_extra_fields():
    record = logging.LogRecord(
        "portal.storage", logging.ERROR, __file__, 1, "upload failed key=%s", ("a",), None
    )
    record.extra = {"key": "a", "bucket": "b"}

    payload = json.loads(JsonFormatter().format(record))

    assert payload == {
        "level": "ERROR",
        "logger": "portal.storage",
        "message": "upload failed key=a",
        "key": "a",
        "bucket": "b",
    }
