from datetime import datetime, timedelta, timezone
from typing import Callable

import pytest
from prometheus_client import CollectorRegistry

from ccstat.models import UsageRecord

# midnight UTC, block boundaries in tests are relative to this
BASE_TIME = datetime(2025, 9, 12, tzinfo=timezone.utc)


@pytest.fixture()
def registry() -> "CollectorRegistry":
    """
    fresh Prometheus registry to avoid cross-test state.
    """
    return CollectorRegistry()


@pytest.fixture()
def make_record() -> "Callable[..., UsageRecord]":
    """
    builds a UsageRecord at BASE_TIME + offset.
    """

    def _make(offset: "timedelta" = timedelta(), **overrides: "object") -> "UsageRecord":
        fields: "dict[str, object]" = {
            "timestamp": BASE_TIME + offset,
            "input_tokens": 10,
            "output_tokens": 5,
            "cache_creation_tokens": 0,
            "cache_read_tokens": 0,
            "model": "claude-sonnet-4",
            "project": "-home-user-proj",
        }
        fields.update(overrides)
        return UsageRecord(**fields)

    return _make
