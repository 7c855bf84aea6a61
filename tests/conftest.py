import time
from datetime import datetime, timezone
from typing import Callable, Iterator

import pytest
from prometheus_client import CollectorRegistry

from tokenblocks.models import UsageRecord


@pytest.fixture()
def registry() -> "CollectorRegistry":
    """
    fresh Prometheus registry to avoid cross-test state.
    """
    return CollectorRegistry()


@pytest.fixture()
def make_record() -> "Callable[..., UsageRecord]":
    """
    builds usage records on 2026-03-02 (UTC) from an hour and
    minute, with overridable token counts, cost and model.
    """

    def _make(
        hour: "int",
        minute: "int" = 0,
        *,
        day: "int" = 2,
        model: "str" = "gpt-4o",
        prompt_tokens: "int" = 100,
        completion_tokens: "int" = 50,
        cost: "float" = 0.01,
        request_count: "int" = 1,
    ) -> "UsageRecord":
        return UsageRecord(
            timestamp=datetime(2026, 3, day, hour, minute, tzinfo=timezone.utc),
            model=model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
            cost=cost,
            request_count=request_count,
        )

    return _make


@pytest.fixture()
def central_european_time(monkeypatch: "pytest.MonkeyPatch") -> "Iterator[None]":
    """
    switches process local time to Central European Time with its
    DST rules. The zone is spelled as a POSIX rule so no tz database
    is needed.
    """
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")

    monkeypatch.setenv("TZ", "CET-1CEST,M3.5.0,M10.5.0/3")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()
