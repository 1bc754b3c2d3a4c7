"""Shared builders for scheduling tests.

Series, completions and horizons are built as plain dicts, the same shape a
caller sends over the API.
"""

import os

import pytest

os.environ.setdefault("LOG_LEVEL", "WARNING")


def _series(series_id: str, start: str = "2025-01-01", **overrides) -> dict:
    data = {
        "id": series_id,
        "title": series_id.title(),
        "patterns": [{"pattern": {"type": "daily"}}],
        "duration": 30,
        "bounds": {"startDate": start},
    }
    data.update(overrides)
    return data


def _completion(series_id: str, start: str, minutes: int = 30, cid: str = None) -> dict:
    day, clock = start.split("T")
    hour, minute = (int(x) for x in clock.split(":"))
    end_total = hour * 60 + minute + minutes
    end = f"{day}T{end_total // 60:02d}:{end_total % 60:02d}"
    return {
        "id": cid or f"{series_id}@{start}",
        "seriesId": series_id,
        "startTime": start,
        "endTime": end,
        "actualDuration": minutes,
    }


@pytest.fixture
def make_series():
    """Factory for a daily series bounded to start on 2025-01-01 by default."""
    return _series


@pytest.fixture
def make_completion():
    """Factory for a completion record starting at `YYYY-MM-DDTHH:MM`."""
    return _completion


@pytest.fixture
def horizon():
    return {"start": "2025-01-01", "end": "2025-01-05"}
