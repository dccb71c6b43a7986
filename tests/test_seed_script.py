"""Tests for the demo seeding script."""

import importlib.util
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from forecast_feedback.utils import normalize_to_hour, parse_forecast_time, to_storage_hour

SCRIPT = Path(__file__).resolve().parent.parent / "scripts" / "seed_demo_feedback.py"


@pytest.fixture(scope="module")
def seed_script():
    spec = importlib.util.spec_from_file_location("seed_demo_feedback", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_current_hour_is_utc(seed_script):
    hour = seed_script.current_hour()
    assert hour.utcoffset() == timedelta(0)
    assert (hour.minute, hour.second, hour.microsecond) == (0, 0, 0)


def test_current_hour_matches_the_key_api_queries_use(seed_script):
    pacific_afternoon = datetime(2025, 3, 14, 8, 20, tzinfo=timezone(timedelta(hours=-8)))
    seeded = seed_script.current_hour(pacific_afternoon)

    queried = normalize_to_hour(parse_forecast_time("2025-03-14T16:20:00Z"))
    assert to_storage_hour(seeded) == to_storage_hour(queried) == datetime(2025, 3, 14, 16)


async def test_seeded_feedback_is_visible_to_summary_queries(seed_script, settings, service):
    now = datetime(2025, 3, 14, 16, 20, tzinfo=timezone.utc)
    await seed_script.seed(settings, now=now)

    summary = await service.get_or_build_summary(seed_script.SF_LOCATION["name"], "2025-03-14T16:45:00Z")
    assert summary.stats.totalFeedback == len(seed_script.COMMENT_TEMPLATES)
    assert summary.stats.uniqueUsers == len(seed_script.COMMENT_TEMPLATES)
