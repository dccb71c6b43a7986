# --- Forecast Feedback Utility Functions ---
from datetime import datetime, timezone
from typing import Union

from forecast_feedback.errors import InvalidRating, InvalidTimestamp

VALID_RATINGS = ("like", "dislike")

# Aggregation granularity for cached summaries (the only one defined)
SUMMARY_WINDOW_HOUR = "hour"


def parse_forecast_time(value: Union[str, datetime, None]) -> datetime:
    """Parse an ISO-8601 string (or pass through a datetime)."""
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        raise InvalidTimestamp(f"Unparseable forecastTime: {value!r}")

    text = value.strip()
    # fromisoformat only accepts the 'Z' suffix from Python 3.11 on
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError as e:
        raise InvalidTimestamp(f"Unparseable forecastTime: {value!r}") from e


def normalize_to_hour(value: Union[str, datetime]) -> datetime:
    """Truncate a timestamp to the start of its clock hour.

    No timezone conversion is performed: an aware datetime keeps its offset,
    a naive one stays naive.
    """
    return parse_forecast_time(value).replace(minute=0, second=0, microsecond=0)


def to_storage_hour(hour: datetime) -> datetime:
    """Key used in the database: aware hours become naive UTC."""
    if hour.tzinfo is not None:
        return hour.astimezone(timezone.utc).replace(tzinfo=None)
    return hour


def validate_rating(rating: str) -> str:
    if rating not in VALID_RATINGS:
        raise InvalidRating("rating must be 'like' or 'dislike'")
    return rating


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
