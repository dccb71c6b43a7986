"""
Feedback aggregation and summary orchestration.

A summary request first consults the summary cache. On a miss the scope's
feedback is aggregated and the eligibility gate decides between the
deterministic template and a generated summary. Only successful generations
are cached; the deterministic text is rebuilt on every miss so that a later
request can still generate once enough feedback has accumulated.
"""
import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Set, Union

from sqlalchemy.exc import SQLAlchemyError

from forecast_feedback.clients.summarizer_client import ForecastSummarizer
from forecast_feedback.database.models import AISummary, Feedback
from forecast_feedback.database.repositories import (
    FeedbackRepository,
    LocationRepository,
    SummaryCacheRepository,
    UpsertOutcome,
    UpsertResult,
    UserRepository,
)
from forecast_feedback.errors import InvalidRequest
from forecast_feedback.models import (
    FeedbackComment,
    FeedbackRequest,
    FeedbackStats,
    FeedbackSummaryResponse,
)
from forecast_feedback.utils import normalize_to_hour, validate_rating, SUMMARY_WINDOW_HOUR

logger = logging.getLogger(__name__)

MIN_COMMENT_LENGTH = 10
MIN_MEANINGFUL_COMMENTS = 3
MIN_UNIQUE_USERS_FOR_AI = 2

_HAS_LETTER = re.compile(r"[a-zA-Z]")


# --- Aggregation ---

def aggregate(records: Iterable[Feedback]) -> FeedbackStats:
    likes = 0
    dislikes = 0
    users = set()
    for record in records:
        if record.rating == "like":
            likes += 1
        elif record.rating == "dislike":
            dislikes += 1
        users.add(str(record.user_id))

    return FeedbackStats(
        likes=likes,
        dislikes=dislikes,
        totalFeedback=likes + dislikes,
        uniqueUsers=len(users)
    )


# --- Eligibility gate ---

@dataclass(frozen=True)
class UseDeterministic:
    pass


@dataclass(frozen=True)
class UseGenerated:
    comments: List[str]


SummaryDecision = Union[UseDeterministic, UseGenerated]


def filter_meaningful_comments(comments: Iterable[Optional[str]]) -> List[str]:
    """Spam/noise filter: at least 10 characters and at least one letter."""
    meaningful = []
    for comment in comments:
        text = (comment or "").strip()
        if len(text) >= MIN_COMMENT_LENGTH and _HAS_LETTER.search(text):
            meaningful.append(text)
    return meaningful


def decide(
    stats: FeedbackStats,
    comments: Iterable[Optional[str]],
    summarizer_configured: bool = True
) -> SummaryDecision:
    meaningful = filter_meaningful_comments(comments)
    if (
        not summarizer_configured
        or len(meaningful) < MIN_MEANINGFUL_COMMENTS
        or stats.uniqueUsers < MIN_UNIQUE_USERS_FOR_AI
    ):
        return UseDeterministic()
    return UseGenerated(comments=meaningful)


def build_deterministic_summary(stats: FeedbackStats) -> str:
    entries = "entry" if stats.totalFeedback == 1 else "entries"
    return (
        f"Based on {stats.totalFeedback} feedback {entries} so far, "
        f"{stats.likes} like(s) and {stats.dislikes} dislike(s) have been recorded for this hour. "
        "There is not yet enough consistent commentary from multiple users to generate an AI summary."
    )


def _stats_from_cache(entry: AISummary) -> FeedbackStats:
    return FeedbackStats(
        likes=entry.likes,
        dislikes=entry.dislikes,
        totalFeedback=entry.total_feedback,
        uniqueUsers=entry.unique_users
    )


def _to_comment(record: Feedback) -> FeedbackComment:
    return FeedbackComment(
        id=record.id,
        userId=record.user_id,
        userDisplayName=record.user.display_name if record.user else "User",
        commentText=record.comment_text or "",
        rating=record.rating,
        createdAt=record.created_at
    )


class SummaryService:
    """Feedback submission and cached summary retrieval.

    Each call opens its own session from the factory. Generation runs in a
    shielded task with a separate session, so a caller that goes away does
    not cancel an in-flight summarizer call; its result is still cached.
    """

    def __init__(self, session_factory, summarizer: Optional[ForecastSummarizer] = None):
        self.session_factory = session_factory
        self.summarizer = summarizer
        self._pending: Set[asyncio.Task] = set()

    async def submit_feedback(
        self,
        user_id: str,
        display_name: str,
        request: FeedbackRequest
    ) -> UpsertResult[Feedback]:
        if not request.locationName or not request.forecastTime or not request.rating:
            raise InvalidRequest("locationName, forecastTime, and rating are required")
        rating = validate_rating(request.rating)
        forecast_hour = normalize_to_hour(request.forecastTime)

        async with self.session_factory() as db:
            await UserRepository(db).ensure(user_id, display_name)
            location = await LocationRepository(db).get_or_create(
                name=request.locationName,
                latitude=request.latitude,
                longitude=request.longitude,
                timezone=request.timezone
            )
            result = await FeedbackRepository(db).submit(
                user_id=user_id,
                location_id=location.id,
                forecast_hour=forecast_hour,
                rating=rating,
                comment_text=request.commentText or ""
            )

        logger.info(
            "[FEEDBACK] %s feedback user=%s location='%s' hour=%s rating=%s",
            result.outcome.value, user_id, request.locationName, forecast_hour.isoformat(), rating
        )
        return result

    async def get_or_build_summary(
        self,
        location_name: Optional[str],
        forecast_time: Union[str, datetime, None]
    ) -> FeedbackSummaryResponse:
        if not location_name or not forecast_time:
            raise InvalidRequest("locationName and forecastTime are required")

        async with self.session_factory() as db:
            location = await LocationRepository(db).get_by_name(location_name)
            if location is None:
                # Unknown location answers empty for any forecastTime
                return FeedbackSummaryResponse(stats=FeedbackStats(), comments=[], aiSummary=None)

            forecast_hour = normalize_to_hour(forecast_time)
            records = await FeedbackRepository(db).query(location.id, forecast_hour)
            cached = await SummaryCacheRepository(db).get(location.id, forecast_hour, SUMMARY_WINDOW_HOUR)

        comments = [_to_comment(r) for r in records]

        if cached:
            logger.info("[SUMMARY] Cache hit for '%s' @ %s", location.name, forecast_hour.isoformat())
            return FeedbackSummaryResponse(
                stats=_stats_from_cache(cached),
                comments=comments,
                aiSummary=cached.summary_text
            )

        stats = aggregate(records)
        if stats.totalFeedback == 0:
            return FeedbackSummaryResponse(stats=stats, comments=comments, aiSummary=None)

        decision = decide(stats, [r.comment_text for r in records], self.summarizer is not None)
        summary_text = None
        if isinstance(decision, UseGenerated):
            summary_text = await self._generate_shielded(
                location.id, location.name, forecast_hour, stats, decision.comments
            )
        if summary_text is None:
            summary_text = build_deterministic_summary(stats)

        return FeedbackSummaryResponse(stats=stats, comments=comments, aiSummary=summary_text)

    async def _generate_shielded(
        self,
        location_id: int,
        location_name: str,
        forecast_hour: datetime,
        stats: FeedbackStats,
        comments: List[str]
    ) -> Optional[str]:
        task = asyncio.ensure_future(
            self._generate_and_store(location_id, location_name, forecast_hour, stats, comments)
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return await asyncio.shield(task)

    async def _generate_and_store(
        self,
        location_id: int,
        location_name: str,
        forecast_hour: datetime,
        stats: FeedbackStats,
        comments: List[str]
    ) -> Optional[str]:
        result = await self.summarizer.generate(location_name, forecast_hour, stats, comments)
        if not result.success:
            logger.warning(
                "[SUMMARY] Generation failed for '%s' @ %s (%s), using deterministic summary",
                location_name, forecast_hour.isoformat(), result.error
            )
            return None

        try:
            async with self.session_factory() as db:
                stored = await SummaryCacheRepository(db).store(
                    location_id=location_id,
                    forecast_hour=forecast_hour,
                    stats=stats,
                    summary_text=result.text,
                    generator=self.summarizer.label,
                    window=SUMMARY_WINDOW_HOUR
                )
        except SQLAlchemyError as e:
            logger.error("[SUMMARY] Failed to cache generated summary: %s", e)
            return result.text

        if stored.record is None:
            return result.text
        if stored.outcome == UpsertOutcome.KEPT_EXISTING:
            logger.info(
                "[SUMMARY] Summary for '%s' @ %s was cached by another request, serving the stored text",
                location_name, forecast_hour.isoformat()
            )
        else:
            logger.info("[SUMMARY] Cached generated summary for '%s' @ %s", location_name, forecast_hour.isoformat())
        return stored.record.summary_text

    async def wait_for_pending(self) -> None:
        """Let in-flight generations finish (used on shutdown)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
