"""
Repository layer for database operations related to locations, feedback and cached summaries.

Writes that must stay unique per key (feedback per user/location/hour, summary per
location/hour/window, location per name) rely on the table's unique constraint:
an insert that loses a race raises IntegrityError and is retried as an update
(or, for locations, as a read of the winning row).
"""
import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from sqlalchemy import and_, delete, desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from forecast_feedback.models import FeedbackStats
from forecast_feedback.utils import SUMMARY_WINDOW_HOUR, to_storage_hour, utcnow
from .models import AISummary, Feedback, Location, User

logger = logging.getLogger(__name__)

T = TypeVar("T")


class UpsertOutcome(str, enum.Enum):
    INSERTED = "inserted"
    UPDATED_EXISTING = "updated_existing"
    KEPT_EXISTING = "kept_existing"
    CONFLICT_UNRESOLVED = "conflict_unresolved"


@dataclass
class UpsertResult(Generic[T]):
    outcome: UpsertOutcome
    record: Optional[T] = None


class UserRepository:
    """Repository for users known from verified tokens."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def ensure(self, user_id: str, display_name: str) -> User:
        """Create the user row on first sight, refresh the display name otherwise."""
        user = await self.db.get(User, user_id)
        if user:
            if display_name and user.display_name != display_name:
                user.display_name = display_name
                await self.db.commit()
            return user

        user = User(id=user_id, display_name=display_name or "User")
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            user = await self.db.get(User, user_id)
        return user


class LocationRepository:
    """Repository for Location lookups; first writer wins on coordinates."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_name(self, name: str) -> Optional[Location]:
        result = await self.db.execute(
            select(Location).where(Location.name == name)
        )
        return result.scalar_one_or_none()

    async def get_or_create(
        self,
        name: str,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        timezone: Optional[str] = None
    ) -> Location:
        location = await self.get_by_name(name)
        if location:
            return location

        location = Location(name=name, latitude=latitude, longitude=longitude, timezone=timezone)
        self.db.add(location)
        try:
            await self.db.commit()
        except IntegrityError:
            # Another request created it first
            await self.db.rollback()
            location = await self.get_by_name(name)
            if location is None:
                raise
            return location

        await self.db.refresh(location)
        logger.info("[LOCATION] Created location '%s' (id=%s)", name, location.id)
        return location


class FeedbackRepository:
    """Repository for Feedback operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _find(self, user_id: str, location_id: int, forecast_hour: datetime) -> Optional[Feedback]:
        result = await self.db.execute(
            select(Feedback).where(
                and_(
                    Feedback.user_id == user_id,
                    Feedback.location_id == location_id,
                    Feedback.forecast_hour == forecast_hour
                )
            )
        )
        return result.scalar_one_or_none()

    async def _update(self, feedback: Feedback, rating: str, comment_text: str) -> Feedback:
        feedback.rating = rating
        feedback.comment_text = comment_text
        feedback.updated_at = utcnow()
        await self.db.commit()
        await self.db.refresh(feedback)
        return feedback

    async def submit(
        self,
        user_id: str,
        location_id: int,
        forecast_hour: datetime,
        rating: str,
        comment_text: str = ""
    ) -> UpsertResult[Feedback]:
        """Insert or overwrite the user's feedback for this location and hour.

        created_at is only set on insert. Rating and comment follow
        last-writer-wins.
        """
        forecast_hour = to_storage_hour(forecast_hour)
        comment_text = comment_text or ""

        existing = await self._find(user_id, location_id, forecast_hour)
        if existing:
            feedback = await self._update(existing, rating, comment_text)
            return UpsertResult(UpsertOutcome.UPDATED_EXISTING, feedback)

        feedback = Feedback(
            user_id=user_id,
            location_id=location_id,
            forecast_hour=forecast_hour,
            rating=rating,
            comment_text=comment_text
        )
        self.db.add(feedback)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.info(
                "[FEEDBACK] Duplicate key for user=%s location=%s hour=%s, retrying as update",
                user_id, location_id, forecast_hour.isoformat()
            )
            existing = await self._find(user_id, location_id, forecast_hour)
            if existing is None:
                logger.warning("[FEEDBACK] Conflict could not be resolved as an update")
                return UpsertResult(UpsertOutcome.CONFLICT_UNRESOLVED)
            feedback = await self._update(existing, rating, comment_text)
            return UpsertResult(UpsertOutcome.UPDATED_EXISTING, feedback)

        await self.db.refresh(feedback)
        return UpsertResult(UpsertOutcome.INSERTED, feedback)

    async def query(self, location_id: int, forecast_hour: datetime) -> List[Feedback]:
        """All feedback for one location and hour, newest first."""
        result = await self.db.execute(
            select(Feedback)
            .options(selectinload(Feedback.user))
            .where(
                and_(
                    Feedback.location_id == location_id,
                    Feedback.forecast_hour == to_storage_hour(forecast_hour)
                )
            )
            .order_by(desc(Feedback.created_at), desc(Feedback.id))
        )
        return list(result.scalars().all())

    async def delete_for_scope(self, location_id: int, forecast_hour: datetime) -> int:
        """Administrative delete (used by the demo seeding script)."""
        result = await self.db.execute(
            delete(Feedback).where(
                and_(
                    Feedback.location_id == location_id,
                    Feedback.forecast_hour == to_storage_hour(forecast_hour)
                )
            )
        )
        await self.db.commit()
        return result.rowcount or 0


class SummaryCacheRepository:
    """Repository for cached summaries keyed by (location, hour, window)."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(
        self,
        location_id: int,
        forecast_hour: datetime,
        window: str = SUMMARY_WINDOW_HOUR
    ) -> Optional[AISummary]:
        result = await self.db.execute(
            select(AISummary).where(
                and_(
                    AISummary.location_id == location_id,
                    AISummary.forecast_hour == to_storage_hour(forecast_hour),
                    AISummary.window == window
                )
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _apply(entry: AISummary, stats: FeedbackStats, summary_text: str, generator: str) -> None:
        # Snapshot and text always travel together in one commit
        entry.total_feedback = stats.totalFeedback
        entry.likes = stats.likes
        entry.dislikes = stats.dislikes
        entry.unique_users = stats.uniqueUsers
        entry.summary_text = summary_text
        entry.generator = generator
        entry.generated_at = utcnow()

    async def store(
        self,
        location_id: int,
        forecast_hour: datetime,
        stats: FeedbackStats,
        summary_text: str,
        generator: str,
        window: str = SUMMARY_WINDOW_HOUR
    ) -> UpsertResult[AISummary]:
        """Insert the entry unless one exists; a stored entry is never replaced."""
        forecast_hour = to_storage_hour(forecast_hour)

        existing = await self.get(location_id, forecast_hour, window)
        if existing:
            return UpsertResult(UpsertOutcome.KEPT_EXISTING, existing)

        entry = AISummary(location_id=location_id, forecast_hour=forecast_hour, window=window)
        self._apply(entry, stats, summary_text, generator)
        self.db.add(entry)
        try:
            await self.db.commit()
        except IntegrityError:
            # A concurrent generation stored its result first
            await self.db.rollback()
            existing = await self.get(location_id, forecast_hour, window)
            if existing is None:
                return UpsertResult(UpsertOutcome.CONFLICT_UNRESOLVED)
            return UpsertResult(UpsertOutcome.KEPT_EXISTING, existing)

        return UpsertResult(UpsertOutcome.INSERTED, entry)
