"""
Database models for the forecast feedback system.
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, Float, ForeignKey, UniqueConstraint
from sqlalchemy.orm import declarative_base, relationship

from forecast_feedback.utils import utcnow, SUMMARY_WINDOW_HOUR

Base = declarative_base()


class User(Base):
    """Identity supplied by the authentication collaborator (token subject)."""
    __tablename__ = "users"

    id = Column(String(64), primary_key=True)
    display_name = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    feedback = relationship("Feedback", back_populates="user")


class Location(Base):
    """Named location; coordinates are set by the first writer only."""
    __tablename__ = "locations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), unique=True, nullable=False, index=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    timezone = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    feedback = relationship("Feedback", back_populates="location")


class Feedback(Base):
    """One like/dislike per user, location and forecast hour."""
    __tablename__ = "feedback"
    __table_args__ = (
        UniqueConstraint("user_id", "location_id", "forecast_hour", name="uq_feedback_user_location_hour"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=False, index=True)
    forecast_hour = Column(DateTime, nullable=False, index=True)
    rating = Column(String(10), nullable=False)  # 'like' or 'dislike'
    comment_text = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = relationship("User", back_populates="feedback")
    location = relationship("Location", back_populates="feedback")

    def __repr__(self):
        return f"<Feedback(id={self.id}, user_id='{self.user_id}', rating='{self.rating}')>"


class AISummary(Base):
    """Cached summary for a (location, forecast hour, window), served unchanged once stored."""
    __tablename__ = "ai_summaries"
    __table_args__ = (
        UniqueConstraint("location_id", "forecast_hour", "summary_window", name="uq_summary_location_hour_window"),
    )

    id = Column(Integer, primary_key=True, index=True)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=False)
    forecast_hour = Column(DateTime, nullable=False)
    window = Column("summary_window", String(20), nullable=False, default=SUMMARY_WINDOW_HOUR)

    # Stats snapshot at generation time
    total_feedback = Column(Integer, nullable=False, default=0)
    likes = Column(Integer, nullable=False, default=0)
    dislikes = Column(Integer, nullable=False, default=0)
    unique_users = Column(Integer, nullable=False, default=0)

    summary_text = Column(Text, nullable=False)
    generator = Column(String(100), nullable=False)  # model name or 'deterministic'
    generated_at = Column(DateTime, default=utcnow, nullable=False)
