from pydantic import BaseModel
from typing import List, Optional, Union
from datetime import datetime

# --- Pydantic Models for the Forecast Feedback API ---


class FeedbackStats(BaseModel):
    """Aggregate counts for one (location, forecast hour) scope."""
    likes: int = 0
    dislikes: int = 0
    totalFeedback: int = 0
    uniqueUsers: int = 0


class FeedbackRequest(BaseModel):
    """Schema for receiving feedback from the frontend.

    Required fields are optional here so that missing values are reported
    as 400 with a readable reason instead of a schema error.
    """
    locationName: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    timezone: Optional[str] = None
    forecastTime: Optional[Union[datetime, str]] = None
    rating: Optional[str] = None
    commentText: Optional[str] = ""

    class Config:
        json_schema_extra = {
            "example": {
                "locationName": "San Francisco, CA, USA",
                "latitude": 37.7749,
                "longitude": -122.4194,
                "timezone": "America/Los_Angeles",
                "forecastTime": "2025-01-15T14:25:00Z",
                "rating": "dislike",
                "commentText": "Forecast showed no rain, but it has been drizzling for an hour."
            }
        }


class FeedbackSubmitResponse(BaseModel):
    ok: bool = True
    feedbackId: int
    outcome: str  # 'inserted' or 'updated_existing'


class FeedbackComment(BaseModel):
    id: int
    userId: str
    userDisplayName: str
    commentText: str
    rating: str
    createdAt: datetime


class FeedbackSummaryResponse(BaseModel):
    """Stats, newest-first comments and the summary sentence for one hour."""
    stats: FeedbackStats
    comments: List[FeedbackComment] = []
    aiSummary: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "stats": {"likes": 1, "dislikes": 1, "totalFeedback": 2, "uniqueUsers": 2},
                "comments": [],
                "aiSummary": "Based on 2 feedback entries so far, 1 like(s) and 1 dislike(s) have been recorded for this hour. There is not yet enough consistent commentary from multiple users to generate an AI summary."
            }
        }
