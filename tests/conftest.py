"""Shared fixtures: a throwaway SQLite database and a scriptable summarizer."""

import pytest

from forecast_feedback.clients.summarizer_client import GenerationResult
from forecast_feedback.config import Settings, create_engine_and_session_factory
from forecast_feedback.database import init_models
from forecast_feedback.models import FeedbackRequest
from forecast_feedback.services import SummaryService

HOUR = "2025-03-14T15:00:00Z"

GOOD_COMMENTS = [
    "Forecast said sunny and it actually is. Clear skies all afternoon.",
    "Way off on temperature, feels at least 5 degrees colder than shown.",
    "Said low chance of rain and I'm currently getting soaked at the bus stop.",
    "Wind forecast was close enough, breezy like the app showed.",
]


class FakeSummarizer:
    """Stands in for the OpenAI adapter; records every call."""

    def __init__(self, text="Users report a mixed picture: temperatures were right but rain was missed."):
        self.text = text
        self.success = True
        self.label = "fake-model"
        self.calls = []

    async def generate(self, location_name, forecast_hour, stats, comments):
        self.calls.append({
            "location_name": location_name,
            "forecast_hour": forecast_hour,
            "stats": stats,
            "comments": list(comments),
        })
        if not self.success:
            return GenerationResult(success=False, error="simulated failure")
        return GenerationResult(success=True, text=self.text)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        openai_api_key=None,
        jwt_secret="test-secret-for-forecast-feedback-tokens",
    )


@pytest.fixture
async def session_factory(settings):
    engine, factory = create_engine_and_session_factory(settings)
    await init_models(engine)
    yield factory
    await engine.dispose()


@pytest.fixture
def fake_summarizer():
    return FakeSummarizer()


@pytest.fixture
def service(session_factory, fake_summarizer):
    return SummaryService(session_factory, fake_summarizer)


@pytest.fixture
def submit(service):
    """Submit feedback through the service with sensible defaults."""

    async def _submit(user_id, rating="like", comment="", location="Testville", when=HOUR):
        return await service.submit_feedback(
            user_id=user_id,
            display_name=f"Name of {user_id}",
            request=FeedbackRequest(
                locationName=location,
                latitude=40.0,
                longitude=-75.0,
                timezone="America/New_York",
                forecastTime=when,
                rating=rating,
                commentText=comment,
            ),
        )

    return _submit
