"""
Seed demo feedback for San Francisco at the current hour so the
summary endpoint has something real-looking to show.

Usage: python scripts/seed_demo_feedback.py
"""
import asyncio
import random
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from forecast_feedback.config import Settings, create_engine_and_session_factory
from forecast_feedback.database import init_models
from forecast_feedback.database.repositories import (
    FeedbackRepository,
    LocationRepository,
    UserRepository,
)
from forecast_feedback.utils import normalize_to_hour

SF_LOCATION = {
    "name": "San Francisco, CA, USA",
    "latitude": 37.7749,
    "longitude": -122.4194,
    "timezone": "America/Los_Angeles",
}

NEIGHBORHOODS = ["SoMa", "Sunset", "Mission", "Richmond", "Nob Hill", "Marina"]
FIRST_NAMES = ["Alex", "Jordan", "Maria", "Sam", "Taylor", "Chris"]

COMMENT_TEMPLATES = [
    ("like", "Forecast said sunny and it actually is. Clear skies and mild breeze."),
    ("like", "Matched almost perfectly. Mild wind, sun peeking through, no surprise rain."),
    ("like", "Called the temp within a couple degrees. Feels spot on outside."),
    ("like", "Showed clouds and cool temps, which is exactly what I'm seeing."),
    ("like", "Forecast said light rain later, and the drizzle just started. Impressed."),
    ("like", "The timing on the fog rolling in was pretty accurate."),
    ("like", "Wind speed estimate is close enough. It definitely feels like what was shown."),
    ("like", "Temperature and cloud cover match really well for once."),
    ("like", "Said breezy and cool. I went out with a hoodie and it was exactly right."),
    ("like", "Very close call on the rainfall probability. It did sprinkle just like it said."),
    ("dislike", "App said clear, but it's actually foggy and damp in Outer Sunset."),
    ("dislike", "Forecast showed no rain, but it's been lightly raining for 30 minutes."),
    ("dislike", "Way off on temperature. Feels at least 5 degrees colder than shown."),
    ("dislike", "Said low chance of rain and I'm currently getting soaked at the bus stop."),
    ("dislike", "Wind forecast was wrong. It's much gustier than what the app shows."),
    ("dislike", "Called for sun, but it's overcast and gray everywhere I've been."),
    ("dislike", "Precipitation probability feels unreliable. It said 5%, it's clearly raining."),
    ("dislike", "Completely missed the fog bank that rolled in from the ocean."),
    ("dislike", "Sky condition is wrong. Definitely more cloud cover than predicted."),
    ("dislike", "Feels like the app is lagging the actual conditions by a few hours."),
    ("like", "Near-perfect for my neighborhood in SoMa, temp and sky look right."),
    ("like", "Short-term forecast nailed it, especially the wind and chill."),
    ("like", "Good call on the cool temperatures even with the sun out."),
    ("dislike", "Mission District is much warmer than the forecast suggests right now."),
    ("dislike", "App said drizzle later, but it's already raining steadily here."),
    ("like", "Fog forecast was solid. Felt accurate around Twin Peaks too."),
    ("like", "Hourly curve looks pretty accurate to what I've seen today."),
    ("dislike", "Underestimates how windy it feels near the water."),
    ("dislike", "The rain radar looked clean but it's clearly raining in my area."),
    ("like", "Pretty close overall. Minor differences, but usable and helpful."),
    ("like", "Cloud coverage and temp match really well for downtown right now."),
    ("dislike", "Forecast still says dry but the sidewalk is fully wet."),
    ("like", "It warned me about cooler temps later and that did happen."),
    ("dislike", "Feels like the model doesn't see microclimates well near the parks."),
    ("like", "Not perfect, but good enough that I trusted it for what to wear."),
    ("dislike", "Sun icon is lying. Heavy marine layer overhead."),
]


def current_hour(now: Optional[datetime] = None) -> datetime:
    """The hour being seeded, as an absolute UTC instant like API clients send."""
    now = now or datetime.now(timezone.utc)
    return normalize_to_hour(now.astimezone(timezone.utc))


async def seed(settings: Optional[Settings] = None, now: Optional[datetime] = None):
    settings = settings or Settings.from_env()
    engine, session_factory = create_engine_and_session_factory(settings)
    await init_models(engine)

    seed_hour = current_hour(now)
    print(f"Seeding demo feedback for: {SF_LOCATION['name']}")
    print(f"Target forecast hour (current hour, UTC): {seed_hour.isoformat()}")

    templates = COMMENT_TEMPLATES[:]
    random.shuffle(templates)

    async with session_factory() as db:
        location = await LocationRepository(db).get_or_create(**SF_LOCATION)
        feedback_repo = FeedbackRepository(db)
        users = UserRepository(db)

        removed = await feedback_repo.delete_for_scope(location.id, seed_hour)
        print(f"Removed {removed} existing feedback records for this hour")

        # One record per user and hour, so every comment gets its own demo user
        for i, (rating, text) in enumerate(templates):
            name = f"{FIRST_NAMES[i % len(FIRST_NAMES)]} in {NEIGHBORHOODS[(i // len(FIRST_NAMES)) % len(NEIGHBORHOODS)]}"
            user = await users.ensure(f"demo-user-{i + 1}", name)
            await feedback_repo.submit(user.id, location.id, seed_hour, rating, text)

    print(f"Inserted {len(templates)} demo feedback records.")
    await engine.dispose()
    print("Done.")


if __name__ == "__main__":
    asyncio.run(seed())
