import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from openai import AsyncOpenAI

from forecast_feedback.config import Settings
from forecast_feedback.models import FeedbackStats

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = (
    "You summarize weather forecast accuracy based on user comments and basic statistics."
)


@dataclass
class GenerationResult:
    success: bool
    text: Optional[str] = None
    error: Optional[str] = None


def build_summary_prompt(
    location_name: str,
    forecast_hour: datetime,
    stats: FeedbackStats,
    comments: List[str]
) -> str:
    """Prompt with the stats block and the numbered meaningful comments."""
    numbered = "\n".join(f"{i}. {c}" for i, c in enumerate(comments, 1))
    return f"""
You are analyzing user comments about how accurate the current weather forecast is.

Location: {location_name}
Forecast time (normalized hour): {forecast_hour.isoformat()}

Stats:
- Total feedback entries: {stats.totalFeedback}
- Likes (forecast accurate): {stats.likes}
- Dislikes (forecast inaccurate): {stats.dislikes}
- Unique users: {stats.uniqueUsers}

User comments (only a sample of meaningful ones):
{numbered}

Task:
Provide a concise 2-3 sentence summary that:
- describes how accurate the forecast seems compared to real conditions,
- clearly states the overall sentiment (positive, mixed, or negative),
- notes any recurring issues users mention (e.g. wrong temperature, wrong precipitation, timing off),
- and mentions when the sample size is small or feedback is sparse, instead of overgeneralizing.

Respond as plain text with no bullet points.
""".strip()


class ForecastSummarizer:
    """Fail-soft adapter around the OpenAI chat completions API.

    generate() never raises: timeouts, HTTP errors, malformed or empty
    responses all come back as GenerationResult(success=False).
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        timeout_seconds: float = 8.0,
        max_tokens: int = 220,
        base_url: Optional[str] = None
    ):
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.max_tokens = max_tokens
        # Retries disabled so timeout_seconds is the real upper bound
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout_seconds,
            max_retries=0
        )

    @property
    def label(self) -> str:
        return self.model

    async def generate(
        self,
        location_name: str,
        forecast_hour: datetime,
        stats: FeedbackStats,
        comments: List[str]
    ) -> GenerationResult:
        prompt = build_summary_prompt(location_name, forecast_hour, stats, comments)
        logger.info(
            "[SUMMARIZER] Requesting summary for '%s' @ %s (%d comments, model=%s)",
            location_name, forecast_hour.isoformat(), len(comments), self.model
        )

        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": SYSTEM_INSTRUCTION},
                        {"role": "user", "content": prompt}
                    ],
                    max_tokens=self.max_tokens
                ),
                timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning("[SUMMARIZER] Timed out after %.1fs", self.timeout_seconds)
            return GenerationResult(success=False, error="timeout")
        except Exception as e:
            logger.error("[SUMMARIZER] Request failed: %s", e)
            return GenerationResult(success=False, error=str(e))

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as e:
            logger.error("[SUMMARIZER] Malformed response payload: %s", e)
            return GenerationResult(success=False, error="malformed response")

        text = (content or "").strip()
        if not text:
            logger.warning("[SUMMARIZER] Empty summary returned")
            return GenerationResult(success=False, error="empty response")

        logger.info("[SUMMARIZER] Summary received (%d characters)", len(text))
        return GenerationResult(success=True, text=text)

    async def close(self) -> None:
        await self.client.close()


def build_summarizer(settings: Settings) -> Optional[ForecastSummarizer]:
    """Return a summarizer, or None when no API key is configured."""
    if not settings.ai_configured:
        return None
    return ForecastSummarizer(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        timeout_seconds=settings.summarizer_timeout_seconds,
        max_tokens=settings.summarizer_max_tokens,
        base_url=settings.openai_base_url
    )
