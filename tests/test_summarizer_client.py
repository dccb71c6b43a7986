"""Test the OpenAI summarizer adapter with mocked HTTP responses."""

import asyncio
import json
from datetime import datetime, timezone

import httpx
import pytest
import respx

from forecast_feedback.clients.summarizer_client import (
    ForecastSummarizer,
    build_summarizer,
    build_summary_prompt,
)
from forecast_feedback.config import Settings
from forecast_feedback.models import FeedbackStats

OPENAI_URL = "https://api.openai.com/v1"
HOUR = datetime(2025, 3, 14, 15, tzinfo=timezone.utc)
STATS = FeedbackStats(likes=2, dislikes=1, totalFeedback=3, uniqueUsers=3)
COMMENTS = [
    "Forecast said sunny and it actually is.",
    "Rain came an hour earlier than shown.",
    "Temperature was spot on this afternoon.",
]


def _completion(content):
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "created": 1710000000,
        "model": "gpt-4o-mini",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
        "usage": {"prompt_tokens": 100, "completion_tokens": 40, "total_tokens": 140},
    }


@pytest.fixture
async def summarizer():
    s = ForecastSummarizer(api_key="sk-test", model="gpt-4o-mini", timeout_seconds=2.0)
    yield s
    await s.close()


@pytest.fixture
def mock_openai():
    with respx.mock(base_url=OPENAI_URL, assert_all_called=False) as respx_mock:
        yield respx_mock


async def test_generate_success_returns_trimmed_text(summarizer, mock_openai):
    route = mock_openai.post("/chat/completions").mock(
        return_value=httpx.Response(200, json=_completion("  Mostly accurate, rain timing was off.  \n"))
    )

    result = await summarizer.generate("Testville", HOUR, STATS, COMMENTS)

    assert result.success is True
    assert result.text == "Mostly accurate, rain timing was off."
    assert route.called


async def test_request_contains_system_prompt_stats_and_token_budget(summarizer, mock_openai):
    route = mock_openai.post("/chat/completions").mock(
        return_value=httpx.Response(200, json=_completion("Fine."))
    )

    await summarizer.generate("Testville", HOUR, STATS, COMMENTS)

    body = json.loads(route.calls.last.request.content)
    assert body["model"] == "gpt-4o-mini"
    assert body["max_tokens"] == 220
    assert body["messages"][0]["role"] == "system"
    user_prompt = body["messages"][1]["content"]
    assert "Location: Testville" in user_prompt
    assert "- Total feedback entries: 3" in user_prompt
    assert "- Unique users: 3" in user_prompt
    assert "1. Forecast said sunny and it actually is." in user_prompt
    assert "3. Temperature was spot on this afternoon." in user_prompt


async def test_error_status_is_a_failure(summarizer, mock_openai):
    mock_openai.post("/chat/completions").mock(
        return_value=httpx.Response(500, json={"error": {"message": "boom", "type": "server_error"}})
    )

    result = await summarizer.generate("Testville", HOUR, STATS, COMMENTS)

    assert result.success is False
    assert result.text is None
    assert result.error


async def test_unauthorized_is_a_failure(summarizer, mock_openai):
    mock_openai.post("/chat/completions").mock(
        return_value=httpx.Response(401, json={"error": {"message": "bad key", "type": "invalid_request_error"}})
    )

    result = await summarizer.generate("Testville", HOUR, STATS, COMMENTS)
    assert result.success is False


async def test_transport_error_is_a_failure(summarizer, mock_openai):
    mock_openai.post("/chat/completions").mock(side_effect=httpx.ConnectError("connection refused"))

    result = await summarizer.generate("Testville", HOUR, STATS, COMMENTS)
    assert result.success is False


async def test_empty_content_is_a_failure(summarizer, mock_openai):
    mock_openai.post("/chat/completions").mock(
        return_value=httpx.Response(200, json=_completion("   "))
    )

    result = await summarizer.generate("Testville", HOUR, STATS, COMMENTS)
    assert result.success is False
    assert result.error == "empty response"


async def test_missing_choices_is_a_failure(summarizer, mock_openai):
    payload = _completion("unused")
    payload["choices"] = []
    mock_openai.post("/chat/completions").mock(return_value=httpx.Response(200, json=payload))

    result = await summarizer.generate("Testville", HOUR, STATS, COMMENTS)
    assert result.success is False
    assert result.error == "malformed response"


async def test_slow_call_times_out(monkeypatch):
    summarizer = ForecastSummarizer(api_key="sk-test", timeout_seconds=0.05)

    async def hang(**kwargs):
        await asyncio.sleep(5)

    monkeypatch.setattr(summarizer.client.chat.completions, "create", hang)
    result = await summarizer.generate("Testville", HOUR, STATS, COMMENTS)
    await summarizer.close()

    assert result.success is False
    assert result.error == "timeout"


def test_prompt_numbers_comments_and_uses_iso_hour():
    prompt = build_summary_prompt("Testville", HOUR, STATS, ["first comment here", "second comment here"])
    assert "Forecast time (normalized hour): 2025-03-14T15:00:00+00:00" in prompt
    assert "1. first comment here\n2. second comment here" in prompt
    assert prompt.endswith("Respond as plain text with no bullet points.")


def test_build_summarizer_requires_api_key():
    assert build_summarizer(Settings(openai_api_key=None)) is None
    configured = build_summarizer(Settings(openai_api_key="sk-test", openai_model="gpt-4o"))
    assert isinstance(configured, ForecastSummarizer)
    assert configured.label == "gpt-4o"
