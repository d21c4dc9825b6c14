"""
Ranking provider client.

Talks to Featherless through its OpenAI-compatible API using the ``openai``
async client. Two capabilities are exposed:

- rank(): pick and justify the events that fit a user's interests
- normalize_preferences(): turn onboarding free text into NormalizedPreferences

Every failure is raised as a classified RankingProviderError so callers can
branch on the reason (rate_limited / unavailable / malformed) instead of on
transport details.
"""

import json
from collections.abc import Sequence
from typing import Any, Literal

import openai
from openai import AsyncOpenAI
from pydantic import BaseModel, Field, ValidationError

from app.config import settings
from app.features.event_suggestions.domain import (
    CandidateEvent,
    NormalizedPreferences,
    Recommendation,
)
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

FailureReason = Literal["rate_limited", "unavailable", "malformed"]


class RankingProviderError(Exception):
    """Base exception for ranking provider failures."""

    reason: FailureReason = "unavailable"

    def __init__(self, message: str, api_error: str | None = None):
        super().__init__(message)
        self.api_error = api_error


class RankingProviderRateLimited(RankingProviderError):
    """Provider rejected the call because of rate or concurrency limits."""

    reason: FailureReason = "rate_limited"

    def __init__(self, message: str, retry_after_ms: int, api_error: str | None = None):
        super().__init__(message, api_error=api_error)
        self.retry_after_ms = retry_after_ms


class RankingProviderUnavailable(RankingProviderError):
    """Provider could not be reached, timed out, or answered with an error status."""

    reason: FailureReason = "unavailable"


class RankingProviderMalformed(RankingProviderError):
    """Provider answered, but not with the JSON shape we asked for."""

    reason: FailureReason = "malformed"


class _RankingResponse(BaseModel):
    recommendations: list[Recommendation] = Field(default_factory=list)


RANK_SYSTEM_INSTRUCTIONS = """
You recommend local events to a person based on their interests.

Input:
- "preferences": the person's normalized interests
- "events": upcoming events, each with an "id"

Pick the events that genuinely fit the person. For each pick, explain in one
or two friendly sentences why it matches, and give a confidence between 0 and 1.
Only use ids that appear in the input events.

Return valid JSON ONLY:
{
  "recommendations": [
    {"event_id": string, "title": string, "reason": string, "confidence": number}
  ]
}
""".strip()

NORMALIZE_SYSTEM_INSTRUCTIONS = """
You are a data normalizer for an activity-matching app.
Extract a structured JSON object from the user's free-text description of what they like to do.

Return JSON only:
{
  "interests": [
    {
      "name": string,
      "type": "physical" | "mental" | "social" | "digital" | "creative" | "other",
      "tags": string[],
      "solo_or_social": "solo" | "social" | "either"
    }
  ]
}
No explanation.
""".strip()


def _extract_json(raw: str) -> Any:
    """Parse the first JSON object in ``raw``; models sometimes wrap it in prose or fences."""
    text = raw.strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:]
    start = text.find("{")
    if start == -1:
        raise RankingProviderMalformed("Provider response contained no JSON object")
    try:
        value, _ = json.JSONDecoder().raw_decode(text, start)
        return value
    except json.JSONDecodeError as e:
        raise RankingProviderMalformed("Provider returned invalid JSON", api_error=str(e)) from e


class RankingProvider:
    """
    Async client for the LLM ranking service.

    The underlying AsyncOpenAI client is created lazily, on first call.
    Client retries are off: a run makes one provider call and rate limits
    surface as a retry hint.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        timeout_seconds: float | None = None,
        retry_after_ms: int | None = None,
        client: AsyncOpenAI | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.FEATHERLESS_API_KEY
        self.base_url = base_url or settings.FEATHERLESS_BASE_URL
        self.model = model or settings.FEATHERLESS_MODEL
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else settings.FEATHERLESS_TIMEOUT_SECONDS
        )
        self.retry_after_ms = (
            retry_after_ms if retry_after_ms is not None else settings.SUGGESTION_RETRY_AFTER_MS
        )
        self.client = client

    def _get_client(self) -> AsyncOpenAI:
        if self.client is None:
            if not self.api_key:
                raise RankingProviderUnavailable("FEATHERLESS_API_KEY not configured")
            self.client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout_seconds,
                max_retries=0,
            )
            logger.info(
                "Ranking provider client initialized",
                model=self.model,
                base_url=self.base_url,
                timeout=self.timeout_seconds,
            )
        return self.client

    async def rank(
        self, preferences: NormalizedPreferences, candidates: Sequence[CandidateEvent]
    ) -> list[Recommendation]:
        """
        Ask the model to rank ``candidates`` for ``preferences``.

        Returns:
            Recommendations in provider order (not yet sorted or resolved).

        Raises:
            RankingProviderError: classified failure (never a raw openai error)
        """
        user_message = json.dumps(
            {
                "preferences": preferences.model_dump(by_alias=True, exclude_none=True),
                "events": [event.to_model_input() for event in candidates],
            },
            ensure_ascii=False,
            indent=2,
        )

        raw = await self._complete(RANK_SYSTEM_INSTRUCTIONS, user_message)
        parsed = _extract_json(raw)

        try:
            response = _RankingResponse.model_validate(parsed)
        except ValidationError as e:
            logger.error("Ranking response failed validation", errors=e.error_count())
            raise RankingProviderMalformed("Ranking response did not match schema", api_error=str(e)) from e

        logger.info(
            "Ranking provider returned recommendations",
            candidate_count=len(candidates),
            recommendation_count=len(response.recommendations),
        )
        return response.recommendations

    async def normalize_preferences(self, raw_text: str) -> NormalizedPreferences:
        """Extract NormalizedPreferences from free text."""
        user_message = f"User text:\n{raw_text.strip()}\n\nReturn JSON only."
        raw = await self._complete(NORMALIZE_SYSTEM_INSTRUCTIONS, user_message)
        parsed = _extract_json(raw)

        try:
            preferences = NormalizedPreferences.model_validate(parsed)
        except ValidationError as e:
            raise RankingProviderMalformed(
                "Normalized preferences did not match schema", api_error=str(e)
            ) from e

        logger.info("Preferences normalized", interest_count=len(preferences.interests))
        return preferences

    async def _complete(self, system_message: str, user_message: str) -> str:
        """Single chat completion call with error classification."""
        client = self._get_client()

        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_message},
                    {"role": "user", "content": user_message},
                ],
                max_tokens=settings.FEATHERLESS_MAX_TOKENS,
                temperature=settings.FEATHERLESS_TEMPERATURE,
            )

        except openai.RateLimitError as e:
            logger.warning("Ranking provider rate limited", error=str(e))
            raise RankingProviderRateLimited(
                "Ranking provider is at its concurrency limit",
                retry_after_ms=self.retry_after_ms,
                api_error=str(e),
            ) from e

        except openai.APITimeoutError as e:
            logger.warning("Ranking provider timed out", timeout=self.timeout_seconds)
            raise RankingProviderUnavailable("Ranking provider timed out", api_error=str(e)) from e

        except openai.APIStatusError as e:
            if "concurrency" in str(e).lower():
                logger.warning("Ranking provider concurrency limit", status_code=e.status_code)
                raise RankingProviderRateLimited(
                    "Ranking provider is at its concurrency limit",
                    retry_after_ms=self.retry_after_ms,
                    api_error=str(e),
                ) from e
            logger.error("Ranking provider error status", status_code=e.status_code, error=str(e))
            raise RankingProviderUnavailable(
                f"Ranking provider returned {e.status_code}", api_error=str(e)
            ) from e

        except openai.APIError as e:
            logger.error("Ranking provider request failed", error=str(e), error_type=type(e).__name__)
            raise RankingProviderUnavailable("Ranking provider request failed", api_error=str(e)) from e

        if not response.choices or not response.choices[0].message.content:
            raise RankingProviderMalformed("Empty response from ranking provider")

        result = response.choices[0].message.content.strip()
        logger.debug(
            "Ranking provider call completed",
            response_length=len(result),
            usage_tokens=response.usage.total_tokens if response.usage else 0,
        )
        return result


ranking_provider = RankingProvider()
