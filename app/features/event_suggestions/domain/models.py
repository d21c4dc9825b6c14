"""
Domain models for the event suggestion feature.

Models that cross a serialization boundary (LLM output, JSONB columns, API
payloads) are pydantic; purely in-process shapes are slotted dataclasses.
None of them import application settings, so every layer can reuse them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

SuggestionSource = Literal["cache", "fresh", "fallback"]


def format_timestamp(value: datetime) -> str:
    """Render a datetime as a fixed-format UTC timestamp (millisecond precision)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    value = value.astimezone(UTC)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


# ---------------------------------------------------------------------------
# Preferences
# ---------------------------------------------------------------------------


class Interest(BaseModel):
    """A single normalized interest extracted from onboarding free text."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    category: Literal["physical", "mental", "social", "digital", "creative", "other"] | None = Field(
        default=None, alias="type"
    )
    tags: list[str] = Field(default_factory=list)
    sociability: Literal["solo", "social", "either"] | None = Field(
        default=None, alias="solo_or_social"
    )

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, tags: list[str]) -> list[str]:
        seen: dict[str, None] = {}
        for tag in tags:
            cleaned = tag.strip()
            if cleaned:
                seen.setdefault(cleaned, None)
        return list(seen)


class NormalizedPreferences(BaseModel):
    """Ordered interests for one user; read-only for the duration of a run."""

    model_config = ConfigDict(frozen=True)

    interests: list[Interest] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Events and recommendations
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class CandidateEvent:
    """An upcoming event eligible for ranking."""

    source_id: str
    title: str
    start_time: datetime
    summary: str | None = None
    description: str | None = None
    end_time: datetime | None = None
    location: str | None = None
    price: str | None = None
    tags: tuple[str, ...] = ()
    source_url: str | None = None

    def to_model_input(self) -> dict:
        """Shape sent to the ranking provider; absent fields are omitted."""
        data = {
            "id": self.source_id,
            "title": self.title,
            "summary": self.summary,
            "description": self.description,
            "start_time": format_timestamp(self.start_time),
            "end_time": format_timestamp(self.end_time) if self.end_time else None,
            "location": self.location,
            "price": self.price,
            "tags": list(self.tags),
            "source_url": self.source_url,
        }
        return {key: value for key, value in data.items() if value is not None}


class Recommendation(BaseModel):
    """Raw ranking output, keyed by CandidateEvent.source_id."""

    event_id: str
    title: str
    reason: str
    confidence: float = Field(ge=0.0, le=1.0)


class EventSnapshot(BaseModel):
    """Denormalized copy of the event taken at generation time."""

    title: str
    summary: str | None = None
    start_time: str
    end_time: str | None = None
    location: str | None = None
    price: str | None = None
    source_url: str | None = None

    @classmethod
    def from_event(cls, event: CandidateEvent) -> EventSnapshot:
        return cls(
            title=event.title,
            summary=event.summary,
            start_time=format_timestamp(event.start_time),
            end_time=format_timestamp(event.end_time) if event.end_time else None,
            location=event.location,
            price=event.price,
            source_url=event.source_url,
        )


class ResolvedRecommendation(Recommendation):
    """A recommendation joined with the event it refers to."""

    event: EventSnapshot


class SuggestionPayload(BaseModel):
    """The cached / returned suggestion document."""

    recommendations: list[ResolvedRecommendation] = Field(default_factory=list)


class SuggestionCacheEntry(BaseModel):
    """One cached payload per user."""

    user_id: str
    payload: SuggestionPayload
    generated_at: datetime


# ---------------------------------------------------------------------------
# Ranking outcome (tagged result)
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class Ranked:
    """Provider-ranked recommendations."""

    recommendations: list[Recommendation]


@dataclass(slots=True, frozen=True)
class Degraded:
    """Heuristic recommendations used when the provider could not rank."""

    recommendations: list[Recommendation]
    retry_after_ms: int | None = None


RankingOutcome = Ranked | Degraded


# ---------------------------------------------------------------------------
# Results and configuration
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class GenerationResult:
    payload: SuggestionPayload
    used_fallback: bool
    retry_after_ms: int | None = None


@dataclass(slots=True, frozen=True)
class SuggestionResult:
    payload: SuggestionPayload
    source: SuggestionSource
    retry_after_ms: int | None = None

    @classmethod
    def from_generation(cls, result: GenerationResult) -> SuggestionResult:
        return cls(
            payload=result.payload,
            source="fallback" if result.used_fallback else "fresh",
            retry_after_ms=result.retry_after_ms,
        )


@dataclass(slots=True, frozen=True)
class SuggestionConfig:
    """Tunables for the suggestion core (sourced from Settings in production)."""

    window_days: int = 10
    event_limit: int = 25
    model_limit: int = 25
    cache_ttl_hours: float = 24.0
    retry_after_ms: int = 2000
    fallback_count: int = 3
    fallback_confidence: float = 0.25
