"""Request / response models for the event suggestion endpoints."""

from typing import Literal

from pydantic import BaseModel, Field

from app.features.event_suggestions.domain import (
    NormalizedPreferences,
    SuggestionPayload,
    SuggestionResult,
)


class EventSuggestionsResponse(BaseModel):
    """Response for GET /suggestions/events"""

    suggestions: SuggestionPayload
    source: Literal["cache", "fresh", "fallback"]
    retry_after_ms: int | None = Field(
        default=None, description="Present when the ranking provider asked us to back off"
    )

    @classmethod
    def from_result(cls, result: SuggestionResult) -> "EventSuggestionsResponse":
        return cls(
            suggestions=result.payload,
            source=result.source,
            retry_after_ms=result.retry_after_ms,
        )


class PreferencesUpdateRequest(BaseModel):
    """Request for POST /preferences"""

    raw_text: str = Field(..., min_length=1, max_length=5000)


class PreferencesUpdateResponse(BaseModel):
    """Response for POST /preferences"""

    user_id: str
    preferences: NormalizedPreferences
