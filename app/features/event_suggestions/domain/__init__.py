"""
Domain subpackage for the event suggestion feature.
"""

from .models import (
    CandidateEvent,
    Degraded,
    EventSnapshot,
    GenerationResult,
    Interest,
    NormalizedPreferences,
    Ranked,
    RankingOutcome,
    Recommendation,
    ResolvedRecommendation,
    SuggestionCacheEntry,
    SuggestionConfig,
    SuggestionPayload,
    SuggestionResult,
    SuggestionSource,
    format_timestamp,
)

__all__ = [
    "CandidateEvent",
    "Degraded",
    "EventSnapshot",
    "GenerationResult",
    "Interest",
    "NormalizedPreferences",
    "Ranked",
    "RankingOutcome",
    "Recommendation",
    "ResolvedRecommendation",
    "SuggestionCacheEntry",
    "SuggestionConfig",
    "SuggestionPayload",
    "SuggestionResult",
    "SuggestionSource",
    "format_timestamp",
]
