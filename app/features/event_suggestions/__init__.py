"""
Event suggestion feature package.

Keeps every layer of the suggestion flow co-located: domain models, the
record store, the ranking provider client, the ingestion trigger, the
cache manager / generation pipeline, the HTTP router and the worker job.

Only the domain models are re-exported here; they have no dependency on
application settings, which lets ``app.config`` import them safely.
"""

from .domain import (  # noqa: F401
    CandidateEvent,
    NormalizedPreferences,
    Recommendation,
    ResolvedRecommendation,
    SuggestionConfig,
    SuggestionResult,
)
