"""
Service layer for the event suggestion feature.
"""

from .cache_manager import SuggestionCacheManager, build_suggestion_manager, suggestion_manager
from .errors import IngestionFailedError, PreferencesMissingError, SuggestionServiceError
from .generation import GenerationPipeline
from .ingestion import IngestionTrigger, ingestion_trigger
from .preferences_service import save_user_preferences
from .ranking_provider import (
    RankingProvider,
    RankingProviderError,
    RankingProviderMalformed,
    RankingProviderRateLimited,
    RankingProviderUnavailable,
    ranking_provider,
)
from .singleflight import SingleFlight

__all__ = [
    "GenerationPipeline",
    "IngestionFailedError",
    "IngestionTrigger",
    "PreferencesMissingError",
    "RankingProvider",
    "RankingProviderError",
    "RankingProviderMalformed",
    "RankingProviderRateLimited",
    "RankingProviderUnavailable",
    "SingleFlight",
    "SuggestionCacheManager",
    "SuggestionServiceError",
    "build_suggestion_manager",
    "ingestion_trigger",
    "ranking_provider",
    "save_user_preferences",
    "suggestion_manager",
]
