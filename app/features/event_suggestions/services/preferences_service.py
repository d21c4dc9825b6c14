"""
Onboarding preferences service.

Normalizes the user's free-text description of what they like to do and
stores the result, which is what the suggestion core ranks against.
"""

from app.features.event_suggestions.domain import NormalizedPreferences
from app.features.event_suggestions.repository import RecordStore, record_store
from app.features.event_suggestions.services.ranking_provider import (
    RankingProvider,
    ranking_provider,
)
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


async def save_user_preferences(
    user_id: str,
    raw_text: str,
    *,
    provider: RankingProvider = ranking_provider,
    store: RecordStore = record_store,
) -> NormalizedPreferences:
    """
    Normalize ``raw_text`` and persist it for ``user_id``.

    Cached suggestions are left alone; they age out through the cache TTL.

    Raises:
        ValueError: raw_text is blank
        RankingProviderError: normalization failed (not retried here)
    """
    if not raw_text or not raw_text.strip():
        raise ValueError("raw_text must not be empty")

    preferences = await provider.normalize_preferences(raw_text)
    await store.save_user_preferences(user_id, raw_text.strip(), preferences)

    logger.info(
        "Onboarding preferences stored",
        user_id=user_id,
        interests=[interest.name for interest in preferences.interests],
    )
    return preferences
