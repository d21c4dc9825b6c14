"""
Suggestion cache manager.

Entry point for "give me event suggestions for this user":

1. Load the user's normalized preferences (missing -> PreferencesMissingError).
2. Serve the cached payload when it is younger than the TTL. No upstream calls.
3. Otherwise join the in-flight generation for the user, or start one.
   Concurrent misses for the same user share a single GenerationPipeline run
   and all observe its result, including its ``source``.

The manager instance owns the two pieces of shared mutable state: the
per-user generation registry and the process-wide ingestion registry. Both
are SingleFlight registries that drop their entry when the task settles.
"""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from app.config import settings
from app.features.event_suggestions.domain import (
    GenerationResult,
    NormalizedPreferences,
    SuggestionCacheEntry,
    SuggestionConfig,
    SuggestionResult,
)
from app.features.event_suggestions.repository import RecordStore, record_store
from app.features.event_suggestions.services.errors import PreferencesMissingError
from app.features.event_suggestions.services.generation import GenerationPipeline
from app.features.event_suggestions.services.ingestion import IngestionTrigger, ingestion_trigger
from app.features.event_suggestions.services.ranking_provider import RankingProvider, ranking_provider
from app.features.event_suggestions.services.singleflight import SingleFlight
from app.infrastructure.observability.logging import get_logger, log_suggestion_outcome

logger = get_logger(__name__)

INGESTION_KEY = "event-ingestion"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SuggestionCacheManager:
    """Cache lookup, freshness check and singleflight around GenerationPipeline."""

    def __init__(
        self,
        store: RecordStore,
        provider: RankingProvider,
        ingestion: IngestionTrigger,
        config: SuggestionConfig | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.ingestion = ingestion
        self.config = config or SuggestionConfig()
        self.clock = clock
        self.ttl = timedelta(hours=self.config.cache_ttl_hours)

        self._generations: SingleFlight[GenerationResult] = SingleFlight("suggestion-generation")
        self._ingestions: SingleFlight[None] = SingleFlight("event-ingestion")

        self.pipeline = GenerationPipeline(
            store=store,
            provider=provider,
            ingest=self.ingest_events,
            config=self.config,
        )

    async def ingest_events(self) -> None:
        """Run ingestion, sharing one run between all concurrent callers."""
        if self._ingestions.in_flight(INGESTION_KEY):
            logger.info("Waiting for existing event ingestion to finish")
        await self._ingestions.do(INGESTION_KEY, self.ingestion.ingest)

    def generation_in_flight(self, user_id: str) -> bool:
        return self._generations.in_flight(user_id)

    async def get_suggestions(self, user_id: str) -> SuggestionResult:
        """
        Return suggestions for ``user_id``.

        Raises:
            PreferencesMissingError: user has not completed onboarding
            IngestionFailedError: no events and the ingestion run failed
        """
        preferences = await self.store.get_user_preferences(user_id)
        if preferences is None:
            logger.warning("Suggestions requested before onboarding", user_id=user_id)
            raise PreferencesMissingError(user_id)

        now = self.clock()

        cached = await self.store.get_suggestion_cache(user_id)
        if cached is not None:
            age = self._age(cached, now)
            if age < self.ttl:
                log_suggestion_outcome(
                    user_id,
                    "cache",
                    len(cached.payload.recommendations),
                    age_seconds=round(age.total_seconds()),
                )
                return SuggestionResult(payload=cached.payload, source="cache")

            logger.info(
                "Cached suggestions expired, refreshing",
                user_id=user_id,
                age_seconds=round(age.total_seconds()),
            )

        result = await self._generate_once(user_id, preferences, now)
        suggestion = SuggestionResult.from_generation(result)

        log_suggestion_outcome(
            user_id,
            suggestion.source,
            len(suggestion.payload.recommendations),
            retry_after_ms=suggestion.retry_after_ms,
        )
        return suggestion

    def _age(self, entry: SuggestionCacheEntry, now: datetime) -> timedelta:
        generated_at = entry.generated_at
        if generated_at.tzinfo is None:
            generated_at = generated_at.replace(tzinfo=UTC)
        return now - generated_at

    async def _generate_once(
        self, user_id: str, preferences: NormalizedPreferences, now: datetime
    ) -> GenerationResult:
        if self._generations.in_flight(user_id):
            logger.info("Waiting for in-flight suggestion generation", user_id=user_id)

        return await self._generations.do(
            user_id, lambda: self.pipeline.generate(user_id, preferences, now)
        )


def build_suggestion_manager() -> SuggestionCacheManager:
    """Wire the manager to the production store, provider and ingestion trigger."""
    return SuggestionCacheManager(
        store=record_store,
        provider=ranking_provider,
        ingestion=ingestion_trigger,
        config=settings.suggestion_config(),
    )


# Process-wide instance; its registries are the shared in-flight state.
suggestion_manager = build_suggestion_manager()
