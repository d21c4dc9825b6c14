"""
Fresh suggestion generation.

One run walks these steps in order and never retries inside a run:

    fetch events -> (empty: ingest once, re-fetch) -> truncate for the model
    -> rank (or fall back) -> sort by confidence -> resolve ids to events
    -> write the cache (provider-ranked results only)

Retrying is left to the caller, guided by ``retry_after_ms`` when the
provider was rate limited.
"""

from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timedelta

from app.features.event_suggestions.domain import (
    CandidateEvent,
    Degraded,
    EventSnapshot,
    GenerationResult,
    NormalizedPreferences,
    Ranked,
    RankingOutcome,
    Recommendation,
    ResolvedRecommendation,
    SuggestionConfig,
    SuggestionPayload,
)
from app.features.event_suggestions.repository.record_store import RecordStore
from app.features.event_suggestions.services.errors import IngestionFailedError
from app.features.event_suggestions.services.fallback import build_fallback_ranking
from app.features.event_suggestions.services.ranking_provider import (
    RankingProvider,
    RankingProviderError,
    RankingProviderRateLimited,
)
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

IngestCallable = Callable[[], Awaitable[None]]


def sort_by_confidence(recommendations: Sequence[Recommendation]) -> list[Recommendation]:
    """Highest confidence first; ties keep provider order (sorted() is stable)."""
    return sorted(recommendations, key=lambda rec: rec.confidence, reverse=True)


def resolve_recommendations(
    recommendations: Sequence[Recommendation], events: Sequence[CandidateEvent]
) -> list[ResolvedRecommendation]:
    """Join recommendations with their events, dropping ids we never offered."""
    event_by_id = {event.source_id: event for event in events}
    resolved: list[ResolvedRecommendation] = []

    for rec in recommendations:
        event = event_by_id.get(rec.event_id)
        if event is None:
            logger.warning("Dropping recommendation for unknown event", event_id=rec.event_id)
            continue
        resolved.append(
            ResolvedRecommendation(**rec.model_dump(), event=EventSnapshot.from_event(event))
        )

    return resolved


class GenerationPipeline:
    """Produces a fresh suggestion payload for one user."""

    def __init__(
        self,
        store: RecordStore,
        provider: RankingProvider,
        ingest: IngestCallable,
        config: SuggestionConfig,
    ):
        self.store = store
        self.provider = provider
        self.ingest = ingest
        self.config = config

    async def generate(
        self, user_id: str, preferences: NormalizedPreferences, now: datetime
    ) -> GenerationResult:
        """
        Run one generation.

        Raises:
            IngestionFailedError: the event pool was empty and could not be refreshed
        """
        end = now + timedelta(days=self.config.window_days)
        log = logger.bind(user_id=user_id)

        log.info(
            "Fetching candidate events",
            limit=self.config.event_limit,
            window_start=now.isoformat(),
            window_end=end.isoformat(),
        )
        events = await self.store.find_events(now, end, self.config.event_limit)

        if not events:
            log.warning("No events found locally, triggering ingestion")
            await self._run_ingestion(user_id)
            events = await self.store.find_events(now, end, self.config.event_limit)

            if not events:
                log.warning("Still no events after ingestion, returning empty suggestions")
                return GenerationResult(payload=SuggestionPayload(), used_fallback=False)

        events_for_model = events[: self.config.model_limit]
        if not events_for_model:
            log.warning("No events left for ranking after truncation", model_limit=self.config.model_limit)
            return GenerationResult(payload=SuggestionPayload(), used_fallback=False)

        log.info(
            "Sending events to ranking provider",
            model_event_count=len(events_for_model),
            fetched_event_count=len(events),
        )
        outcome = await self._rank(user_id, preferences, events_for_model)

        used_fallback = isinstance(outcome, Degraded)
        retry_after_ms = outcome.retry_after_ms if isinstance(outcome, Degraded) else None

        resolved = resolve_recommendations(sort_by_confidence(outcome.recommendations), events)
        payload = SuggestionPayload(recommendations=resolved)

        log.info(
            "Suggestions resolved",
            ranked_count=len(outcome.recommendations),
            resolved_count=len(resolved),
            used_fallback=used_fallback,
        )

        if used_fallback:
            log.info("Skipping cache update because fallback suggestions were used")
        else:
            await self.store.upsert_suggestion_cache(user_id, payload, now)

        return GenerationResult(
            payload=payload, used_fallback=used_fallback, retry_after_ms=retry_after_ms
        )

    async def _run_ingestion(self, user_id: str) -> None:
        try:
            await self.ingest()
        except IngestionFailedError as e:
            logger.error("Fallback ingestion failed", user_id=user_id, cause=e.cause)
            raise
        except Exception as e:
            logger.error(
                "Fallback ingestion failed", user_id=user_id, error=str(e), error_type=type(e).__name__
            )
            raise IngestionFailedError(user_id=user_id, cause=str(e)) from e

    async def _rank(
        self, user_id: str, preferences: NormalizedPreferences, events: Sequence[CandidateEvent]
    ) -> RankingOutcome:
        """Ask the provider; any failure becomes a Degraded outcome."""
        try:
            recommendations = await self.provider.rank(preferences, events)
            return Ranked(recommendations=recommendations)

        except RankingProviderRateLimited as e:
            logger.warning(
                "Ranking provider rate limited, using fallback",
                user_id=user_id,
                retry_after_ms=e.retry_after_ms,
            )
            retry_after_ms = (
                e.retry_after_ms if e.retry_after_ms is not None else self.config.retry_after_ms
            )

        except RankingProviderError as e:
            logger.error(
                "Ranking provider failed, using fallback",
                user_id=user_id,
                reason=e.reason,
                error=str(e),
            )
            retry_after_ms = None

        except Exception as e:
            logger.exception(
                "Unexpected ranking failure, using fallback",
                user_id=user_id,
                error_type=type(e).__name__,
            )
            retry_after_ms = None

        return build_fallback_ranking(
            events,
            count=self.config.fallback_count,
            confidence=self.config.fallback_confidence,
            retry_after_ms=retry_after_ms,
        )
