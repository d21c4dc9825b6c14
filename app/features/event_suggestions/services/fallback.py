"""Heuristic ranking used when the ranking provider cannot answer."""

from collections.abc import Sequence

from app.features.event_suggestions.domain import CandidateEvent, Degraded, Recommendation

FALLBACK_REASON = (
    "Showing upcoming events while our recommendation engine catches up. "
    "Check the details to see if they fit your interests."
)


def build_fallback_ranking(
    candidates: Sequence[CandidateEvent],
    *,
    count: int = 3,
    confidence: float = 0.25,
    retry_after_ms: int | None = None,
) -> Degraded:
    """Wrap the earliest ``count`` candidates (fetch order) as low-confidence picks."""
    recommendations = [
        Recommendation(
            event_id=event.source_id,
            title=event.title,
            reason=FALLBACK_REASON,
            confidence=confidence,
        )
        for event in list(candidates)[:count]
    ]
    return Degraded(recommendations=recommendations, retry_after_ms=retry_after_ms)
