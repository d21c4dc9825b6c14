import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from app.auth.verify import auth_dependency
from app.features.event_suggestions.domain import (
    CandidateEvent,
    Interest,
    NormalizedPreferences,
    Recommendation,
    SuggestionCacheEntry,
    SuggestionConfig,
    SuggestionPayload,
)
from app.features.event_suggestions.services.cache_manager import SuggestionCacheManager

NOW = datetime(2025, 11, 20, 9, 0, tzinfo=UTC)


def make_event(source_id: str, hours_from_now: float = 1, **overrides) -> CandidateEvent:
    data = {
        "source_id": source_id,
        "title": f"Event {source_id}",
        "start_time": NOW + timedelta(hours=hours_from_now),
        "summary": f"Summary of {source_id}",
        "location": "Espoo Cultural Centre",
        "tags": ("music",),
        "source_url": f"https://events.example.com/{source_id}",
    }
    data.update(overrides)
    return CandidateEvent(**data)


def make_recommendation(event_id: str, confidence: float, title: str | None = None) -> Recommendation:
    return Recommendation(
        event_id=event_id,
        title=title or f"Event {event_id}",
        reason=f"Because you like {event_id}",
        confidence=confidence,
    )


class FakeRecordStore:
    """In-memory record store; every call yields to the event loop like real I/O."""

    def __init__(self, journal: list[str] | None = None):
        self.journal = journal if journal is not None else []
        self.preferences: dict[str, NormalizedPreferences] = {}
        self.events: list[CandidateEvent] = []
        self.cache: dict[str, SuggestionCacheEntry] = {}
        self.find_calls: list[tuple[datetime, datetime, int]] = []
        self.upserts: list[tuple[str, SuggestionPayload, datetime]] = []
        self.saved_preferences: list[tuple[str, str, NormalizedPreferences]] = []

    async def get_user_preferences(self, user_id: str) -> NormalizedPreferences | None:
        await asyncio.sleep(0)
        return self.preferences.get(user_id)

    async def save_user_preferences(self, user_id, raw_text, preferences) -> None:
        await asyncio.sleep(0)
        self.saved_preferences.append((user_id, raw_text, preferences))
        self.preferences[user_id] = preferences

    async def find_events(self, start_inclusive, end_exclusive, limit) -> list[CandidateEvent]:
        await asyncio.sleep(0)
        self.find_calls.append((start_inclusive, end_exclusive, limit))
        self.journal.append("find")
        matching = [e for e in self.events if start_inclusive <= e.start_time < end_exclusive]
        matching.sort(key=lambda e: e.start_time)
        return matching[:limit]

    async def get_suggestion_cache(self, user_id: str) -> SuggestionCacheEntry | None:
        await asyncio.sleep(0)
        return self.cache.get(user_id)

    async def upsert_suggestion_cache(self, user_id, payload, generated_at) -> None:
        await asyncio.sleep(0)
        self.upserts.append((user_id, payload, generated_at))
        self.cache[user_id] = SuggestionCacheEntry(
            user_id=user_id, payload=payload, generated_at=generated_at
        )


class FakeRankingProvider:
    """Returns canned recommendations or raises a canned error."""

    def __init__(self, recommendations=None, error: Exception | None = None, delay: float = 0.0,
                 journal: list[str] | None = None):
        self.journal = journal if journal is not None else []
        self.recommendations = recommendations or []
        self.error = error
        self.delay = delay
        self.calls: list[tuple[NormalizedPreferences, list[CandidateEvent]]] = []

    async def rank(self, preferences, candidates):
        self.calls.append((preferences, list(candidates)))
        self.journal.append("rank")
        await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.recommendations)


class FakeIngestion:
    """Ingestion that optionally drops new events into the store."""

    def __init__(self, store: FakeRecordStore, new_events=None, error: Exception | None = None,
                 delay: float = 0.0):
        self.store = store
        self.journal = store.journal
        self.new_events = list(new_events or [])
        self.error = error
        self.delay = delay
        self.calls = 0

    async def ingest(self) -> None:
        self.calls += 1
        self.journal.append("ingest")
        await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        self.store.events.extend(self.new_events)


@pytest.fixture
def preferences() -> NormalizedPreferences:
    return NormalizedPreferences(
        interests=[
            Interest(name="jazz", category="creative", tags=["music", "live"], sociability="social"),
            Interest(name="hiking", category="physical", tags=["outdoors"]),
        ]
    )


@pytest.fixture
def store(preferences) -> FakeRecordStore:
    fake = FakeRecordStore()
    fake.preferences["user-123"] = preferences
    return fake


@pytest.fixture
def provider(store) -> FakeRankingProvider:
    return FakeRankingProvider(journal=store.journal)


@pytest.fixture
def ingestion(store) -> FakeIngestion:
    return FakeIngestion(store)


@pytest.fixture
def config() -> SuggestionConfig:
    return SuggestionConfig()


@pytest.fixture
def manager(store, provider, ingestion, config) -> SuggestionCacheManager:
    return SuggestionCacheManager(
        store=store, provider=provider, ingestion=ingestion, config=config, clock=lambda: NOW
    )


@pytest.fixture
def auth_override():
    def _override():
        return {"sub": "user-123"}

    return _override


@pytest.fixture
def apply_auth_override(auth_override):
    def _apply(app):
        app.dependency_overrides[auth_dependency] = auth_override

    return _apply
