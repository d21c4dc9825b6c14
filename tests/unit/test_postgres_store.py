import json
from datetime import UTC, datetime

import pytest

from app.features.event_suggestions.domain import SuggestionPayload
from app.features.event_suggestions.repository import (
    PostgresRecordStore,
    SuggestionRepositoryError,
)
from app.features.event_suggestions.repository import postgres_store
from tests.conftest import NOW


class QueryRecorder:
    """Stands in for the db helpers and remembers every query."""

    def __init__(self, one=None, many=None):
        self.one = one
        self.many = many or []
        self.queries: list[tuple[str, tuple]] = []

    async def fetch_one(self, query, params=()):
        self.queries.append((query, params))
        return self.one

    async def fetch_all(self, query, params=()):
        self.queries.append((query, params))
        return self.many

    async def execute_query(self, query, params=()):
        self.queries.append((query, params))
        return 1


@pytest.fixture
def db(monkeypatch):
    recorder = QueryRecorder()
    monkeypatch.setattr(postgres_store, "fetch_one", recorder.fetch_one)
    monkeypatch.setattr(postgres_store, "fetch_all", recorder.fetch_all)
    monkeypatch.setattr(postgres_store, "execute_query", recorder.execute_query)
    return recorder


@pytest.mark.asyncio
async def test_get_user_preferences_parses_jsonb(db):
    db.one = {
        "normalized_json": {
            "interests": [{"name": "jazz", "type": "creative", "tags": ["music"], "solo_or_social": "social"}]
        }
    }

    preferences = await PostgresRecordStore().get_user_preferences("user-123")

    assert preferences.interests[0].category == "creative"
    assert db.queries[0][1] == ("user-123",)


@pytest.mark.asyncio
async def test_get_user_preferences_accepts_text_column(db):
    db.one = {"normalized_json": json.dumps({"interests": [{"name": "chess"}]})}

    preferences = await PostgresRecordStore().get_user_preferences("user-123")

    assert preferences.interests[0].name == "chess"


@pytest.mark.asyncio
async def test_get_user_preferences_missing_row(db):
    assert await PostgresRecordStore().get_user_preferences("nobody") is None


@pytest.mark.asyncio
async def test_get_user_preferences_invalid_data_raises(db):
    db.one = {"normalized_json": {"interests": "not-a-list"}}

    with pytest.raises(SuggestionRepositoryError):
        await PostgresRecordStore().get_user_preferences("user-123")


@pytest.mark.asyncio
async def test_find_events_maps_rows_and_passes_window(db):
    end = datetime(2025, 11, 30, 9, 0, tzinfo=UTC)
    db.many = [
        {
            "source_id": 42,
            "title": "Jazz night",
            "summary": "Live trio",
            "description": None,
            "start_time": NOW,
            "end_time": None,
            "location": "Sello Hall",
            "price": "12 EUR",
            "tags": ["music", "jazz"],
            "source_url": "https://events.example.com/42",
        }
    ]

    events = await PostgresRecordStore().find_events(NOW, end, 25)

    query, params = db.queries[0]
    assert "ORDER BY start_time ASC" in query
    assert params == (NOW, end, 25)
    assert events[0].source_id == "42"
    assert events[0].tags == ("music", "jazz")
    assert events[0].location == "Sello Hall"


@pytest.mark.asyncio
async def test_unreadable_cache_row_is_a_miss(db):
    db.one = {"user_id": "user-123", "suggestions_json": "{broken", "generated_at": NOW}

    assert await PostgresRecordStore().get_suggestion_cache("user-123") is None


@pytest.mark.asyncio
async def test_cache_row_round_trips_payload(db):
    db.one = {
        "user_id": "user-123",
        "suggestions_json": {"recommendations": []},
        "generated_at": NOW,
    }

    entry = await PostgresRecordStore().get_suggestion_cache("user-123")

    assert entry.payload == SuggestionPayload()
    assert entry.generated_at == NOW


@pytest.mark.asyncio
async def test_upsert_cache_serializes_payload(db):
    await PostgresRecordStore().upsert_suggestion_cache("user-123", SuggestionPayload(), NOW)

    query, params = db.queries[0]
    assert "ON CONFLICT (user_id)" in query
    assert params == ("user-123", '{"recommendations":[]}', NOW)
