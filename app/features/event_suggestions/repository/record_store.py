"""
Record store contract consumed by the suggestion core.

The core only ever talks to this protocol; PostgresRecordStore is the
production implementation and the tests use an in-memory fake.
"""

from datetime import datetime
from typing import Protocol

from app.features.event_suggestions.domain import (
    CandidateEvent,
    NormalizedPreferences,
    SuggestionCacheEntry,
    SuggestionPayload,
)


class RecordStore(Protocol):
    async def get_user_preferences(self, user_id: str) -> NormalizedPreferences | None: ...

    async def save_user_preferences(
        self, user_id: str, raw_text: str, preferences: NormalizedPreferences
    ) -> None: ...

    async def find_events(
        self, start_inclusive: datetime, end_exclusive: datetime, limit: int
    ) -> list[CandidateEvent]:
        """Events starting in [start_inclusive, end_exclusive), earliest first."""
        ...

    async def get_suggestion_cache(self, user_id: str) -> SuggestionCacheEntry | None: ...

    async def upsert_suggestion_cache(
        self, user_id: str, payload: SuggestionPayload, generated_at: datetime
    ) -> None: ...
