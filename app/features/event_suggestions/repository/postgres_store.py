"""
PostgreSQL-backed record store for the suggestion feature.

Tables (owned by the web application's migrations):
    user_preferences(user_id, raw_text, normalized_json jsonb, updated_at)
    events(source_id, title, summary, description, start_time, end_time,
           location_name, location_address, city, price, tags text[], source_url)
    espoo_suggestion_cache(user_id primary key, suggestions_json jsonb, generated_at)
"""

import json
from datetime import datetime

from pydantic import ValidationError

from app.db.helpers import DatabaseError, execute_query, fetch_all, fetch_one, with_db_retry
from app.features.event_suggestions.domain import (
    CandidateEvent,
    NormalizedPreferences,
    SuggestionCacheEntry,
    SuggestionPayload,
)
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class SuggestionRepositoryError(DatabaseError):
    """Stored data could not be mapped to domain models."""


def _load_json(value):
    # psycopg decodes jsonb to Python objects; plain json/text columns arrive as str
    if isinstance(value, (str, bytes)):
        return json.loads(value)
    return value


class PostgresRecordStore:
    """Record store over the shared psycopg connection pool."""

    EVENT_SELECT_COLUMNS = """
        source_id, title, summary, description, start_time, end_time,
        COALESCE(NULLIF(location_name, ''), NULLIF(location_address, ''), NULLIF(city, ''))
            AS location,
        price, tags, source_url
    """

    @staticmethod
    def _row_to_event(row: dict) -> CandidateEvent:
        return CandidateEvent(
            source_id=str(row["source_id"]),
            title=row["title"],
            summary=row.get("summary"),
            description=row.get("description"),
            start_time=row["start_time"],
            end_time=row.get("end_time"),
            location=row.get("location"),
            price=row.get("price"),
            tags=tuple(row.get("tags") or ()),
            source_url=row.get("source_url"),
        )

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def get_user_preferences(self, user_id: str) -> NormalizedPreferences | None:
        row = await fetch_one(
            "SELECT normalized_json FROM user_preferences WHERE user_id = %s",
            (user_id,),
        )
        if not row or row.get("normalized_json") is None:
            return None

        try:
            return NormalizedPreferences.model_validate(_load_json(row["normalized_json"]))
        except (ValidationError, ValueError) as e:
            logger.error("Stored preferences are invalid", user_id=user_id, error=str(e))
            raise SuggestionRepositoryError(
                f"Invalid preferences for user {user_id}", operation="get_user_preferences"
            ) from e

    async def save_user_preferences(
        self, user_id: str, raw_text: str, preferences: NormalizedPreferences
    ) -> None:
        query = """
            INSERT INTO user_preferences (user_id, raw_text, normalized_json, updated_at)
            VALUES (%s, %s, %s::jsonb, NOW())
            ON CONFLICT (user_id) DO UPDATE
            SET raw_text = EXCLUDED.raw_text,
                normalized_json = EXCLUDED.normalized_json,
                updated_at = NOW()
        """
        await execute_query(
            query, (user_id, raw_text, preferences.model_dump_json(by_alias=True, exclude_none=True))
        )
        logger.info("User preferences saved", user_id=user_id, interest_count=len(preferences.interests))

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def find_events(
        self, start_inclusive: datetime, end_exclusive: datetime, limit: int
    ) -> list[CandidateEvent]:
        query = f"""
            SELECT {self.EVENT_SELECT_COLUMNS}
            FROM events
            WHERE start_time >= %s AND start_time < %s
            ORDER BY start_time ASC
            LIMIT %s
        """
        rows = await fetch_all(query, (start_inclusive, end_exclusive, limit))
        return [self._row_to_event(row) for row in rows]

    @with_db_retry(max_retries=2, base_delay=0.1)
    async def get_suggestion_cache(self, user_id: str) -> SuggestionCacheEntry | None:
        row = await fetch_one(
            """
            SELECT user_id, suggestions_json, generated_at
            FROM espoo_suggestion_cache
            WHERE user_id = %s
            """,
            (user_id,),
        )
        if not row:
            return None

        try:
            payload = SuggestionPayload.model_validate(_load_json(row["suggestions_json"]))
        except (ValidationError, ValueError) as e:
            # A cache row we can't read is treated as a miss; the next fresh run overwrites it.
            logger.warning("Discarding unreadable suggestion cache row", user_id=user_id, error=str(e))
            return None

        return SuggestionCacheEntry(
            user_id=str(row["user_id"]), payload=payload, generated_at=row["generated_at"]
        )

    async def upsert_suggestion_cache(
        self, user_id: str, payload: SuggestionPayload, generated_at: datetime
    ) -> None:
        query = """
            INSERT INTO espoo_suggestion_cache (user_id, suggestions_json, generated_at)
            VALUES (%s, %s::jsonb, %s)
            ON CONFLICT (user_id) DO UPDATE
            SET suggestions_json = EXCLUDED.suggestions_json,
                generated_at = EXCLUDED.generated_at
        """
        await execute_query(query, (user_id, payload.model_dump_json(), generated_at))
        logger.info(
            "Suggestion cache updated",
            user_id=user_id,
            recommendation_count=len(payload.recommendations),
        )


record_store = PostgresRecordStore()
