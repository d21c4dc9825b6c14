"""
Persistence layer for the event suggestion feature.
"""

from .postgres_store import PostgresRecordStore, SuggestionRepositoryError, record_store
from .record_store import RecordStore

__all__ = ["PostgresRecordStore", "RecordStore", "SuggestionRepositoryError", "record_store"]
