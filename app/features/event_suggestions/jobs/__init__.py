"""
Job runners for the event suggestion feature.
"""

from .ingest_job import run_event_ingestion

__all__ = ["run_event_ingestion"]
