"""Ingestion expert package."""

from .collector import IngestionCollector, classify_load_error, table_load_intervals
from .expert import IngestionExpert
from .recommendations import INGESTION_PREVENTIVE, INGESTION_TEMPLATES

__all__ = [
    "IngestionCollector",
    "IngestionExpert",
    "INGESTION_PREVENTIVE",
    "INGESTION_TEMPLATES",
    "classify_load_error",
    "table_load_intervals",
]
