"""Compaction expert package (shared-data clusters)."""

from .collector import CompactionCollector
from .dimensions import recommended_thread_bounds
from .expert import CompactionExpert
from .recommendations import COMPACTION_PREVENTIVE, COMPACTION_TEMPLATES

__all__ = [
    "CompactionCollector",
    "CompactionExpert",
    "COMPACTION_PREVENTIVE",
    "COMPACTION_TEMPLATES",
    "recommended_thread_bounds",
]
