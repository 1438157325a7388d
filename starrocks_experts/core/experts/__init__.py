"""Domain experts.

Importing this package registers every builtin expert:
- storage: disk capacity, tablet health, data distribution
- compaction: lake compaction scores, threads and tasks (shared-data)
- ingestion: load failures, routine loads, load queue
- memory: node and query memory
- cache: data cache hit ratio and capacity (shared-data)
"""

from .base import NEXT_CHECK_INTERVALS, BaseExpert, ExpertResult
from .registry import ExpertRegistry, get_available_experts
from .storage import StorageExpert
from .compaction import CompactionExpert
from .ingestion import IngestionExpert
from .memory import MemoryExpert
from .cache import CacheExpert

__all__ = [
    "NEXT_CHECK_INTERVALS",
    "BaseExpert",
    "ExpertResult",
    "ExpertRegistry",
    "get_available_experts",
    "StorageExpert",
    "CompactionExpert",
    "IngestionExpert",
    "MemoryExpert",
    "CacheExpert",
]
