"""Memory expert package."""

from .collector import MemoryCollector, query_memory_gb
from .expert import MemoryExpert
from .recommendations import MEMORY_PREVENTIVE, MEMORY_TEMPLATES

__all__ = [
    "MemoryCollector",
    "MemoryExpert",
    "MEMORY_PREVENTIVE",
    "MEMORY_TEMPLATES",
    "query_memory_gb",
]
