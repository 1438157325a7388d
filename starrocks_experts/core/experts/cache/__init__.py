"""Data cache expert package (shared-data clusters)."""

from .collector import CacheCollector, cache_node_stats
from .expert import CacheExpert
from .recommendations import CACHE_PREVENTIVE, CACHE_TEMPLATES

__all__ = [
    "CacheCollector",
    "CacheExpert",
    "CACHE_PREVENTIVE",
    "CACHE_TEMPLATES",
    "cache_node_stats",
]
