"""Memory expert: node memory, query memory and memory skew."""

from datetime import datetime
from typing import Callable, Optional

from ..base import BaseExpert
from ..registry import ExpertRegistry
from . import dimensions  # noqa: F401  (registers memory dimensions)
from .collector import MemoryCollector
from .recommendations import MEMORY_PREVENTIVE, MEMORY_TEMPLATES


@ExpertRegistry.register
class MemoryExpert(BaseExpert):
    """Diagnose node memory usage, memory-heavy queries and skew."""

    name = "memory"
    version = "1.0.0"
    description = "Memory expert: node memory usage, query memory and skew"
    capabilities = (
        "node_memory_analysis",
        "query_memory_analysis",
        "memory_skew_analysis",
    )
    required_bands = ("node_memory", "query_memory_gb")
    required_thresholds = ("skew_std_dev_pct",)

    def build_collector(self, clock: Optional[Callable[[], datetime]] = None) -> MemoryCollector:
        return MemoryCollector(self.rule_set, clock=clock)

    def recommendation_templates(self):
        return MEMORY_TEMPLATES

    def preventive_templates(self):
        return MEMORY_PREVENTIVE
