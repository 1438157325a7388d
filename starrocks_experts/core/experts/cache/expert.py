"""Data cache expert for shared-data clusters."""

from datetime import datetime
from typing import Callable, Optional

from ...collection.architecture import SHARED_DATA
from ..base import BaseExpert
from ..registry import ExpertRegistry
from . import dimensions  # noqa: F401  (registers cache dimensions)
from .collector import CacheCollector
from .recommendations import CACHE_PREVENTIVE, CACHE_TEMPLATES


@ExpertRegistry.register
class CacheExpert(BaseExpert):
    """Diagnose data cache hit ratio and capacity on compute nodes."""

    name = "cache"
    version = "1.0.0"
    description = "Cache expert: data cache hit ratio and capacity"
    capabilities = (
        "hit_ratio_analysis",
        "cache_capacity_analysis",
        "hit_ratio_variance_analysis",
    )
    required_run_mode = SHARED_DATA
    required_bands = ("hit_ratio", "capacity_usage")
    required_thresholds = ("hit_ratio_std_dev",)

    def build_collector(self, clock: Optional[Callable[[], datetime]] = None) -> CacheCollector:
        return CacheCollector(self.rule_set, clock=clock)

    def recommendation_templates(self):
        return CACHE_TEMPLATES

    def preventive_templates(self):
        return CACHE_PREVENTIVE
