"""Storage expert: disk capacity, tablet health and data distribution."""

from datetime import datetime
from typing import Callable, Optional

from ...diagnosis.models import Diagnosis
from ..base import BaseExpert
from ..registry import ExpertRegistry
from . import dimensions  # noqa: F401  (registers storage dimensions)
from .collector import StorageCollector
from .recommendations import STORAGE_PREVENTIVE, STORAGE_TEMPLATES


@ExpertRegistry.register
class StorageExpert(BaseExpert):
    """Diagnose backend disk usage, tablet health and data balance.

    Example
    -------
    >>> expert = StorageExpert()
    >>> result = expert.diagnose(source)
    >>> result.health.status.value
    'HEALTHY'
    """

    name = "storage"
    version = "1.0.0"
    description = "Storage expert: disk capacity, tablet health and data distribution"
    capabilities = (
        "disk_usage_analysis",
        "free_space_check",
        "tablet_health_check",
        "data_distribution_analysis",
        "partition_size_analysis",
    )
    required_bands = ("disk_usage", "error_tablets", "node_memory")
    required_thresholds = ("free_space_minimum_gb", "max_tablets_per_be", "imbalance_threshold_pct")

    def build_collector(self, clock: Optional[Callable[[], datetime]] = None) -> StorageCollector:
        return StorageCollector(self.rule_set, clock=clock)

    def recommendation_templates(self):
        return STORAGE_TEMPLATES

    def preventive_templates(self):
        return STORAGE_PREVENTIVE

    def summarize(self, diagnosis: Diagnosis) -> str:
        if diagnosis.has_issue(type_contains="disk_emergency"):
            return "Storage emergency: at least one node is about to run out of disk space"
        if diagnosis.criticals:
            return f"Storage has {len(diagnosis.criticals)} critical issue(s) requiring prompt action"
        if diagnosis.warnings:
            return f"Storage is serviceable with {len(diagnosis.warnings)} warning(s)"
        return "Storage is healthy"
