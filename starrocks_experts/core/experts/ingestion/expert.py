"""Ingestion expert: load jobs, routine loads and the load queue."""

from datetime import datetime
from typing import Callable, Optional

from ...diagnosis.models import Diagnosis
from ..base import BaseExpert
from ..registry import ExpertRegistry
from . import dimensions  # noqa: F401  (registers ingestion dimensions)
from .collector import IngestionCollector
from .recommendations import INGESTION_PREVENTIVE, INGESTION_TEMPLATES


@ExpertRegistry.register
class IngestionExpert(BaseExpert):
    """Diagnose load job failures, routine load state and queueing."""

    name = "ingestion"
    version = "1.0.0"
    description = "Ingestion expert: load failures, routine loads and load queue"
    capabilities = (
        "load_failure_analysis",
        "load_performance_analysis",
        "routine_load_check",
        "load_queue_analysis",
        "error_pattern_analysis",
        "import_frequency_analysis",
    )
    required_bands = ("load_failure_rate", "pending_loads")
    required_thresholds = ("frequent_failure_count", "slow_load_seconds", "long_running_hours")

    def build_collector(self, clock: Optional[Callable[[], datetime]] = None) -> IngestionCollector:
        return IngestionCollector(self.rule_set, clock=clock)

    def recommendation_templates(self):
        return INGESTION_TEMPLATES

    def preventive_templates(self):
        return INGESTION_PREVENTIVE

    def summarize(self, diagnosis: Diagnosis) -> str:
        if diagnosis.has_issue(types=["high_load_failure_rate"]):
            return "Ingestion is failing at a high rate"
        if diagnosis.criticals:
            return f"Ingestion has {len(diagnosis.criticals)} critical issue(s)"
        if diagnosis.warnings:
            return f"Ingestion works with {len(diagnosis.warnings)} warning(s)"
        return "Ingestion is healthy"
