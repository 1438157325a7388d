"""Compaction expert for shared-data clusters."""

from datetime import datetime
from typing import Callable, Optional

from ...collection.architecture import SHARED_DATA
from ...diagnosis.models import Diagnosis
from ..base import BaseExpert
from ..registry import ExpertRegistry
from . import dimensions  # noqa: F401  (registers compaction dimensions)
from .collector import CompactionCollector
from .recommendations import COMPACTION_PREVENTIVE, COMPACTION_TEMPLATES


@ExpertRegistry.register
class CompactionExpert(BaseExpert):
    """Diagnose lake compaction: scores, threads, tasks and FE limits.

    Only applies to shared-data clusters; ``diagnose`` raises
    PreconditionError on shared-nothing clusters.
    """

    name = "compaction"
    version = "1.0.0"
    description = "Compaction expert: lake compaction scores, threads and task execution"
    capabilities = (
        "compaction_score_analysis",
        "thread_config_analysis",
        "task_execution_analysis",
        "fe_config_analysis",
        "system_pressure_analysis",
    )
    required_run_mode = SHARED_DATA
    required_bands = ("compaction_score",)
    required_thresholds = (
        "thread_config.absolute_min_threads",
        "thread_config.recommended_base",
        "task_execution.max_healthy_tasks_per_node",
        "fe_config.min_recommended_max_tasks",
    )

    def build_collector(self, clock: Optional[Callable[[], datetime]] = None) -> CompactionCollector:
        return CompactionCollector(self.rule_set, clock=clock)

    def recommendation_templates(self):
        return COMPACTION_TEMPLATES

    def preventive_templates(self):
        return COMPACTION_PREVENTIVE

    def summarize(self, diagnosis: Diagnosis) -> str:
        if diagnosis.has_issue(types=["compaction_disabled"]):
            return "Compaction is disabled; scores will grow until loads fail"
        if diagnosis.has_issue(type_contains="emergency"):
            return "Compaction emergency: partitions with extremely high compaction scores"
        if diagnosis.criticals:
            return f"Compaction has {len(diagnosis.criticals)} critical issue(s)"
        if diagnosis.warnings:
            return f"Compaction is keeping up with {len(diagnosis.warnings)} warning(s)"
        return "Compaction is healthy"
