"""Cross-module impact rules.

Each rule names two experts and a condition over their diagnoses. A rule
is only evaluated when both experts produced a result; when it fires,
the coordinator records an impact and synthesizes one cross-module
recommendation from the rule's recommended approach.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Tuple

from ..diagnosis.models import Diagnosis, Severity
from ..recommendation.models import Priority

CROSS_MODULE_CATEGORY = "cross_module_coordination"

Condition = Callable[[Diagnosis, Diagnosis], bool]


@dataclass(frozen=True)
class RecommendedApproach:
    """Coordinated remediation for a fired rule."""

    approach: str
    priority: Priority
    steps: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "approach": self.approach,
            "priority": self.priority.value,
            "steps": list(self.steps),
        }


@dataclass(frozen=True)
class CrossModuleImpactRule:
    """A correlation between the findings of two experts.

    Attributes
    ----------
    name : str
        Rule identifier
    required_experts : Tuple[str, str]
        Experts whose diagnoses the condition reads, in argument order
    condition : Callable[[Diagnosis, Diagnosis], bool]
        Fires the rule
    impact_level : str
        HIGH, MEDIUM or LOW
    explanation : str
        What the combination means
    recommended_approach : RecommendedApproach
        Coordinated remediation
    category : str
        Category of the synthesized recommendation
    """

    name: str
    required_experts: Tuple[str, str]
    condition: Condition
    impact_level: str
    explanation: str
    recommended_approach: RecommendedApproach
    category: str = field(default=CROSS_MODULE_CATEGORY)

    def applies_to(self, available: Dict[str, Any]) -> bool:
        """True when both required experts are available."""
        return all(name in available for name in self.required_experts)

    def evaluate(self, diagnoses: Dict[str, Diagnosis]) -> bool:
        """Evaluate the condition; False when an expert is missing."""
        if not self.applies_to(diagnoses):
            return False
        first, second = self.required_experts
        return bool(self.condition(diagnoses[first], diagnoses[second]))

    def impact_record(self) -> Dict[str, Any]:
        """Impact entry appended to the cross-module analysis."""
        return {
            "rule_name": self.name,
            "impact_level": self.impact_level,
            "explanation": self.explanation,
            "affected_modules": list(self.required_experts),
            "recommended_approach": self.recommended_approach.to_dict(),
        }


def _critical(diagnosis: Diagnosis, fragment: str) -> bool:
    return diagnosis.has_issue(type_contains=fragment, severity=Severity.CRITICAL)


def _disk_critical(diagnosis: Diagnosis) -> bool:
    return _critical(diagnosis, "disk")


def _compaction_score_critical(diagnosis: Diagnosis) -> bool:
    return _critical(diagnosis, "compaction_score")


def _load_queue_pressure(diagnosis: Diagnosis) -> bool:
    return diagnosis.has_issue(type_contains="load_queue")


CROSS_MODULE_RULES: Tuple[CrossModuleImpactRule, ...] = (
    CrossModuleImpactRule(
        name="storage_compaction_impact",
        required_experts=("storage", "compaction"),
        condition=lambda storage, compaction: (
            _disk_critical(storage) and _compaction_score_critical(compaction)
        ),
        impact_level="HIGH",
        explanation="Low disk space slows compaction, and the compaction backlog keeps disk usage high",
        recommended_approach=RecommendedApproach(
            approach="integrated_solution",
            priority=Priority.HIGH,
            steps=(
                "Free disk space first so compaction has room to write merged data",
                "Pause non-critical loads to stop new versions piling up",
                "Trigger manual compaction in batches, highest scores first",
                "Watch disk usage and compaction scores recover together",
                "Plan capacity and compaction settings for the long term",
            ),
        ),
    ),
    CrossModuleImpactRule(
        name="thread_cs_correlation",
        required_experts=("storage", "compaction"),
        condition=lambda storage, compaction: (
            compaction.has_issue(types=["low_compaction_threads"])
            and _compaction_score_critical(compaction)
        ),
        impact_level="MEDIUM",
        explanation="Too few compaction threads are the main cause of the compaction score backlog",
        recommended_approach=RecommendedApproach(
            approach="configuration_optimization",
            priority=Priority.MEDIUM,
            steps=(
                "Raise compact_threads to the recommended value",
                "Watch compaction task throughput",
                "Check that compaction scores start to fall",
                "Trigger manual compaction if scores keep rising",
            ),
        ),
    ),
    CrossModuleImpactRule(
        name="ingestion_storage_impact",
        required_experts=("storage", "ingestion"),
        condition=lambda storage, ingestion: (
            _disk_critical(storage) and _critical(ingestion, "failure_rate")
        ),
        impact_level="HIGH",
        explanation="Low disk space is likely causing load jobs to fail",
        recommended_approach=RecommendedApproach(
            approach="capacity_recovery",
            priority=Priority.HIGH,
            steps=(
                "Free disk space or add capacity on the affected nodes",
                "Retry the failed loads once space is available",
                "Confirm the load failure rate drops",
            ),
        ),
    ),
    CrossModuleImpactRule(
        name="ingestion_compaction_resource_conflict",
        required_experts=("ingestion", "compaction"),
        condition=lambda ingestion, compaction: (
            _load_queue_pressure(ingestion)
            and compaction.has_issue(types=["high_system_compaction_pressure"])
        ),
        impact_level="MEDIUM",
        explanation="Load jobs and compaction compete for the same CPU and IO",
        recommended_approach=RecommendedApproach(
            approach="workload_scheduling",
            priority=Priority.MEDIUM,
            steps=(
                "Move bulk loads away from compaction-heavy periods",
                "Merge small loads into larger batches",
                "Add compute capacity if both stay saturated",
            ),
        ),
    ),
    CrossModuleImpactRule(
        name="memory_ingestion_contention",
        required_experts=("memory", "ingestion"),
        condition=lambda memory, ingestion: (
            bool(memory.criticals)
            and (_load_queue_pressure(ingestion) or ingestion.has_issue(types=["long_running_loads"]))
        ),
        impact_level="MEDIUM",
        explanation="Memory pressure slows loads down and lets the load queue build up",
        recommended_approach=RecommendedApproach(
            approach="memory_relief",
            priority=Priority.MEDIUM,
            steps=(
                "Kill or defer memory-heavy queries",
                "Lower load concurrency until memory recovers",
                "Bound workloads with resource groups",
            ),
        ),
    ),
    CrossModuleImpactRule(
        name="cache_compaction_churn",
        required_experts=("cache", "compaction"),
        condition=lambda cache, compaction: (
            _critical(cache, "hit_ratio") and _compaction_score_critical(compaction)
        ),
        impact_level="MEDIUM",
        explanation="Heavy compaction rewrites data and evicts it from the cache",
        recommended_approach=RecommendedApproach(
            approach="cache_stabilization",
            priority=Priority.MEDIUM,
            steps=(
                "Bring compaction scores down first",
                "Warm up the cache for hot tables after compaction settles",
                "Check cache hit ratios again",
            ),
        ),
    ),
)
