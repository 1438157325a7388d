"""Multi-expert coordination.

The coordinator fans out one task per selected expert, gathers every
result or failure, correlates diagnoses across domains, computes an
aggregate assessment and merges all recommendations into one globally
prioritized list.

Example Usage
-------------
    >>> from starrocks_experts.core.coordination import ExpertCoordinator
    >>> from starrocks_experts.io import SQLAlchemyDataSource
    >>> coordinator = ExpertCoordinator(max_workers=4)
    >>> analysis = coordinator.perform_coordinated_analysis(
    ...     SQLAlchemyDataSource("mysql+pymysql://root@fe:9030"),
    ...     expert_scope=["storage", "compaction"],
    ... )
    >>> analysis.comprehensive_assessment["overall_status"]
    'CRITICAL'
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from itertools import combinations
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, TYPE_CHECKING
import logging
import time

from ...errors import ExpertFailure
from ..collection.snapshot import CollectionScope
from ..experts.base import ExpertResult
from ..experts.registry import ExpertRegistry
from ..recommendation.models import SOURCE_CROSS_MODULE, Action, Recommendation
from ..scoring.health import (
    BASELINE_SCORE,
    HealthStatus,
    clamp_score,
    classify_health_level,
)
from .impact_rules import CROSS_MODULE_RULES, CrossModuleImpactRule

if TYPE_CHECKING:
    from ...config.ruleset import RuleSet
    from ...io.datasource import DataSource

logger = logging.getLogger(__name__)

COORDINATOR_VERSION = "1.0.0"
CROSS_IMPACT_PENALTY = 10


class CoordinatorState(Enum):
    """Stages of one coordinated analysis."""

    PENDING = "PENDING"
    COLLECTING = "COLLECTING"
    CORRELATING = "CORRELATING"
    SCORING = "SCORING"
    RECOMMENDING = "RECOMMENDING"
    DONE = "DONE"


@dataclass(frozen=True)
class RankedRecommendation:
    """A recommendation with its position in the merged plan."""

    execution_order: int
    recommendation: Recommendation

    def to_dict(self) -> Dict[str, Any]:
        data = self.recommendation.to_dict()
        data["execution_order"] = self.execution_order
        if self.recommendation.is_cross_module:
            data["coordination_notes"] = "Requires coordinated changes across modules"
        return data


@dataclass
class CoordinatedAnalysis:
    """Merged output of one coordinated analysis.

    Attributes
    ----------
    expert_results : Dict[str, ExpertResult]
        Successful experts, in scope order
    cross_module_analysis : Dict
        ``impacts``, ``correlations`` and ``analysis_summary``
    comprehensive_assessment : Dict
        Overall score, level, status, risk assessment and summary
    prioritized_recommendations : List[RankedRecommendation]
        Merged and globally ordered recommendations
    analysis_metadata : Dict
        Counts, timing and coordinator state history
    expert_failures : List[ExpertFailure]
        Experts that failed, in scope order
    """

    expert_results: Dict[str, ExpertResult]
    cross_module_analysis: Dict[str, Any]
    comprehensive_assessment: Dict[str, Any]
    prioritized_recommendations: List[RankedRecommendation] = field(default_factory=list)
    analysis_metadata: Dict[str, Any] = field(default_factory=dict)
    expert_failures: List[ExpertFailure] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "comprehensive_assessment": self.comprehensive_assessment,
            "expert_results": {name: r.to_dict() for name, r in self.expert_results.items()},
            "cross_module_analysis": self.cross_module_analysis,
            "prioritized_recommendations": [r.to_dict() for r in self.prioritized_recommendations],
            "analysis_metadata": self.analysis_metadata,
            "expert_failures": [f.to_dict() for f in self.expert_failures],
        }


def correlation_strength(score_a: float, score_b: float) -> str:
    """HIGH when two health scores are within 20 points, MEDIUM within 40, else LOW."""
    gap = abs(score_a - score_b)
    if gap < 20:
        return "HIGH"
    if gap < 40:
        return "MEDIUM"
    return "LOW"


def cross_module_recommendation(rule: CrossModuleImpactRule) -> Recommendation:
    """Synthesize the recommendation of a fired rule."""
    approach = rule.recommended_approach
    return Recommendation(
        category=rule.category,
        priority=approach.priority,
        title=f"Cross-module coordination: {rule.explanation}",
        description=f"Coordinated {approach.approach.replace('_', ' ')} across {' and '.join(rule.required_experts)}",
        actions=tuple(Action(action=step, risk_level="medium") for step in approach.steps),
        risk_level="medium",
        source_type=SOURCE_CROSS_MODULE,
        source_expert="coordinator",
        source_rule=rule.name,
        affected_modules=tuple(rule.required_experts),
    )


class ExpertCoordinator:
    """Run experts concurrently and correlate their findings.

    Parameters
    ----------
    rulesets : Mapping[str, RuleSet], optional
        Rule set override per expert name
    max_workers : int, optional
        Thread pool size (defaults to one thread per selected expert)
    clock : Callable[[], datetime], optional
        Source of collection timestamps passed to every expert
    rules : Sequence[CrossModuleImpactRule]
        Cross-module rule table

    Attributes
    ----------
    state : CoordinatorState
        Current stage
    state_history : List[str]
        Stages visited by the last analysis
    """

    def __init__(
        self,
        rulesets: Optional[Mapping[str, "RuleSet"]] = None,
        max_workers: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
        rules: Sequence[CrossModuleImpactRule] = CROSS_MODULE_RULES,
    ):
        self.rulesets = dict(rulesets or {})
        self.max_workers = max_workers
        self.clock = clock
        self.rules = tuple(rules)
        self.state = CoordinatorState.PENDING
        self.state_history: List[str] = [self.state.value]

    def _transition(self, state: CoordinatorState) -> None:
        logger.debug("Coordinator %s -> %s", self.state.value, state.value)
        self.state = state
        self.state_history.append(state.value)

    def resolve_scope(self, expert_scope: Optional[Sequence[str]]) -> List[str]:
        """Expert names to run; None selects every registered expert.

        Raises
        ------
        ValueError
            If a name is not a registered expert
        """
        available = ExpertRegistry.list_names()
        if expert_scope is None:
            return available
        unknown = [name for name in expert_scope if name not in available]
        if unknown:
            raise ValueError(f"Unknown expert(s) {unknown}. Available: {available}")
        return list(dict.fromkeys(expert_scope))

    def perform_coordinated_analysis(
        self,
        data_source: "DataSource",
        include_details: bool = False,
        expert_scope: Optional[Sequence[str]] = None,
        include_cross_analysis: bool = True,
        scope: Optional[CollectionScope] = None,
    ) -> CoordinatedAnalysis:
        """Run the selected experts and merge their results.

        Parameters
        ----------
        data_source : DataSource
            Shared source; every expert task opens its own session
        include_details : bool
            Keep each expert's raw snapshot
        expert_scope : Sequence[str], optional
            Expert names (None = all registered, [] = none)
        include_cross_analysis : bool
            Evaluate cross-module impact rules
        scope : CollectionScope, optional
            Target object and time window passed to every expert

        Returns
        -------
        CoordinatedAnalysis
            Always well-formed; failed experts are listed in
            ``expert_failures``

        Raises
        ------
        ValueError
            If expert_scope names an unknown expert
        """
        names = self.resolve_scope(expert_scope)
        start_time = time.time()
        self.state = CoordinatorState.PENDING
        self.state_history = [self.state.value]

        self._transition(CoordinatorState.COLLECTING)
        results, failures = self._run_experts(names, data_source, include_details, scope)

        self._transition(CoordinatorState.CORRELATING)
        if include_cross_analysis:
            cross = self.analyze_cross_module_impacts(results)
        else:
            cross = {"impacts": [], "correlations": [], "analysis_summary": "Cross-module analysis skipped"}

        self._transition(CoordinatorState.SCORING)
        assessment = self.generate_comprehensive_assessment(results, cross, failures)

        self._transition(CoordinatorState.RECOMMENDING)
        prioritized = self.prioritize_recommendations(results, cross, self.rules)

        self._transition(CoordinatorState.DONE)
        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            "Coordinated analysis of %d expert(s): score %s (%s), %d cross-module impact(s), "
            "%d failure(s) in %dms",
            len(results),
            assessment["overall_health_score"],
            assessment["overall_status"],
            len(cross["impacts"]),
            len(failures),
            duration_ms,
        )

        return CoordinatedAnalysis(
            expert_results=results,
            cross_module_analysis=cross,
            comprehensive_assessment=assessment,
            prioritized_recommendations=prioritized,
            analysis_metadata={
                "experts_requested": names,
                "experts_count": len(results),
                "experts_failed": len(failures),
                "total_issues_found": sum(r.diagnosis.total_issues for r in results.values()),
                "cross_impacts_found": len(cross["impacts"]),
                "analysis_duration_ms": duration_ms,
                "timestamp": datetime.now().isoformat(),
                "coordinator_version": COORDINATOR_VERSION,
                "state_history": list(self.state_history),
            },
            expert_failures=failures,
        )

    def _run_experts(
        self,
        names: List[str],
        data_source: "DataSource",
        include_details: bool,
        scope: Optional[CollectionScope],
    ):
        if not names:
            return {}, []

        settled: Dict[str, Any] = {}
        workers = self.max_workers or len(names)
        with ThreadPoolExecutor(max_workers=max(1, min(workers, len(names)))) as executor:
            futures = {
                executor.submit(self._run_expert, name, data_source, include_details, scope): name
                for name in names
            }
            for future in as_completed(futures):
                name = futures[future]
                try:
                    settled[name] = future.result()
                except Exception as e:
                    failure = ExpertFailure(name, e)
                    logger.warning(
                        "Expert '%s' failed (%s): %s", name, failure.error_type, e
                    )
                    settled[name] = failure

        # Scope order, independent of completion order
        results = {n: settled[n] for n in names if isinstance(settled[n], ExpertResult)}
        failures = [settled[n] for n in names if isinstance(settled[n], ExpertFailure)]
        return results, failures

    def _run_expert(
        self,
        name: str,
        data_source: "DataSource",
        include_details: bool,
        scope: Optional[CollectionScope],
    ) -> ExpertResult:
        expert = ExpertRegistry.create(name, rule_set=self.rulesets.get(name), clock=self.clock)
        return expert.diagnose(data_source, include_details=include_details, scope=scope)

    def analyze_cross_module_impacts(self, results: Mapping[str, ExpertResult]) -> Dict[str, Any]:
        """Evaluate every rule whose two experts both produced a result."""
        diagnoses = {name: result.diagnosis for name, result in results.items()}
        impacts = []
        for rule in self.rules:
            if not rule.applies_to(diagnoses):
                continue
            try:
                fired = rule.evaluate(diagnoses)
            except Exception as e:
                logger.warning("Cross-module rule '%s' failed: %s", rule.name, e)
                continue
            if fired:
                impacts.append(rule.impact_record())

        correlations = [
            {
                "type": f"{a}_{b}_health_correlation",
                "experts": [a, b],
                f"{a}_health_score": results[a].health.score,
                f"{b}_health_score": results[b].health.score,
                "correlation_strength": correlation_strength(
                    results[a].health.score, results[b].health.score
                ),
            }
            for a, b in combinations(list(results), 2)
        ]

        return {
            "impacts": impacts,
            "correlations": correlations,
            "analysis_summary": self._cross_analysis_summary(impacts, correlations),
        }

    @staticmethod
    def _cross_analysis_summary(impacts: List[Dict], correlations: List[Dict]) -> str:
        if not impacts and not correlations:
            return "Modules are independent; no cross-module impact found"
        parts = []
        high = sum(1 for i in impacts if i["impact_level"] == "HIGH")
        if high:
            parts.append(f"{high} high-impact cross-module issue(s)")
        elif impacts:
            parts.append(f"{len(impacts)} cross-module issue(s)")
        strong = sum(1 for c in correlations if c["correlation_strength"] == "HIGH")
        if strong:
            parts.append(f"{strong} strongly correlated module pair(s)")
        return "; ".join(parts) if parts else "No significant cross-module impact"

    def generate_comprehensive_assessment(
        self,
        results: Mapping[str, ExpertResult],
        cross: Mapping[str, Any],
        failures: Sequence[ExpertFailure] = (),
    ) -> Dict[str, Any]:
        """Aggregate score, level, status, risk and summary.

        The score is the mean of expert scores minus a fixed penalty per
        cross-module impact, clamped to [0, 100]; an empty result set
        scores 100.
        """
        impacts = cross.get("impacts", [])
        scores = [r.health.score for r in results.values()]
        mean = sum(scores) / len(scores) if scores else BASELINE_SCORE
        score = round(clamp_score(mean - CROSS_IMPACT_PENALTY * len(impacts)), 1)

        has_criticals = any(r.health.status is HealthStatus.CRITICAL for r in results.values())
        has_warnings = any(r.health.status is HealthStatus.WARNING for r in results.values())
        if has_criticals or impacts:
            status = HealthStatus.CRITICAL
        elif has_warnings:
            status = HealthStatus.WARNING
        else:
            status = HealthStatus.HEALTHY

        return {
            "overall_health_score": score,
            "health_level": classify_health_level(score).value,
            "overall_status": status.value,
            "expert_scores": {
                name: {"score": r.health.score, "status": r.health.status.value}
                for name, r in results.items()
            },
            "cross_module_impact": bool(impacts),
            "system_risk_assessment": self.assess_system_risk(results, impacts),
            "key_findings": self._key_findings(results, impacts),
            "failed_experts": [f.expert for f in failures],
            "summary": self._overall_summary(status, list(results), bool(impacts), failures),
        }

    @staticmethod
    def assess_system_risk(
        results: Mapping[str, ExpertResult],
        impacts: Sequence[Mapping[str, Any]],
    ) -> Dict[str, Any]:
        """HIGH risk per expert with criticals, CRITICAL for HIGH cross impacts."""
        risks = []
        for name, result in results.items():
            count = len(result.diagnosis.criticals)
            if count:
                risks.append({
                    "source": name,
                    "type": "expert_critical_issues",
                    "count": count,
                    "risk_level": "HIGH",
                    "description": f"{name} reported {count} critical issue(s)",
                })
        high_impacts = [i for i in impacts if i["impact_level"] == "HIGH"]
        if high_impacts:
            risks.append({
                "source": "cross_module",
                "type": "system_level_impact",
                "count": len(high_impacts),
                "risk_level": "CRITICAL",
                "description": "Cascading problems across modules need a coordinated fix",
            })

        levels = {r["risk_level"] for r in risks}
        if "CRITICAL" in levels:
            overall = "CRITICAL"
        elif "HIGH" in levels:
            overall = "HIGH"
        elif risks:
            overall = "MEDIUM"
        else:
            overall = "LOW"
        return {"total_risks": len(risks), "risk_breakdown": risks, "overall_risk_level": overall}

    @staticmethod
    def _key_findings(
        results: Mapping[str, ExpertResult],
        impacts: Sequence[Mapping[str, Any]],
    ) -> List[str]:
        findings = []
        for name, result in results.items():
            for issue in result.diagnosis.criticals[:3]:
                findings.append(f"[{name}] {issue.message}")
        for impact in impacts:
            findings.append(f"[cross_module] {impact['explanation']}")
        return findings

    @staticmethod
    def _overall_summary(
        status: HealthStatus,
        names: List[str],
        has_impacts: bool,
        failures: Sequence[ExpertFailure],
    ) -> str:
        if not names and not failures:
            return "No experts selected"
        parts = [f"Analyzed {len(names)} module(s)" + (f" ({', '.join(names)})" if names else "")]
        if failures:
            parts.append(f"{len(failures)} expert(s) failed: {', '.join(f.expert for f in failures)}")
        if status is HealthStatus.CRITICAL:
            parts.append("critical problems need immediate attention")
        elif status is HealthStatus.WARNING:
            parts.append("warnings should be addressed soon")
        else:
            parts.append("system is healthy")
        if has_impacts:
            parts.append("cross-module impacts call for a coordinated fix")
        return "; ".join(parts)

    @staticmethod
    def prioritize_recommendations(
        results: Mapping[str, ExpertResult],
        cross: Mapping[str, Any],
        rules: Sequence[CrossModuleImpactRule] = CROSS_MODULE_RULES,
    ) -> List[RankedRecommendation]:
        """Merge and globally order recommendations.

        Expert recommendations (scope order) are followed by one
        recommendation per fired rule, then stably sorted by priority
        descending with cross-module recommendations first within a
        priority.
        """
        merged: List[Recommendation] = []
        for result in results.values():
            merged.extend(result.recommendations)

        by_name = {rule.name: rule for rule in rules}
        for impact in cross.get("impacts", []):
            rule = by_name.get(impact["rule_name"])
            if rule is not None:
                merged.append(cross_module_recommendation(rule))

        merged.sort(key=lambda rec: (-rec.priority.rank, 0 if rec.is_cross_module else 1))
        return [RankedRecommendation(i, rec) for i, rec in enumerate(merged, start=1)]
