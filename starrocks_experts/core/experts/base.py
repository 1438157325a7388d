"""Base class for domain experts.

An expert composes DataCollector -> DiagnosisEngine -> HealthScorer ->
RecommendationGenerator into one ``diagnose()`` call. The data source
session is held only for the precondition check and the collection;
diagnosis, scoring and recommendation run on the snapshot afterwards.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, TYPE_CHECKING
import logging
import time

from ...config.ruleset import RuleSet, get_default_ruleset
from ...errors import ConfigurationError, PreconditionError
from ..collection.architecture import detect_run_mode
from ..collection.collector import DataCollector
from ..collection.snapshot import CollectionScope, MetricSnapshot
from ..diagnosis.engine import DiagnosisEngine, default_summary
from ..diagnosis.models import Diagnosis
from ..recommendation.generator import RecommendationGenerator, RecommendationTemplate
from ..recommendation.models import Recommendation
from ..scoring.health import HealthScore, HealthScorer, HealthStatus

if TYPE_CHECKING:
    from ...io.datasource import DataSource, QueryHandle

logger = logging.getLogger(__name__)

NEXT_CHECK_INTERVALS = {
    HealthStatus.CRITICAL: "30 minutes",
    HealthStatus.WARNING: "2 hours",
    HealthStatus.HEALTHY: "12 hours",
}


@dataclass
class ExpertResult:
    """Result of one ``Expert.diagnose()`` call.

    Attributes
    ----------
    expert : str
        Expert name
    version : str
        Expert version
    timestamp : str
        ISO timestamp of the analysis
    analysis_duration_ms : int
        Wall time of the call
    health : HealthScore
        Score, level and status
    diagnosis : Diagnosis
        Issues and insights
    recommendations : List[Recommendation]
        Prioritized recommendations followed by the preventive tail
    raw_data : Dict, optional
        Collected snapshot, only when details were requested
    next_check_interval : str
        Suggested time until the next check
    rule_set_version : str
        Version of the rule set used
    collection_errors : Dict[str, str]
        Snapshot keys that fell back to defaults
    """

    expert: str
    version: str
    timestamp: str
    analysis_duration_ms: int
    health: HealthScore
    diagnosis: Diagnosis
    recommendations: List[Recommendation] = field(default_factory=list)
    raw_data: Optional[Dict[str, Any]] = None
    next_check_interval: str = ""
    rule_set_version: str = ""
    collection_errors: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "expert": self.expert,
            "version": self.version,
            "timestamp": self.timestamp,
            "analysis_duration_ms": self.analysis_duration_ms,
            "health": self.health.to_dict(),
            "diagnosis_results": self.diagnosis.to_dict(),
            "professional_recommendations": [r.to_dict() for r in self.recommendations],
            "raw_data": self.raw_data,
            "next_check_interval": self.next_check_interval,
            "rule_set_version": self.rule_set_version,
            "collection_errors": dict(self.collection_errors),
        }


class BaseExpert(ABC):
    """Abstract base class for domain experts.

    All experts must define:
    - name, version, description, capabilities: listing metadata
    - build_collector(): the domain's DataCollector
    - recommendation_templates(): issue type -> template

    and may define:
    - required_run_mode: cluster architecture the rules apply to
    - required_bands / required_thresholds: rule set entries relied on
    - preventive_templates(): preventive tail
    - summarize(): domain-specific diagnosis summary

    Parameters
    ----------
    rule_set : RuleSet, optional
        Rule set override; defaults to the builtin rule set of the domain
    clock : Callable[[], datetime], optional
        Source of collection timestamps
    skip_dimensions : List[str], optional
        Dimension IDs to leave out

    Raises
    ------
    ConfigurationError
        If metadata is missing or the rule set does not fit the expert
    """

    name: str = ""
    version: str = ""
    description: str = ""
    capabilities: Tuple[str, ...] = ()
    required_run_mode: Optional[str] = None
    required_bands: Tuple[str, ...] = ()
    required_thresholds: Tuple[str, ...] = ()

    def __init__(
        self,
        rule_set: Optional[RuleSet] = None,
        clock: Optional[Callable[[], datetime]] = None,
        skip_dimensions: Optional[List[str]] = None,
    ):
        self._validate_metadata()

        self.rule_set = rule_set or get_default_ruleset(self.name)
        if self.rule_set.domain != self.name:
            raise ConfigurationError(
                f"Expert '{self.name}' cannot use rule set for domain '{self.rule_set.domain}'"
            )
        self.rule_set.validate_requirements(
            list(self.required_bands), list(self.required_thresholds)
        )

        self.collector = self.build_collector(clock)
        self.engine = DiagnosisEngine(
            self.name,
            skip_dimensions=skip_dimensions,
            summary_builder=self.summarize,
        )
        self.scorer = HealthScorer(self.rule_set.scoring)
        self.generator = RecommendationGenerator(
            self.name,
            self.recommendation_templates(),
            self.preventive_templates(),
        )

    @classmethod
    def _validate_metadata(cls) -> None:
        missing = [
            attr for attr in ("name", "version", "description", "capabilities")
            if not getattr(cls, attr)
        ]
        if missing:
            raise ConfigurationError(
                f"Expert class {cls.__name__} is missing metadata: {', '.join(missing)}"
            )

    @abstractmethod
    def build_collector(self, clock: Optional[Callable[[], datetime]] = None) -> DataCollector:
        """Create the domain collector."""
        pass

    @abstractmethod
    def recommendation_templates(self) -> Mapping[str, RecommendationTemplate]:
        """Recommendation template per issue type."""
        pass

    def preventive_templates(self) -> Sequence[RecommendationTemplate]:
        """Preventive recommendations appended to every result."""
        return ()

    def summarize(self, diagnosis: Diagnosis) -> str:
        """One-line diagnosis summary."""
        return default_summary(diagnosis)

    @classmethod
    def describe(cls) -> Dict[str, Any]:
        """Static listing metadata."""
        return {
            "name": cls.name,
            "version": cls.version,
            "description": cls.description,
            "capabilities": list(cls.capabilities),
        }

    def check_preconditions(self, handle: "QueryHandle") -> None:
        """Fail fast when the domain rules do not apply to this cluster.

        Raises
        ------
        PreconditionError
            If the detected run mode differs from ``required_run_mode``
        """
        if self.required_run_mode is None:
            return
        run_mode = detect_run_mode(handle)
        if run_mode != self.required_run_mode:
            raise PreconditionError(
                self.name,
                f"{self.description} requires a {self.required_run_mode} cluster "
                f"(detected run mode: {run_mode})",
            )

    def analyze(self, snapshot: MetricSnapshot) -> Tuple[Diagnosis, HealthScore, List[Recommendation]]:
        """Run the CPU-only stages on a collected snapshot."""
        diagnosis = self.engine.evaluate(snapshot, self.rule_set)
        health = self.scorer.score(diagnosis)
        recommendations = self.generator.generate(diagnosis, snapshot)
        return diagnosis, health, recommendations

    def diagnose(
        self,
        data_source: "DataSource",
        include_details: bool = False,
        scope: Optional[CollectionScope] = None,
    ) -> ExpertResult:
        """Collect, diagnose, score and recommend.

        Parameters
        ----------
        data_source : DataSource
            Source of a scoped query handle (released on every exit path)
        include_details : bool
            Attach the collected snapshot as ``raw_data``
        scope : CollectionScope, optional
            Target object and time window filters

        Returns
        -------
        ExpertResult
            Well-formed result (sections may be empty)

        Raises
        ------
        PreconditionError
            If the domain does not apply to the cluster
        """
        start_time = time.time()
        timestamp = datetime.now().isoformat()

        with data_source.session() as handle:
            self.check_preconditions(handle)
            snapshot = self.collector.collect(handle, scope)

        diagnosis, health, recommendations = self.analyze(snapshot)

        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            "%s expert: score %.1f (%s), %d issues, %d recommendations in %dms",
            self.name,
            health.score,
            health.status.value,
            diagnosis.total_issues,
            len(recommendations),
            duration_ms,
        )

        return ExpertResult(
            expert=self.name,
            version=self.version,
            timestamp=timestamp,
            analysis_duration_ms=duration_ms,
            health=health,
            diagnosis=diagnosis,
            recommendations=recommendations,
            raw_data=snapshot.to_dict() if include_details else None,
            next_check_interval=NEXT_CHECK_INTERVALS[health.status],
            rule_set_version=self.rule_set.version,
            collection_errors=dict(snapshot.collection_errors),
        )
