"""DiagnosisEngine - evaluates a rule set against a metric snapshot.

Dimensions run independently in registration order and their findings
are concatenated. A dimension that raises is logged and skipped; the
others still run.
"""

from dataclasses import replace
from typing import Callable, List, Optional, TYPE_CHECKING
import logging

from .base import BaseDimension, Finding
from .models import Diagnosis
from .registry import DimensionRegistry

if TYPE_CHECKING:
    from ...config.ruleset import RuleSet
    from ..collection.snapshot import MetricSnapshot

logger = logging.getLogger(__name__)

SummaryBuilder = Callable[[Diagnosis], str]


def default_summary(diagnosis: Diagnosis) -> str:
    """Generic one-line summary of a diagnosis."""
    if diagnosis.total_issues == 0:
        return f"{diagnosis.domain.capitalize()} is healthy: no issues found"

    parts = []
    if diagnosis.criticals:
        parts.append(f"{len(diagnosis.criticals)} critical")
    if diagnosis.warnings:
        parts.append(f"{len(diagnosis.warnings)} warning")
    if diagnosis.issues:
        parts.append(f"{len(diagnosis.issues)} informational")
    return f"{diagnosis.domain.capitalize()} diagnosis found " + ", ".join(parts) + " issue(s)"


class DiagnosisEngine:
    """Engine evaluating the dimensions of one domain.

    Parameters
    ----------
    domain : str
        Domain whose registered dimensions are evaluated
    skip_dimensions : List[str], optional
        Dimension IDs to leave out
    summary_builder : Callable[[Diagnosis], str], optional
        Domain-specific summary; defaults to a generic count summary

    Example
    -------
    >>> engine = DiagnosisEngine("storage")
    >>> diagnosis = engine.evaluate(snapshot, get_default_ruleset("storage"))
    >>> diagnosis.total_issues
    1
    """

    def __init__(
        self,
        domain: str,
        skip_dimensions: Optional[List[str]] = None,
        summary_builder: Optional[SummaryBuilder] = None,
    ):
        self.domain = domain
        self.skip_dimensions = list(skip_dimensions or [])
        self.summary_builder = summary_builder or default_summary

    def evaluate(self, snapshot: "MetricSnapshot", rule_set: "RuleSet") -> Diagnosis:
        """Evaluate every dimension of the domain.

        Parameters
        ----------
        snapshot : MetricSnapshot
            Collected metrics
        rule_set : RuleSet
            Thresholds and bands (read-only, shareable)

        Returns
        -------
        Diagnosis
            Issues bucketed by severity plus insights
        """
        findings: List[Finding] = []
        evaluated: List[str] = []
        failed: List[str] = []

        dimensions = DimensionRegistry.instantiate_all(
            self.domain, rule_set, skip_dimensions=self.skip_dimensions
        )

        for dimension in dimensions:
            if not dimension.is_applicable(snapshot):
                logger.debug("Dimension %s.%s not applicable", self.domain, dimension.dimension_id)
                evaluated.append(dimension.dimension_id)
                continue

            try:
                findings.extend(self._run_dimension(dimension, snapshot))
                evaluated.append(dimension.dimension_id)
            except Exception as e:
                logger.warning(
                    "Dimension %s.%s failed: %s", self.domain, dimension.dimension_id, e
                )
                failed.append(dimension.dimension_id)

        diagnosis = Diagnosis.from_findings(
            self.domain,
            findings,
            rule_set_version=rule_set.version,
            dimensions_evaluated=tuple(evaluated),
            dimensions_failed=tuple(failed),
        )
        summary = self.summary_builder(diagnosis)

        logger.debug(
            "%s diagnosis: %d critical, %d warning, %d info, %d insights",
            self.domain,
            len(diagnosis.criticals),
            len(diagnosis.warnings),
            len(diagnosis.issues),
            len(diagnosis.insights),
        )
        return replace(diagnosis, summary=summary)

    @staticmethod
    def _run_dimension(dimension: BaseDimension, snapshot: "MetricSnapshot") -> List[Finding]:
        # Materialize so a failure halfway through drops the whole dimension
        return list(dimension.check(snapshot) or [])
