"""Base class for diagnosis dimensions.

A dimension is one independently evaluated slice of a domain (e.g. for
compaction: score distribution, thread configuration, task execution,
system pressure). Dimensions read a MetricSnapshot, consult the rule
set, and return Issues and Insights.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional, Union, TYPE_CHECKING

from ...config.bands import Band, BandTable, classify_by_descending_threshold
from .models import Insight, Issue, Severity, Urgency

if TYPE_CHECKING:
    from ...config.ruleset import RuleSet
    from ..collection.snapshot import MetricSnapshot

Finding = Union[Issue, Insight]


class BaseDimension(ABC):
    """Abstract base class for diagnosis dimensions.

    All dimensions must implement:
    - dimension_id: Unique identifier within the domain
    - domain: Domain the dimension belongs to
    - check(): Main evaluation method

    Attributes
    ----------
    dimension_id : str
        Identifier, unique within the domain
    domain : str
        Domain name (storage, compaction, ...)
    description : str
        Human-readable description
    """

    dimension_id: str = "base"
    domain: str = "general"
    description: str = "Base dimension"

    def __init__(self, rule_set: "RuleSet"):
        self.rule_set = rule_set

    def get_threshold(self, name: str, default: Any = None) -> Any:
        """Get a threshold from the rule set (dotted paths allowed)."""
        return self.rule_set.get_threshold(name, default)

    def band(self, name: str) -> BandTable:
        """Get a band table from the rule set."""
        return self.rule_set.band(name)

    def classify(self, value: Any, table_name: str) -> Optional[Band]:
        """Classify a value against a named band table (first match wins)."""
        return classify_by_descending_threshold(value, self.band(table_name))

    def create_issue(
        self,
        issue_type: str,
        severity: Union[Severity, str],
        message: str,
        impact: str = "",
        urgency: Optional[Union[Urgency, str]] = None,
        subject: Optional[str] = None,
        recommended_actions: Optional[List[str]] = None,
        **metrics,
    ) -> Issue:
        """Create an Issue tagged with this dimension."""
        return Issue(
            type=issue_type,
            severity=severity if isinstance(severity, Severity) else Severity(severity),
            message=message,
            metrics=metrics,
            impact=impact,
            urgency=urgency,
            subject=subject,
            recommended_actions=tuple(recommended_actions or ()),
            dimension=self.dimension_id,
        )

    def issue_from_band(
        self,
        band: Band,
        message: str,
        impact: str = "",
        subject: Optional[str] = None,
        recommended_actions: Optional[List[str]] = None,
        **metrics,
    ) -> Issue:
        """Create an Issue whose type, severity and urgency come from a band."""
        return self.create_issue(
            issue_type=band.issue_type,
            severity=band.severity,
            message=message,
            impact=impact,
            urgency=band.urgency,
            subject=subject,
            recommended_actions=recommended_actions,
            band=band.name,
            threshold=band.threshold,
            **metrics,
        )

    def create_insight(self, insight_type: str, message: str, **details) -> Insight:
        """Create an Insight tagged with this dimension."""
        return Insight(
            type=insight_type,
            message=message,
            details=details,
            dimension=self.dimension_id,
        )

    @abstractmethod
    def check(self, snapshot: "MetricSnapshot") -> List[Finding]:
        """Evaluate the dimension.

        Parameters
        ----------
        snapshot : MetricSnapshot
            Collected metrics

        Returns
        -------
        List[Issue or Insight]
            Findings in a deterministic order (empty if none)
        """
        pass

    def is_applicable(self, snapshot: "MetricSnapshot") -> bool:
        """Check whether the dimension has anything to evaluate.

        Override in subclasses for dimensions that depend on optional data.
        """
        return True
