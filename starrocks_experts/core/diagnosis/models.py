"""Diagnosis data model.

Provides:
- Severity / Urgency: Enumerations for issue classification
- Issue: A classified, actionable finding
- Insight: A non-actionable observation (never scored)
- Diagnosis: The full output of one DiagnosisEngine run
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple


class Severity(Enum):
    """Issue severity."""

    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class Urgency(Enum):
    """How soon an issue should be addressed."""

    IMMEDIATE = "IMMEDIATE"
    WITHIN_HOURS = "WITHIN_HOURS"
    WITHIN_DAYS = "WITHIN_DAYS"
    WITHIN_WEEKS = "WITHIN_WEEKS"


DEFAULT_URGENCY = {
    Severity.CRITICAL: Urgency.WITHIN_HOURS,
    Severity.WARNING: Urgency.WITHIN_DAYS,
    Severity.INFO: Urgency.WITHIN_WEEKS,
}


def _plain(value: Any) -> Any:
    """Convert numpy scalars to builtin types so payloads serialize cleanly."""
    if hasattr(value, "item") and not isinstance(value, (str, bytes)):
        try:
            return value.item()
        except (TypeError, ValueError):
            return value
    if isinstance(value, Mapping):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


@dataclass(frozen=True)
class Issue:
    """A classified finding produced by one diagnosis dimension.

    Attributes
    ----------
    type : str
        Issue type (e.g. "disk_emergency"); keys recommendation templates
    severity : Severity
        critical, warning or info
    message : str
        Human-readable description
    metrics : Mapping[str, Any]
        Supporting measurements
    impact : str
        What happens if the issue is ignored
    urgency : Urgency
        How soon to act
    subject : str, optional
        Node, partition or job the issue refers to
    recommended_actions : Tuple[str, ...]
        Short inline remediation hints
    dimension : str
        Diagnosis dimension that produced the issue
    """

    type: str
    severity: Severity
    message: str
    metrics: Mapping[str, Any] = field(default_factory=dict)
    impact: str = ""
    urgency: Optional[Urgency] = None
    subject: Optional[str] = None
    recommended_actions: Tuple[str, ...] = ()
    dimension: str = ""

    def __post_init__(self):
        if not isinstance(self.severity, Severity):
            object.__setattr__(self, "severity", Severity(self.severity))
        if self.urgency is None:
            object.__setattr__(self, "urgency", DEFAULT_URGENCY[self.severity])
        elif not isinstance(self.urgency, Urgency):
            object.__setattr__(self, "urgency", Urgency(self.urgency))
        object.__setattr__(self, "metrics", MappingProxyType(_plain(dict(self.metrics))))
        object.__setattr__(self, "recommended_actions", tuple(self.recommended_actions))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        data = {
            "type": self.type,
            "severity": self.severity.value,
            "message": self.message,
            "metrics": dict(self.metrics),
            "impact": self.impact,
            "urgency": self.urgency.value,
        }
        if self.subject is not None:
            data["subject"] = self.subject
        if self.recommended_actions:
            data["recommended_actions"] = list(self.recommended_actions)
        if self.dimension:
            data["dimension"] = self.dimension
        return data


@dataclass(frozen=True)
class Insight:
    """A non-actionable observation (distributions, configuration notes)."""

    type: str
    message: str
    details: Mapping[str, Any] = field(default_factory=dict)
    dimension: str = ""

    def __post_init__(self):
        object.__setattr__(self, "details", MappingProxyType(_plain(dict(self.details))))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        data = {
            "type": self.type,
            "message": self.message,
            "details": dict(self.details),
        }
        if self.dimension:
            data["dimension"] = self.dimension
        return data


@dataclass(frozen=True)
class Diagnosis:
    """Output of one DiagnosisEngine run.

    Attributes
    ----------
    domain : str
        Domain the rule set belongs to
    criticals : Tuple[Issue, ...]
        Critical issues
    warnings : Tuple[Issue, ...]
        Warnings
    issues : Tuple[Issue, ...]
        Informational issues
    insights : Tuple[Insight, ...]
        Non-actionable observations
    summary : str
        One-line summary
    rule_set_version : str
        Version of the rule set that was evaluated
    dimensions_evaluated : Tuple[str, ...]
        Dimensions that ran to completion
    dimensions_failed : Tuple[str, ...]
        Dimensions that raised and were skipped
    """

    domain: str
    criticals: Tuple[Issue, ...] = ()
    warnings: Tuple[Issue, ...] = ()
    issues: Tuple[Issue, ...] = ()
    insights: Tuple[Insight, ...] = ()
    summary: str = ""
    rule_set_version: str = ""
    dimensions_evaluated: Tuple[str, ...] = ()
    dimensions_failed: Tuple[str, ...] = ()

    @classmethod
    def from_findings(
        cls,
        domain: str,
        findings: Iterable[Any],
        **kwargs,
    ) -> "Diagnosis":
        """Split a mixed sequence of Issues and Insights by severity.

        Order within each bucket follows the input order.
        """
        criticals: List[Issue] = []
        warnings: List[Issue] = []
        infos: List[Issue] = []
        insights: List[Insight] = []
        for finding in findings:
            if isinstance(finding, Insight):
                insights.append(finding)
            elif finding.severity is Severity.CRITICAL:
                criticals.append(finding)
            elif finding.severity is Severity.WARNING:
                warnings.append(finding)
            else:
                infos.append(finding)
        return cls(
            domain=domain,
            criticals=tuple(criticals),
            warnings=tuple(warnings),
            issues=tuple(infos),
            insights=tuple(insights),
            **kwargs,
        )

    @property
    def total_issues(self) -> int:
        return len(self.criticals) + len(self.warnings) + len(self.issues)

    @property
    def all_issues(self) -> Tuple[Issue, ...]:
        """Issues ordered criticals, warnings, informational."""
        return self.criticals + self.warnings + self.issues

    def issue_types(self, severity: Optional[Severity] = None) -> List[str]:
        """Issue types present, optionally restricted to one severity."""
        return [
            i.type for i in self.all_issues
            if severity is None or i.severity is severity
        ]

    def has_issue(
        self,
        type_contains: Optional[str] = None,
        severity: Optional[Severity] = None,
        types: Optional[Iterable[str]] = None,
    ) -> bool:
        """Check for an issue matching all given filters.

        Parameters
        ----------
        type_contains : str, optional
            Substring of the issue type
        severity : Severity, optional
            Required severity
        types : Iterable[str], optional
            Exact issue types, any of which matches
        """
        wanted = set(types) if types is not None else None
        for issue in self.all_issues:
            if severity is not None and issue.severity is not severity:
                continue
            if type_contains is not None and type_contains not in issue.type:
                continue
            if wanted is not None and issue.type not in wanted:
                continue
            return True
        return False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (``diagnosis_results`` payload)."""
        return {
            "criticals": [i.to_dict() for i in self.criticals],
            "warnings": [i.to_dict() for i in self.warnings],
            "issues": [i.to_dict() for i in self.issues],
            "insights": [i.to_dict() for i in self.insights],
            "summary": self.summary,
            "total_issues": self.total_issues,
            "rule_set_version": self.rule_set_version,
            "dimensions_evaluated": list(self.dimensions_evaluated),
            "dimensions_failed": list(self.dimensions_failed),
        }
