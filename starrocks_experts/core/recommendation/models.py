"""Recommendation data model.

Provides:
- Priority: IMMEDIATE > HIGH > MEDIUM > LOW
- Action: One remediation step, optionally with an executable command
- Recommendation: Prioritized remediation derived from issues or a
  cross-module impact rule
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

SOURCE_EXPERT = "expert_recommendation"
SOURCE_PREVENTIVE = "preventive"
SOURCE_CROSS_MODULE = "cross_module_recommendation"


class Priority(Enum):
    """Recommendation priority."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    IMMEDIATE = "IMMEDIATE"

    @property
    def rank(self) -> int:
        """Sort rank, higher is more urgent."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    Priority.LOW: 1,
    Priority.MEDIUM: 2,
    Priority.HIGH: 3,
    Priority.IMMEDIATE: 4,
}


@dataclass(frozen=True)
class Action:
    """One remediation step.

    Attributes
    ----------
    action : str
        What to do
    command : str, optional
        Executable SQL or shell command
    risk_level : str, optional
        low, medium or high
    estimated_time : str, optional
        Expected duration
    steps : Tuple[str, ...]
        Sub-steps, in order
    per_subject : bool
        Render once per issue subject when the recommendation aggregates
    """

    action: str
    command: Optional[str] = None
    risk_level: Optional[str] = None
    estimated_time: Optional[str] = None
    steps: Tuple[str, ...] = ()
    per_subject: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"action": self.action}
        if self.command:
            data["command"] = self.command
        if self.risk_level:
            data["risk_level"] = self.risk_level
        if self.estimated_time:
            data["estimated_time"] = self.estimated_time
        if self.steps:
            data["steps"] = list(self.steps)
        return data


@dataclass(frozen=True)
class Recommendation:
    """A prioritized remediation.

    Every non-preventive recommendation names what it was derived from:
    issue types (``source_issue_types``) or a cross-module rule
    (``source_rule``).

    Attributes
    ----------
    category : str
        Recommendation category (e.g. "emergency_disk_management")
    priority : Priority
        IMMEDIATE, HIGH, MEDIUM or LOW
    title : str
        Short title
    description : str
        Longer explanation
    actions : Tuple[Action, ...]
        Ordered remediation steps
    risk_level : str, optional
        Overall risk of carrying out the actions
    monitoring : Tuple[str, ...]
        Follow-up checks after remediation
    source_type : str
        expert_recommendation, preventive or cross_module_recommendation
    source_expert : str, optional
        Expert that produced the recommendation
    source_issue_types : Tuple[str, ...]
        Issue types the recommendation addresses
    source_rule : str, optional
        Cross-module impact rule the recommendation addresses
    affected_modules : Tuple[str, ...]
        Experts/domains involved
    subjects : Tuple[str, ...]
        Nodes, partitions or jobs covered
    """

    category: str
    priority: Priority
    title: str
    description: str = ""
    actions: Tuple[Action, ...] = ()
    risk_level: Optional[str] = None
    monitoring: Tuple[str, ...] = ()
    source_type: str = SOURCE_EXPERT
    source_expert: Optional[str] = None
    source_issue_types: Tuple[str, ...] = ()
    source_rule: Optional[str] = None
    affected_modules: Tuple[str, ...] = ()
    subjects: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not isinstance(self.priority, Priority):
            object.__setattr__(self, "priority", Priority(self.priority))
        if self.source_type not in (SOURCE_EXPERT, SOURCE_PREVENTIVE, SOURCE_CROSS_MODULE):
            raise ValueError(f"Unknown recommendation source_type '{self.source_type}'")
        if self.source_type == SOURCE_EXPERT and not self.source_issue_types:
            raise ValueError(f"Recommendation '{self.category}' does not trace to any issue")
        if self.source_type == SOURCE_CROSS_MODULE and not self.source_rule:
            raise ValueError(f"Cross-module recommendation '{self.category}' has no source rule")

    @property
    def is_cross_module(self) -> bool:
        return self.source_type == SOURCE_CROSS_MODULE

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        data: Dict[str, Any] = {
            "category": self.category,
            "priority": self.priority.value,
            "title": self.title,
            "description": self.description,
            "actions": [a.to_dict() for a in self.actions],
            "source_type": self.source_type,
        }
        if self.risk_level:
            data["risk_level"] = self.risk_level
        if self.monitoring:
            data["monitoring"] = list(self.monitoring)
        if self.source_expert:
            data["source_expert"] = self.source_expert
        if self.source_issue_types:
            data["source_issue_types"] = list(self.source_issue_types)
        if self.source_rule:
            data["source_rule"] = self.source_rule
        if self.affected_modules:
            data["affected_modules"] = list(self.affected_modules)
        if self.subjects:
            data["subjects"] = list(self.subjects)
        return data
