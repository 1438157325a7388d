"""Template-driven recommendation generation.

Each issue type maps to one RecommendationTemplate. Templates render
issue fields (``{subject}``, ``{message}``, ``{count}``, ``{subjects}``
and any issue metric) into titles, descriptions and commands. Issue
types without a template are skipped. A fixed tail of preventive
recommendations is appended after the prioritized list.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, TYPE_CHECKING
import logging

from .models import (
    SOURCE_EXPERT,
    SOURCE_PREVENTIVE,
    Action,
    Priority,
    Recommendation,
)

if TYPE_CHECKING:
    from ..collection.snapshot import MetricSnapshot
    from ..diagnosis.models import Diagnosis, Issue

logger = logging.getLogger(__name__)

ActionBuilder = Callable[[List["Issue"], Optional["MetricSnapshot"]], List[Action]]


class _SafeDict(dict):
    """format_map helper leaving unknown placeholders untouched."""

    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def render_text(text: Optional[str], context: Mapping[str, Any]) -> Optional[str]:
    """Render ``{placeholders}`` from context, keeping unknown ones."""
    if not text:
        return text
    try:
        return text.format_map(_SafeDict(context))
    except (ValueError, IndexError):
        # Literal braces that are not placeholders (e.g. JSON snippets)
        return text


def issue_context(issue: "Issue") -> Dict[str, Any]:
    """Placeholder values exposed by one issue."""
    context: Dict[str, Any] = dict(issue.metrics)
    context.update(
        type=issue.type,
        severity=issue.severity.value,
        message=issue.message,
        subject=issue.subject or "cluster",
    )
    return context


@dataclass(frozen=True)
class RecommendationTemplate:
    """Fixed remediation template for one issue type.

    Attributes:
        category: Recommendation category.
        title: Title, may contain placeholders.
        description: Description, may contain placeholders.
        priority: Default priority.
        priority_by_severity: Priority override keyed by issue severity value.
        actions: Static actions (placeholders rendered from issues).
        actions_builder: Callable adding data-dependent actions.
        risk_level: Overall risk.
        monitoring: Follow-up checks.
        aggregate: Merge all issues of the type into one recommendation.
    """

    category: str
    title: str
    description: str = ""
    priority: Priority = Priority.MEDIUM
    priority_by_severity: Mapping[str, Priority] = field(default_factory=dict)
    actions: Tuple[Action, ...] = ()
    actions_builder: Optional[ActionBuilder] = None
    risk_level: Optional[str] = None
    monitoring: Tuple[str, ...] = ()
    aggregate: bool = False

    def resolve_priority(self, issues: Sequence["Issue"]) -> Priority:
        """Highest priority implied by the issues' severities."""
        best = self.priority
        for issue in issues:
            candidate = self.priority_by_severity.get(issue.severity.value)
            if candidate is not None and candidate.rank > best.rank:
                best = candidate
        return best


def _render_actions(
    template: RecommendationTemplate,
    issues: List["Issue"],
    snapshot: Optional["MetricSnapshot"],
    group_context: Mapping[str, Any],
) -> Tuple[Action, ...]:
    actions: List[Action] = []
    for action in template.actions:
        targets = issues if (action.per_subject and issues) else [None]
        for issue in targets:
            context = dict(group_context)
            if issue is not None:
                context.update(issue_context(issue))
            actions.append(
                replace(
                    action,
                    action=render_text(action.action, context),
                    command=render_text(action.command, context),
                    steps=tuple(render_text(s, context) for s in action.steps),
                    per_subject=False,
                )
            )
    if template.actions_builder is not None:
        actions.extend(template.actions_builder(issues, snapshot))
    return tuple(actions)


class RecommendationGenerator:
    """Map diagnosed issues to prioritized recommendations.

    Parameters
    ----------
    expert : str
        Name of the owning expert (recorded on every recommendation)
    templates : Mapping[str, RecommendationTemplate]
        Template per issue type
    preventive : Sequence[RecommendationTemplate]
        Preventive tail, always appended

    Example
    -------
    >>> generator = RecommendationGenerator("storage", STORAGE_TEMPLATES, STORAGE_PREVENTIVE)
    >>> recs = generator.generate(diagnosis, snapshot)
    >>> [r.priority.value for r in recs]
    ['IMMEDIATE', 'MEDIUM', 'LOW']
    """

    def __init__(
        self,
        expert: str,
        templates: Mapping[str, RecommendationTemplate],
        preventive: Sequence[RecommendationTemplate] = (),
    ):
        self.expert = expert
        self.templates = dict(templates)
        self.preventive = tuple(preventive)

    def category_for(self, issue_type: str) -> Optional[str]:
        """Category a given issue type maps to (None if unmapped)."""
        template = self.templates.get(issue_type)
        return template.category if template else None

    @property
    def preventive_categories(self) -> List[str]:
        return [t.category for t in self.preventive]

    def generate(
        self,
        diagnosis: "Diagnosis",
        snapshot: Optional["MetricSnapshot"] = None,
    ) -> List[Recommendation]:
        """Generate recommendations for a diagnosis.

        Parameters
        ----------
        diagnosis : Diagnosis
            Diagnosed issues (criticals, warnings, then informational)
        snapshot : MetricSnapshot, optional
            Collected data, for templates that build commands from it

        Returns
        -------
        List[Recommendation]
            Sorted by priority descending, ties by first issue order,
            followed by the preventive tail
        """
        # Group issues: aggregating templates collect every issue of their type
        groups: List[Tuple[int, RecommendationTemplate, List["Issue"]]] = []
        aggregated: Dict[str, List["Issue"]] = {}
        for index, issue in enumerate(diagnosis.all_issues):
            template = self.templates.get(issue.type)
            if template is None:
                logger.debug("[%s] no recommendation template for '%s'", self.expert, issue.type)
                continue
            if template.aggregate:
                if issue.type not in aggregated:
                    aggregated[issue.type] = []
                    groups.append((index, template, aggregated[issue.type]))
                aggregated[issue.type].append(issue)
            else:
                groups.append((index, template, [issue]))

        ranked = []
        for index, template, issues in groups:
            ranked.append((index, self._from_template(template, issues, snapshot)))

        # ties keep issue order
        ranked.sort(key=lambda item: (-item[1].priority.rank, item[0]))
        recommendations = [rec for _, rec in ranked]

        for template in self.preventive:
            recommendations.append(self._preventive(template, snapshot))

        return recommendations

    def _from_template(
        self,
        template: RecommendationTemplate,
        issues: List["Issue"],
        snapshot: Optional["MetricSnapshot"],
    ) -> Recommendation:
        subjects = tuple(dict.fromkeys(i.subject for i in issues if i.subject))
        context = issue_context(issues[0])
        context.update(
            count=len(issues),
            subjects=", ".join(subjects) if subjects else "cluster",
            domain=self.expert,
        )
        return Recommendation(
            category=template.category,
            priority=template.resolve_priority(issues),
            title=render_text(template.title, context),
            description=render_text(template.description, context),
            actions=_render_actions(template, issues, snapshot, context),
            risk_level=template.risk_level,
            monitoring=tuple(render_text(m, context) for m in template.monitoring),
            source_type=SOURCE_EXPERT,
            source_expert=self.expert,
            source_issue_types=tuple(dict.fromkeys(i.type for i in issues)),
            affected_modules=(self.expert,),
            subjects=subjects,
        )

    def _preventive(
        self,
        template: RecommendationTemplate,
        snapshot: Optional["MetricSnapshot"],
    ) -> Recommendation:
        context = {"domain": self.expert, "subjects": "cluster", "count": 0}
        return Recommendation(
            category=template.category,
            priority=template.priority,
            title=render_text(template.title, context),
            description=render_text(template.description, context),
            actions=_render_actions(template, [], snapshot, context),
            risk_level=template.risk_level,
            monitoring=tuple(render_text(m, context) for m in template.monitoring),
            source_type=SOURCE_PREVENTIVE,
            source_expert=self.expert,
            affected_modules=(self.expert,),
        )
