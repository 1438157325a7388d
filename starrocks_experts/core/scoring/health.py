"""Health scoring for diagnoses.

Score starts at 100 and loses a fixed penalty per issue (larger for
critical issues, smaller for warnings, minimal for informational ones;
specific issue types may carry their own weight). The result is clamped
to [0, 100] and bucketed into a level and status.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, TYPE_CHECKING

from ...config.ruleset import ScoringPolicy

if TYPE_CHECKING:
    from ..diagnosis.models import Diagnosis

BASELINE_SCORE = 100.0


class HealthLevel(Enum):
    """Qualitative health level."""

    POOR = "POOR"
    FAIR = "FAIR"
    GOOD = "GOOD"
    EXCELLENT = "EXCELLENT"


class HealthStatus(Enum):
    """Overall status, driven by the most severe issue present."""

    CRITICAL = "CRITICAL"
    WARNING = "WARNING"
    HEALTHY = "HEALTHY"


def classify_health_level(score: float) -> HealthLevel:
    """Classify a 0-100 score into a level.

    Args:
        score: Health score.

    Returns:
        POOR below 40, FAIR below 60, GOOD below 80, else EXCELLENT.
    """
    if score < 40:
        return HealthLevel.POOR
    elif score < 60:
        return HealthLevel.FAIR
    elif score < 80:
        return HealthLevel.GOOD
    else:
        return HealthLevel.EXCELLENT


def determine_status(n_critical: int, n_warning: int) -> HealthStatus:
    """CRITICAL if any critical issue, else WARNING if any warning, else HEALTHY."""
    if n_critical > 0:
        return HealthStatus.CRITICAL
    if n_warning > 0:
        return HealthStatus.WARNING
    return HealthStatus.HEALTHY


def clamp_score(score: float) -> float:
    """Clamp to [0, 100]."""
    return max(0.0, min(BASELINE_SCORE, score))


@dataclass(frozen=True)
class HealthScore:
    """Score, level and status of one diagnosis.

    Attributes:
        score: Health score in [0, 100].
        level: POOR, FAIR, GOOD or EXCELLENT.
        status: CRITICAL, WARNING or HEALTHY.
    """

    score: float
    level: HealthLevel
    status: HealthStatus

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "level": self.level.value,
            "status": self.status.value,
        }


class HealthScorer:
    """Reduce a Diagnosis to a HealthScore.

    Args:
        policy: Penalties per severity and per issue type. Defaults to
            25 / 10 / 5 for critical / warning / info.

    Example:
        >>> scorer = HealthScorer(get_default_ruleset("storage").scoring)
        >>> scorer.score(diagnosis).to_dict()
        {'score': 75.0, 'level': 'GOOD', 'status': 'CRITICAL'}
    """

    def __init__(self, policy: Optional[ScoringPolicy] = None):
        self.policy = policy or ScoringPolicy()

    def total_penalty(self, diagnosis: "Diagnosis") -> float:
        """Sum of penalties over all issues (insights are free)."""
        return sum(
            self.policy.penalty_for(issue.type, issue.severity.value)
            for issue in diagnosis.all_issues
        )

    def score(self, diagnosis: "Diagnosis") -> HealthScore:
        """Compute the health score of a diagnosis.

        Args:
            diagnosis: Diagnosis to score.

        Returns:
            HealthScore, recomputed on every call.
        """
        value = clamp_score(BASELINE_SCORE - self.total_penalty(diagnosis))
        value = round(value, 1)
        return HealthScore(
            score=value,
            level=classify_health_level(value),
            status=determine_status(len(diagnosis.criticals), len(diagnosis.warnings)),
        )
