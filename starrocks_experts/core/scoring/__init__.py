"""Health scoring module."""

from .health import (
    BASELINE_SCORE,
    HealthLevel,
    HealthScore,
    HealthScorer,
    HealthStatus,
    clamp_score,
    classify_health_level,
    determine_status,
)

__all__ = [
    "BASELINE_SCORE",
    "HealthLevel",
    "HealthScore",
    "HealthScorer",
    "HealthStatus",
    "clamp_score",
    "classify_health_level",
    "determine_status",
]
