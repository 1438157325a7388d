"""Coordination module: multi-expert fan-out and cross-module analysis."""

from .impact_rules import (
    CROSS_MODULE_CATEGORY,
    CROSS_MODULE_RULES,
    CrossModuleImpactRule,
    RecommendedApproach,
)
from .coordinator import (
    COORDINATOR_VERSION,
    CoordinatedAnalysis,
    CoordinatorState,
    ExpertCoordinator,
    RankedRecommendation,
    correlation_strength,
    cross_module_recommendation,
)
from ..experts import get_available_experts

__all__ = [
    "CROSS_MODULE_CATEGORY",
    "CROSS_MODULE_RULES",
    "CrossModuleImpactRule",
    "RecommendedApproach",
    "COORDINATOR_VERSION",
    "CoordinatedAnalysis",
    "CoordinatorState",
    "ExpertCoordinator",
    "RankedRecommendation",
    "correlation_strength",
    "cross_module_recommendation",
    "get_available_experts",
]
