"""Recommendation module: templates, generator and priority model."""

from .models import (
    SOURCE_CROSS_MODULE,
    SOURCE_EXPERT,
    SOURCE_PREVENTIVE,
    Action,
    Priority,
    Recommendation,
)
from .generator import (
    RecommendationGenerator,
    RecommendationTemplate,
    issue_context,
    render_text,
)

__all__ = [
    "SOURCE_CROSS_MODULE",
    "SOURCE_EXPERT",
    "SOURCE_PREVENTIVE",
    "Action",
    "Priority",
    "Recommendation",
    "RecommendationGenerator",
    "RecommendationTemplate",
    "issue_context",
    "render_text",
]
