"""Diagnosis module: dimensions, registry and evaluation engine.

Example Usage
-------------
    >>> from starrocks_experts.core.diagnosis import DiagnosisEngine
    >>> from starrocks_experts.config import get_default_ruleset
    >>> engine = DiagnosisEngine("storage")
    >>> diagnosis = engine.evaluate(snapshot, get_default_ruleset("storage"))
    >>> print(f"{diagnosis.total_issues} issues ({len(diagnosis.criticals)} critical)")
"""

from .models import (
    Diagnosis,
    Insight,
    Issue,
    Severity,
    Urgency,
)
from .base import BaseDimension, Finding
from .registry import DimensionRegistry
from .engine import DiagnosisEngine, default_summary

__all__ = [
    "Diagnosis",
    "Insight",
    "Issue",
    "Severity",
    "Urgency",
    "BaseDimension",
    "Finding",
    "DimensionRegistry",
    "DiagnosisEngine",
    "default_summary",
]
