"""Rule sets and runtime configuration for StarRocks-Experts.

This module provides the versioned, read-only rule sets used by every
expert, the generic band classifier, and the runtime configuration of
the CLI and coordinator.

Example
-------
>>> from starrocks_experts.config import get_default_ruleset, list_available_rulesets
>>>
>>> print(list_available_rulesets())
['cache', 'compaction', 'ingestion', 'memory', 'storage']
>>>
>>> rules = get_default_ruleset("compaction")
>>> rules.get_threshold("thread_config.absolute_min_threads")
4
"""

from .bands import Band, BandTable, classify_by_descending_threshold
from .ruleset import (
    RuleSet,
    ScoringPolicy,
    get_default_ruleset,
    list_available_rulesets,
    register_ruleset,
)
from .settings import DiagnosticsConfig

__all__ = [
    "Band",
    "BandTable",
    "classify_by_descending_threshold",
    "RuleSet",
    "ScoringPolicy",
    "get_default_ruleset",
    "list_available_rulesets",
    "register_ruleset",
    "DiagnosticsConfig",
]
