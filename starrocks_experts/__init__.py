"""StarRocks-Experts: Expert diagnosis and cross-module coordination for StarRocks clusters.

This package provides tools for:
- Collecting operational metrics through a SQL-capable data source
- Classifying metrics into issues with declarative, versioned rule sets
- Scoring cluster health per domain (storage, compaction, ingestion, memory, cache)
- Generating prioritized remediation recommendations
- Running experts concurrently and correlating findings across domains

Thresholds are loaded from YAML rule sets, so each domain can be tuned
without touching the diagnosis code.

Example usage:
    >>> from starrocks_experts.io import SQLAlchemyDataSource
    >>> from starrocks_experts.core.coordination import ExpertCoordinator
    >>>
    >>> source = SQLAlchemyDataSource("mysql+pymysql://root@fe-host:9030")
    >>> coordinator = ExpertCoordinator()
    >>> analysis = coordinator.perform_coordinated_analysis(
    ...     source, expert_scope=["storage", "compaction"]
    ... )
    >>> print(analysis.comprehensive_assessment["overall_health_score"])
"""

__version__ = "1.0.0"

from .errors import (
    CollectionError,
    ConfigurationError,
    DiagnosticsError,
    ExpertFailure,
    PreconditionError,
)

__all__ = [
    "__version__",
    "CollectionError",
    "ConfigurationError",
    "DiagnosticsError",
    "ExpertFailure",
    "PreconditionError",
]
