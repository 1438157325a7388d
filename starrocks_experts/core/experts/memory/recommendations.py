"""Memory recommendation templates."""

from typing import Dict, List

from ...recommendation.generator import RecommendationTemplate
from ...recommendation.models import Action, Priority

_FIND_HEAVY_QUERIES = Action(
    action="Identify the queries holding the most memory",
    command="SHOW PROC '/current_queries';",
    risk_level="low",
)

MEMORY_TEMPLATES: Dict[str, RecommendationTemplate] = {
    "memory_emergency": RecommendationTemplate(
        category="memory_emergency_response",
        title="Relieve memory exhaustion on {subjects}",
        description="{count} node(s) above the emergency memory level",
        priority=Priority.IMMEDIATE,
        actions=(
            _FIND_HEAVY_QUERIES,
            Action(
                action="Kill runaway queries",
                command="KILL QUERY '<query_id>';",
                risk_level="medium",
                estimated_time="1 minute",
            ),
            Action(
                action="Pause large loads until memory recovers",
                risk_level="medium",
            ),
        ),
        risk_level="medium",
        monitoring=("SHOW BACKENDS; -- MemUsedPct every minute",),
        aggregate=True,
    ),
    "high_memory_usage": RecommendationTemplate(
        category="memory_optimization",
        title="Reduce memory usage on {subjects}",
        description="{count} node(s) above the critical memory level",
        priority=Priority.HIGH,
        actions=(
            _FIND_HEAVY_QUERIES,
            Action(
                action="Cap query memory with a resource group",
                command="CREATE RESOURCE GROUP <rg> TO (user='<user>') WITH ('mem_limit' = '20%');",
                risk_level="low",
            ),
        ),
        risk_level="low",
        aggregate=True,
    ),
    "elevated_memory_usage": RecommendationTemplate(
        category="capacity_planning",
        title="Plan memory headroom for {subjects}",
        description="Memory usage is elevated on {count} node(s)",
        priority=Priority.MEDIUM,
        actions=(Action(action="Review mem_limit and workload growth", risk_level="low"),),
        risk_level="low",
        aggregate=True,
    ),
    "oversized_query_memory": RecommendationTemplate(
        category="query_optimization",
        title="Stop or rewrite oversized queries",
        description="{count} running query(ies) hold more than {threshold} GB",
        priority=Priority.HIGH,
        actions=(
            Action(
                action="Kill query {subject} ({memory_gb} GB, user {user}) if it is not critical",
                command="KILL QUERY '{subject}';",
                risk_level="medium",
                per_subject=True,
            ),
            Action(
                action="Enable spilling for large aggregations and joins",
                command="SET enable_spill = true;",
                risk_level="low",
            ),
        ),
        risk_level="medium",
        aggregate=True,
    ),
    "large_query_memory": RecommendationTemplate(
        category="query_optimization",
        title="Review memory-heavy queries",
        description="{count} running query(ies) hold more than {threshold} GB",
        priority=Priority.MEDIUM,
        actions=(
            Action(
                action="Check the plan of query {subject} for missing filters or exploding joins",
                risk_level="low",
                per_subject=True,
            ),
        ),
        risk_level="low",
        aggregate=True,
    ),
    "memory_usage_skew": RecommendationTemplate(
        category="workload_balancing",
        title="Balance memory load across nodes",
        description="Node memory usage std dev is {std_dev} points",
        priority=Priority.MEDIUM,
        actions=(
            Action(action="Check bucket distribution of hot tables for skew", risk_level="low"),
            Action(action="Check whether clients pin connections to one FE or node", risk_level="low"),
        ),
        risk_level="low",
    ),
}

MEMORY_PREVENTIVE: List[RecommendationTemplate] = [
    RecommendationTemplate(
        category="monitoring_alerting",
        title="Alert on node memory",
        description="Catch memory pressure before queries fail",
        priority=Priority.LOW,
        actions=(
            Action(action="Alert when MemUsedPct exceeds 80% for 5 minutes", risk_level="low"),
            Action(action="Use resource groups to bound ad-hoc workloads", risk_level="low"),
        ),
        risk_level="low",
    ),
]
