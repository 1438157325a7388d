"""Storage recommendation templates."""

from typing import Dict, List

from ...recommendation.generator import RecommendationTemplate
from ...recommendation.models import Action, Priority

_FREE_SPACE_ACTIONS = (
    Action(
        action="Purge the trash directories on {subject}",
        command="ADMIN CLEAN TRASH;",
        risk_level="low",
        estimated_time="5-10 minutes",
        per_subject=True,
    ),
    Action(
        action="Drop expired partitions or apply a partition TTL on the largest tables",
        command="ALTER TABLE <db>.<table> DROP PARTITION <partition>;",
        risk_level="medium",
        estimated_time="10-30 minutes",
    ),
    Action(
        action="Add disk capacity or backend nodes",
        steps=(
            "Mount a new data directory and add it to storage_root_path",
            "Or add a backend: ALTER SYSTEM ADD BACKEND '<host>:9050';",
            "Wait for the balancer to move tablets onto the new capacity",
        ),
        risk_level="low",
        estimated_time="1-2 hours",
    ),
)

STORAGE_TEMPLATES: Dict[str, RecommendationTemplate] = {
    "disk_emergency": RecommendationTemplate(
        category="emergency_disk_management",
        title="Free disk space immediately on {subjects}",
        description="{count} node(s) above the emergency disk usage level; writes will fail when full",
        priority=Priority.IMMEDIATE,
        actions=_FREE_SPACE_ACTIONS,
        risk_level="medium",
        monitoring=("SHOW BACKENDS; -- MaxDiskUsedPct every 5 minutes until below 85%",),
        aggregate=True,
    ),
    "disk_critical": RecommendationTemplate(
        category="emergency_disk_management",
        title="Reduce disk usage on {subjects}",
        description="{count} node(s) above the critical disk usage level",
        priority=Priority.HIGH,
        actions=_FREE_SPACE_ACTIONS,
        risk_level="medium",
        monitoring=("SHOW BACKENDS; -- MaxDiskUsedPct hourly",),
        aggregate=True,
    ),
    "low_free_space": RecommendationTemplate(
        category="emergency_disk_management",
        title="Restore free space on {subjects}",
        description="Free space below the configured floor on {count} node(s)",
        priority=Priority.HIGH,
        actions=_FREE_SPACE_ACTIONS,
        risk_level="medium",
        aggregate=True,
    ),
    "disk_warning": RecommendationTemplate(
        category="capacity_planning",
        title="Plan storage capacity for {subjects}",
        description="Disk usage is approaching critical levels",
        priority=Priority.MEDIUM,
        actions=(
            Action(
                action="Review data retention and partition TTL policies",
                risk_level="low",
            ),
            Action(
                action="Schedule capacity expansion before usage reaches 90%",
                risk_level="low",
                estimated_time="1-2 weeks lead time",
            ),
        ),
        risk_level="low",
        aggregate=True,
    ),
    "error_tablets": RecommendationTemplate(
        category="tablet_repair",
        title="Repair error tablets on {subjects}",
        description="Error replicas found on {count} node(s)",
        priority=Priority.MEDIUM,
        priority_by_severity={"critical": Priority.HIGH},
        actions=(
            Action(
                action="Locate unhealthy replicas",
                command="SHOW PROC '/statistic';",
                risk_level="low",
            ),
            Action(
                action="Inspect replica status of the affected tables",
                command="ADMIN SHOW REPLICA STATUS FROM <db>.<table> WHERE STATUS != 'OK';",
                risk_level="low",
            ),
            Action(
                action="Prioritize repair of the affected tables",
                command="ADMIN REPAIR TABLE <db>.<table>;",
                risk_level="medium",
                estimated_time="depends on tablet size",
            ),
        ),
        risk_level="medium",
        monitoring=("SHOW PROC '/statistic'; -- UnhealthyTabletNum should reach 0",),
        aggregate=True,
    ),
    "high_error_tablet_rate": RecommendationTemplate(
        category="tablet_repair",
        title="Investigate cluster-wide tablet errors",
        description="{error_rate_pct}% of tablets are in error state",
        priority=Priority.HIGH,
        actions=(
            Action(
                action="Check backend logs for disk or clone failures",
                steps=(
                    "grep -i 'clone' be.WARNING",
                    "Check dmesg and SMART data for failing disks",
                ),
                risk_level="low",
            ),
        ),
        risk_level="medium",
    ),
    "high_tablet_count": RecommendationTemplate(
        category="tablet_management",
        title="Reduce tablet count on {subjects}",
        description="Nodes host more tablets than recommended",
        priority=Priority.MEDIUM,
        actions=(
            Action(
                action="Reduce bucket counts of over-bucketed tables or merge small partitions",
                risk_level="medium",
            ),
            Action(
                action="Add backend nodes to spread tablets",
                risk_level="low",
            ),
        ),
        risk_level="medium",
        aggregate=True,
    ),
    "data_imbalance": RecommendationTemplate(
        category="data_rebalancing",
        title="Rebalance data across nodes",
        description="Data size differs by {imbalance_pct}% between the largest and smallest node",
        priority=Priority.MEDIUM,
        actions=(
            Action(
                action="Check balancer status",
                command="SHOW PROC '/cluster_balance';",
                risk_level="low",
            ),
            Action(
                action="Review bucketing keys of the largest tables for skew",
                risk_level="low",
            ),
        ),
        risk_level="low",
    ),
    "high_memory_affecting_io": RecommendationTemplate(
        category="resource_optimization",
        title="Relieve memory pressure on {subjects}",
        description="High memory usage reduces page cache and slows disk IO",
        priority=Priority.MEDIUM,
        actions=(
            Action(
                action="Identify memory-heavy queries and loads",
                command="SHOW PROC '/current_queries';",
                risk_level="low",
            ),
        ),
        risk_level="low",
        aggregate=True,
    ),
}

STORAGE_PREVENTIVE: List[RecommendationTemplate] = [
    RecommendationTemplate(
        category="preventive_maintenance",
        title="Establish storage monitoring and retention",
        description="Routine practices that keep disk usage predictable",
        priority=Priority.LOW,
        actions=(
            Action(action="Alert on MaxDiskUsedPct above 80%", risk_level="low"),
            Action(action="Use dynamic partitions with TTL for time-series tables", risk_level="low"),
            Action(action="Run ADMIN CLEAN TRASH after large drops", risk_level="low"),
        ),
        risk_level="low",
    ),
]

