"""Compaction recommendation templates."""

from typing import Dict, List, Optional

from ...collection.snapshot import MetricSnapshot
from ...diagnosis.models import Issue
from ...recommendation.generator import RecommendationTemplate
from ...recommendation.models import Action, Priority


def _manual_compaction_actions(issues: List[Issue], snapshot: Optional[MetricSnapshot]) -> List[Action]:
    """One ALTER TABLE ... COMPACT per listed partition (at most five)."""
    actions = []
    for issue in issues:
        for entry in list(issue.metrics.get("top_partitions", ()))[:5]:
            db, table, partition = (entry["partition"].split(".", 2) + ["?", "?"])[:3]
            actions.append(
                Action(
                    action=f"Trigger manual compaction of {entry['partition']} (score {entry['max_cs']})",
                    command=f"ALTER TABLE `{db}`.`{table}` COMPACT `{partition}`;",
                    risk_level="medium",
                    estimated_time="10-60 minutes",
                )
            )
    return actions


_CHECK_TASKS = Action(
    action="Inspect running compaction tasks",
    command=(
        "SELECT BE_ID, TXN_ID, TABLET_ID, START_TIME, PROGRESS, RUNS "
        "FROM information_schema.be_cloud_native_compactions WHERE FINISH_TIME IS NULL;"
    ),
    risk_level="low",
)

COMPACTION_TEMPLATES: Dict[str, RecommendationTemplate] = {
    "emergency_compaction_score": RecommendationTemplate(
        category="critical_performance",
        title="Bring down emergency compaction scores",
        description="{partition_count} partition(s) have a compaction score above {threshold}; max {max_score}",
        priority=Priority.IMMEDIATE,
        actions=(
            Action(
                action="Pause or throttle the loads writing to the affected tables",
                risk_level="medium",
            ),
        ),
        actions_builder=_manual_compaction_actions,
        risk_level="medium",
        monitoring=(
            "SELECT MAX(MAX_CS) FROM information_schema.partitions_meta; -- every 10 minutes",
        ),
    ),
    "critical_compaction_score": RecommendationTemplate(
        category="critical_performance",
        title="Compact partitions with critical scores",
        description="{partition_count} partition(s) have a compaction score above {threshold}",
        priority=Priority.HIGH,
        actions_builder=_manual_compaction_actions,
        risk_level="medium",
    ),
    "warning_compaction_score": RecommendationTemplate(
        category="compaction_tuning",
        title="Keep compaction ahead of ingestion",
        description="{partition_count} partition(s) have a compaction score above {threshold}",
        priority=Priority.MEDIUM,
        actions=(
            Action(
                action="Batch small loads into fewer, larger transactions",
                risk_level="low",
            ),
            Action(
                action="Check whether compact_threads matches the node CPU count",
                command="SELECT * FROM information_schema.be_configs WHERE NAME = 'compact_threads';",
                risk_level="low",
            ),
        ),
        risk_level="low",
    ),
    "compaction_disabled": RecommendationTemplate(
        category="critical_configuration",
        title="Re-enable lake compaction",
        description="lake_compaction_max_tasks is 0, so no compaction is scheduled",
        priority=Priority.IMMEDIATE,
        actions=(
            Action(
                action="Restore adaptive compaction concurrency",
                command='ADMIN SET FRONTEND CONFIG ("lake_compaction_max_tasks" = "-1");',
                risk_level="low",
                estimated_time="1 minute",
            ),
        ),
        risk_level="low",
        monitoring=("ADMIN SHOW FRONTEND CONFIG LIKE 'lake_compaction_max_tasks';",),
    ),
    "low_max_compaction_tasks": RecommendationTemplate(
        category="configuration_tuning",
        title="Raise lake_compaction_max_tasks",
        description="Current value {current_value}; recommended {recommended_value} or adaptive (-1)",
        priority=Priority.MEDIUM,
        actions=(
            Action(
                action="Raise the FE compaction task limit",
                command='ADMIN SET FRONTEND CONFIG ("lake_compaction_max_tasks" = "{recommended_value}");',
                risk_level="low",
            ),
        ),
        risk_level="low",
    ),
    "high_max_compaction_tasks": RecommendationTemplate(
        category="configuration_tuning",
        title="Review lake_compaction_max_tasks",
        description="Current value {current_value} allows bursts far above the node capacity",
        priority=Priority.LOW,
        actions=(
            Action(
                action="Lower the limit or switch to adaptive",
                command='ADMIN SET FRONTEND CONFIG ("lake_compaction_max_tasks" = "-1");',
                risk_level="low",
            ),
        ),
        risk_level="low",
    ),
    "stalled_compaction_tasks": RecommendationTemplate(
        category="critical_recovery",
        title="Recover stalled compaction tasks",
        description="{stalled_count} task(s) keep retrying without progress",
        priority=Priority.IMMEDIATE,
        actions=(
            _CHECK_TASKS,
            Action(
                action="Check compute node logs for the failing tablets",
                steps=(
                    "grep -i 'compaction' cn.WARNING | tail -n 200",
                    "Look for object storage errors or memory limit exceeded",
                ),
                risk_level="low",
            ),
        ),
        risk_level="medium",
    ),
    "slow_compaction_tasks": RecommendationTemplate(
        category="performance_tuning",
        title="Investigate slow compaction tasks",
        description="{slow_count} task(s) running for up to {longest_hours} hours",
        priority=Priority.MEDIUM,
        actions=(_CHECK_TASKS,),
        risk_level="low",
    ),
    "node_task_overload": RecommendationTemplate(
        category="performance_tuning",
        title="Spread compaction load away from {subjects}",
        description="{count} node(s) run more compaction tasks than they can handle",
        priority=Priority.MEDIUM,
        actions=(
            Action(
                action="Check for data skew concentrating hot tablets on few nodes",
                risk_level="low",
            ),
            Action(action="Add compute nodes", risk_level="low"),
        ),
        risk_level="low",
        aggregate=True,
    ),
    "low_task_success_rate": RecommendationTemplate(
        category="critical_recovery",
        title="Find the cause of failing compaction tasks",
        description="Success rate {success_rate}% over {finished_tasks} finished task(s)",
        priority=Priority.HIGH,
        actions=(
            Action(
                action="List recent failed tasks",
                command=(
                    "SELECT BE_ID, TABLET_ID, STATUS, RUNS FROM information_schema.be_cloud_native_compactions "
                    "WHERE FINISH_TIME IS NOT NULL AND STATUS != 'OK';"
                ),
                risk_level="low",
            ),
        ),
        risk_level="low",
    ),
    "low_compaction_threads": RecommendationTemplate(
        category="performance_tuning",
        title="Increase compaction threads on {subjects}",
        description="compact_threads below the recommended range for the node CPU count",
        priority=Priority.MEDIUM,
        priority_by_severity={"critical": Priority.HIGH},
        actions=(
            Action(
                action="Set compact_threads to {recommended_threads} on {subject}",
                command=(
                    "UPDATE information_schema.be_configs SET VALUE = {recommended_threads} "
                    "WHERE NAME = 'compact_threads' AND BE_ID = {be_id};"
                ),
                risk_level="low",
                estimated_time="1 minute",
                per_subject=True,
            ),
        ),
        risk_level="low",
        aggregate=True,
    ),
    "high_compaction_threads": RecommendationTemplate(
        category="performance_tuning",
        title="Reduce compaction threads on {subjects}",
        description="compact_threads above the recommended range for the node CPU count",
        priority=Priority.LOW,
        actions=(
            Action(
                action="Set compact_threads to {recommended_threads} on {subject}",
                command=(
                    "UPDATE information_schema.be_configs SET VALUE = {recommended_threads} "
                    "WHERE NAME = 'compact_threads' AND BE_ID = {be_id};"
                ),
                risk_level="low",
                per_subject=True,
            ),
        ),
        risk_level="low",
        aggregate=True,
    ),
    "high_system_compaction_pressure": RecommendationTemplate(
        category="capacity_planning",
        title="Relieve overall compaction pressure",
        description="{avg_tasks_per_node} tasks per node, {high_cs_partitions} partition(s) above the warning score",
        priority=Priority.HIGH,
        actions=(
            Action(action="Stagger large loads outside of peak query hours", risk_level="low"),
            Action(action="Add compute nodes to raise compaction capacity", risk_level="low"),
        ),
        risk_level="low",
    ),
}

COMPACTION_PREVENTIVE: List[RecommendationTemplate] = [
    RecommendationTemplate(
        category="monitoring_alerting",
        title="Alert on compaction scores",
        description="Catch compaction backlogs before they affect queries",
        priority=Priority.LOW,
        actions=(
            Action(
                action="Alert when MAX_CS exceeds 100 on any partition",
                command="SELECT MAX(MAX_CS) FROM information_schema.partitions_meta;",
                risk_level="low",
            ),
        ),
        risk_level="low",
    ),
    RecommendationTemplate(
        category="best_practices",
        title="Load in fewer, larger batches",
        description="Each load creates a new version that compaction has to merge",
        priority=Priority.LOW,
        actions=(
            Action(action="Aim for load intervals of at least a few seconds per table", risk_level="low"),
            Action(action="Keep lake_compaction_max_tasks adaptive (-1)", risk_level="low"),
        ),
        risk_level="low",
    ),
]
