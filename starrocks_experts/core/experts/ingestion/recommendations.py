"""Ingestion recommendation templates."""

from typing import Dict, List, Optional

from ...collection.snapshot import MetricSnapshot
from ...diagnosis.models import Issue
from ...recommendation.generator import RecommendationTemplate
from ...recommendation.models import Action, Priority

ERROR_KIND_HINTS = {
    "timeout": "Raise the load timeout or split the load into smaller batches",
    "format_error": "Check column separators, column mapping and the source file format",
    "permission_error": "Grant LOAD and source access privileges to the loading user",
    "memory_error": "Lower load parallelism or raise load_mem_limit",
    "duplicate_key": "Deduplicate the source data or review the key model",
    "too_many_versions": "Load less frequently in larger batches so compaction can keep up",
    "unknown": "Inspect the rejected records and ERROR_MSG of the failed jobs",
}


def _error_kind_actions(issues: List[Issue], snapshot: Optional[MetricSnapshot]) -> List[Action]:
    return [
        Action(
            action=ERROR_KIND_HINTS.get(issue.metrics.get("error_kind"), ERROR_KIND_HINTS["unknown"]),
            risk_level="low",
        )
        for issue in issues
    ]


_FAILED_LOADS = Action(
    action="Group recent failures by error message",
    command=(
        "SELECT ERROR_MSG, COUNT(*) FROM information_schema.loads "
        "WHERE STATE = 'CANCELLED' AND CREATE_TIME >= DATE_SUB(NOW(), INTERVAL 24 HOUR) "
        "GROUP BY ERROR_MSG ORDER BY COUNT(*) DESC;"
    ),
    risk_level="low",
)

INGESTION_TEMPLATES: Dict[str, RecommendationTemplate] = {
    "high_load_failure_rate": RecommendationTemplate(
        category="failure_rate_optimization",
        title="Reduce the load failure rate",
        description="{failure_rate_pct}% of load jobs failed ({failed_jobs} of {total_jobs})",
        priority=Priority.HIGH,
        actions=(
            _FAILED_LOADS,
            Action(
                action="Validate source data format and column mapping",
                risk_level="low",
            ),
        ),
        risk_level="low",
        monitoring=("Failure rate below 5% over the next 24 hours",),
    ),
    "moderate_load_failure_rate": RecommendationTemplate(
        category="failure_rate_optimization",
        title="Investigate load failures",
        description="{failure_rate_pct}% of load jobs failed",
        priority=Priority.MEDIUM,
        actions=(_FAILED_LOADS,),
        risk_level="low",
    ),
    "frequent_load_failures": RecommendationTemplate(
        category="failure_rate_optimization",
        title="Investigate repeated load failures",
        description="{failed_jobs} load jobs were cancelled",
        priority=Priority.MEDIUM,
        actions=(_FAILED_LOADS,),
        risk_level="low",
    ),
    "slow_load_performance": RecommendationTemplate(
        category="performance_optimization",
        title="Speed up load jobs",
        description="Average load duration is {avg_load_seconds}s",
        priority=Priority.MEDIUM,
        actions=(
            Action(
                action="Split large loads and raise load parallelism",
                risk_level="low",
            ),
            Action(
                action="Check compaction scores of the target tables",
                command="SELECT DB_NAME, TABLE_NAME, MAX_CS FROM information_schema.partitions_meta ORDER BY MAX_CS DESC LIMIT 10;",
                risk_level="low",
            ),
        ),
        risk_level="low",
    ),
    "routine_load_paused": RecommendationTemplate(
        category="routine_load_recovery",
        title="Resume paused routine loads: {subjects}",
        description="{count} routine load job(s) are paused",
        priority=Priority.HIGH,
        actions=(
            Action(
                action="Check why {subject} paused: {reason}",
                command="SHOW ROUTINE LOAD FOR {subject};",
                risk_level="low",
                per_subject=True,
            ),
            Action(
                action="Resume {subject} once the cause is fixed",
                command="RESUME ROUTINE LOAD FOR {subject};",
                risk_level="low",
                estimated_time="1 minute",
                per_subject=True,
            ),
        ),
        risk_level="low",
        monitoring=("SHOW ALL ROUTINE LOAD; -- State should stay RUNNING",),
        aggregate=True,
    ),
    "routine_load_cancelled": RecommendationTemplate(
        category="routine_load_recovery",
        title="Recreate cancelled routine loads: {subjects}",
        description="{count} routine load job(s) were cancelled and no longer consume",
        priority=Priority.HIGH,
        actions=(
            Action(
                action="Inspect the cancellation reason of {subject}: {reason}",
                command="SHOW ROUTINE LOAD FOR {subject};",
                risk_level="low",
                per_subject=True,
            ),
            Action(
                action="Recreate the job from its last committed offsets",
                command="CREATE ROUTINE LOAD <db>.<job> ON <table> ... FROM KAFKA (...);",
                risk_level="medium",
            ),
        ),
        risk_level="medium",
        aggregate=True,
    ),
    "load_queue_backlog": RecommendationTemplate(
        category="queue_management",
        title="Clear the load queue backlog",
        description="{pending_jobs} load jobs are pending",
        priority=Priority.HIGH,
        actions=(
            Action(
                action="List pending jobs and their targets",
                command="SELECT LABEL, DB_NAME, TABLE_NAME, CREATE_TIME FROM information_schema.loads WHERE STATE = 'PENDING';",
                risk_level="low",
            ),
            Action(
                action="Reduce load concurrency from clients or merge small loads",
                risk_level="low",
            ),
        ),
        risk_level="low",
    ),
    "load_queue_buildup": RecommendationTemplate(
        category="queue_management",
        title="Watch the load queue",
        description="{pending_jobs} load jobs are pending",
        priority=Priority.MEDIUM,
        actions=(Action(action="Check whether pending jobs drain within minutes", risk_level="low"),),
        risk_level="low",
    ),
    "long_running_loads": RecommendationTemplate(
        category="queue_management",
        title="Review long-running loads",
        description="{long_running_count} load(s) running for up to {longest_hours} hours",
        priority=Priority.MEDIUM,
        actions=(
            Action(
                action="Cancel loads that are stuck",
                command="CANCEL LOAD FROM <db> WHERE LABEL = '<label>';",
                risk_level="medium",
            ),
        ),
        risk_level="medium",
    ),
    "recurring_error_pattern": RecommendationTemplate(
        category="error_resolution",
        title="Fix recurring load errors: {subjects}",
        description="{count} error pattern(s) recur across failed loads",
        priority=Priority.MEDIUM,
        actions=(_FAILED_LOADS,),
        actions_builder=_error_kind_actions,
        risk_level="low",
        aggregate=True,
    ),
    "excessive_high_frequency_imports": RecommendationTemplate(
        category="frequency_optimization",
        title="Batch high-frequency stream loads",
        description="{high_frequency_tables} tables receive more than one load per minute",
        priority=Priority.MEDIUM,
        actions=(
            Action(
                action="Buffer rows on the client and load every few minutes instead of per event",
                risk_level="low",
            ),
            Action(
                action="Check version counts of the busiest tables",
                command="SELECT DB_NAME, TABLE_NAME, MAX_CS FROM information_schema.partitions_meta ORDER BY MAX_CS DESC LIMIT 10;",
                risk_level="low",
            ),
        ),
        risk_level="low",
        monitoring=("Stream loads per table per minute",),
    ),
    "irregular_import_patterns": RecommendationTemplate(
        category="frequency_optimization",
        title="Smooth out irregular load schedules",
        description="{irregular_tables} of {total_tables} tables are loaded at irregular intervals",
        priority=Priority.LOW,
        actions=(
            Action(
                action="Move ad-hoc loads to a fixed schedule or a routine load",
                risk_level="low",
            ),
        ),
        risk_level="low",
    ),
}

INGESTION_PREVENTIVE: List[RecommendationTemplate] = [
    RecommendationTemplate(
        category="monitoring_alerting",
        title="Alert on load failures and paused routine loads",
        description="Detect ingestion problems before data freshness suffers",
        priority=Priority.LOW,
        actions=(
            Action(action="Alert when the hourly load failure rate exceeds 5%", risk_level="low"),
            Action(action="Alert when any routine load leaves the RUNNING state", risk_level="low"),
        ),
        risk_level="low",
    ),
    RecommendationTemplate(
        category="best_practices",
        title="Batch loads sensibly",
        description="Fewer, larger loads are cheaper for both ingestion and compaction",
        priority=Priority.LOW,
        actions=(
            Action(action="Prefer loads of 100 MB or more per transaction", risk_level="low"),
            Action(action="Use unique labels so retries stay idempotent", risk_level="low"),
        ),
        risk_level="low",
    ),
]
