"""Compaction diagnosis dimensions.

Dimensions:
- compaction_score: Partition compaction score bands and distribution
- thread_config: compact_threads per node against CPU-derived bounds
- task_execution: Stalled, slow and failing compaction tasks
- fe_config: FE lake_compaction_max_tasks setting
- system_pressure: Combined task load and high-score partition count
"""

import math
from typing import Dict, List, Optional

import numpy as np

from ...collection.parsing import column, numeric_column, row_value, to_float, to_int
from ...collection.snapshot import MetricSnapshot
from ...diagnosis.base import BaseDimension, Finding
from ...diagnosis.models import Severity
from ...diagnosis.registry import DimensionRegistry
from .collector import running_task_hours


def _partition_name(row) -> str:
    return ".".join(
        str(row_value(row, name, default="?"))
        for name in ("DB_NAME", "TABLE_NAME", "PARTITION_NAME")
    )


@DimensionRegistry.register
class CompactionScoreDimension(BaseDimension):
    """One issue per compaction score band, listing the worst partitions."""

    dimension_id = "compaction_score"
    domain = "compaction"
    description = "Partition compaction score distribution"

    _IMPACT = {
        "emergency_compaction_score": "Queries read too many versions; loads may be rejected with 'too many versions'",
        "critical_compaction_score": "Query latency degraded by un-merged rowsets",
        "warning_compaction_score": "Compaction is falling behind the ingestion rate",
    }

    def check(self, snapshot: MetricSnapshot) -> List[Finding]:
        partitions = snapshot.frame("high_cs_partitions")
        table = self.band("compaction_score")
        scores = numeric_column(partitions, "MAX_CS")

        grouped: Dict[str, list] = {band.name: [] for band in table.bands}
        for index, row in partitions.iterrows():
            score = scores.get(index, np.nan)
            band = self.classify(score, "compaction_score")
            if band is not None:
                grouped[band.name].append((_partition_name(row), float(score)))

        findings: List[Finding] = []
        for band in table.bands:
            members = grouped[band.name]
            if not members:
                continue
            top = [{"partition": name, "max_cs": round(score, 1)} for name, score in members[:10]]
            findings.append(
                self.issue_from_band(
                    band,
                    message=(
                        f"{len(members)} partition(s) with compaction score >= {band.threshold:g} "
                        f"(max {members[0][1]:.0f})"
                    ),
                    impact=self._IMPACT.get(band.issue_type, ""),
                    partition_count=len(members),
                    max_score=round(members[0][1], 1),
                    top_partitions=top,
                )
            )

        stats = snapshot.get("cs_stats") or {}
        if stats.get("partition_count"):
            findings.append(
                self.create_insight(
                    "cs_distribution_analysis",
                    f"{stats['partition_count']} partition(s) above the warning score, "
                    f"average {stats.get('avg_score', 0):.1f}",
                    band_counts=stats.get("band_counts", {}),
                    max_score=stats.get("max_score"),
                    avg_score=stats.get("avg_score"),
                )
            )
        return findings


def recommended_thread_bounds(cores: Optional[float], config) -> Dict[str, int]:
    """Minimum, maximum and recommended compact_threads for a CPU count.

    Parameters
    ----------
    cores : float or None
        CPU cores of the node (None when unknown)
    config : Callable[[str, Any], Any]
        Threshold getter (``thread_config.*`` keys)

    Returns
    -------
    dict
        ``min_threads``, ``max_threads``, ``recommended_threads``
    """
    absolute_min = int(config("thread_config.absolute_min_threads", 4))
    absolute_max = int(config("thread_config.absolute_max_threads", 64))
    base = int(config("thread_config.recommended_base", 8))

    if cores is None or cores <= 0:
        min_threads, max_threads = absolute_min, absolute_max
    else:
        min_threads = max(absolute_min, math.ceil(cores * float(config("thread_config.min_per_core", 0.25))))
        max_threads = min(absolute_max, math.floor(cores * float(config("thread_config.max_per_core", 0.5))))
        max_threads = max(max_threads, min_threads)

    recommended = min(max(base, min_threads), max_threads)
    return {
        "min_threads": min_threads,
        "max_threads": max_threads,
        "recommended_threads": recommended,
    }


@DimensionRegistry.register
class ThreadConfigDimension(BaseDimension):
    """compact_threads per node, relative to its CPU cores."""

    dimension_id = "thread_config"
    domain = "compaction"
    description = "Compaction thread configuration"

    def check(self, snapshot: MetricSnapshot) -> List[Finding]:
        config = snapshot.frame("thread_config")
        if config.empty:
            return [
                self.create_insight(
                    "thread_config_unavailable",
                    "compact_threads could not be read from information_schema.be_configs",
                )
            ]

        nodes = snapshot.frame("nodes")
        cores_by_id = {}
        if not nodes.empty:
            cores_by_id = {
                str(row["backend_id"]): to_float(row["cpu_cores"])
                for _, row in nodes.iterrows()
            }
        host_by_id = {} if nodes.empty else dict(zip(nodes["backend_id"].astype(str), nodes["node"]))
        critical_below = int(self.get_threshold("thread_config.recommended_base", 8))

        findings: List[Finding] = []
        per_node = []
        for _, row in config.iterrows():
            be_id = str(row_value(row, "BE_ID", default=""))
            threads = to_int(row_value(row, "VALUE"), default=-1)
            if threads < 0:
                continue
            cores = cores_by_id.get(be_id)
            bounds = recommended_thread_bounds(cores, self.get_threshold)
            subject = str(host_by_id.get(be_id, be_id))
            per_node.append({"be_id": be_id, "threads": threads, "cpu_cores": cores, **bounds})

            if threads < bounds["min_threads"]:
                severity = Severity.CRITICAL if threads < critical_below else Severity.WARNING
                findings.append(
                    self.create_issue(
                        "low_compaction_threads",
                        severity,
                        message=(
                            f"Node {subject} runs {threads} compaction thread(s), "
                            f"below the minimum of {bounds['min_threads']}"
                        ),
                        impact="Compaction cannot keep up with loads; scores will climb",
                        urgency="WITHIN_HOURS" if severity is Severity.CRITICAL else "WITHIN_DAYS",
                        subject=subject,
                        be_id=be_id,
                        current_threads=threads,
                        cpu_cores=cores,
                        **bounds,
                    )
                )
            elif threads > bounds["max_threads"]:
                findings.append(
                    self.create_issue(
                        "high_compaction_threads",
                        Severity.WARNING,
                        message=(
                            f"Node {subject} runs {threads} compaction threads, "
                            f"above the maximum of {bounds['max_threads']}"
                        ),
                        impact="Compaction competes with queries and loads for CPU and IO",
                        subject=subject,
                        be_id=be_id,
                        current_threads=threads,
                        cpu_cores=cores,
                        **bounds,
                    )
                )

        if per_node:
            findings.append(
                self.create_insight(
                    "cluster_thread_analysis",
                    f"compact_threads read from {len(per_node)} node(s), "
                    f"{sum(n['threads'] for n in per_node)} threads in total",
                    nodes=per_node,
                )
            )
        return findings


@DimensionRegistry.register
class TaskExecutionDimension(BaseDimension):
    """Running and recently finished compaction tasks."""

    dimension_id = "task_execution"
    domain = "compaction"
    description = "Compaction task execution"

    def check(self, snapshot: MetricSnapshot) -> List[Finding]:
        findings: List[Finding] = []
        running = snapshot.frame("running_tasks")
        stats = snapshot.get("task_stats") or {}

        stalled_pct = float(self.get_threshold("task_execution.stalled_progress_pct", 50))
        max_retries = int(self.get_threshold("task_execution.max_retry_count", 5))
        slow_hours = float(self.get_threshold("task_execution.slow_task_hours", 2))
        max_per_node = int(self.get_threshold("task_execution.max_healthy_tasks_per_node", 8))
        healthy_rate = float(self.get_threshold("task_execution.healthy_success_rate", 90))

        if not running.empty:
            progress = numeric_column(running, "PROGRESS").fillna(0)
            runs = numeric_column(running, "RUNS").fillna(0)
            stalled = running[(progress < stalled_pct) & (runs > max_retries)]
            if not stalled.empty:
                tablet_ids = column(stalled, "TABLET_ID")
                findings.append(
                    self.create_issue(
                        "stalled_compaction_tasks",
                        Severity.CRITICAL,
                        message=(
                            f"{len(stalled)} compaction task(s) retried more than {max_retries} times "
                            f"with progress below {stalled_pct:.0f}%"
                        ),
                        impact="Stuck tasks hold compaction slots and scores keep growing",
                        urgency="IMMEDIATE",
                        stalled_count=int(len(stalled)),
                        tablets=[] if tablet_ids is None else [str(t) for t in tablet_ids.head(10)],
                    )
                )

            hours = running_task_hours(running, snapshot.collected_at)
            slow = hours[hours > slow_hours]
            if len(slow):
                findings.append(
                    self.create_issue(
                        "slow_compaction_tasks",
                        Severity.WARNING,
                        message=f"{len(slow)} compaction task(s) running longer than {slow_hours:g} hours",
                        impact="Long tasks delay compaction of other tablets",
                        slow_count=int(len(slow)),
                        longest_hours=round(float(slow.max()), 2),
                    )
                )

        for node, count in (stats.get("tasks_per_node") or {}).items():
            if count > max_per_node:
                findings.append(
                    self.create_issue(
                        "node_task_overload",
                        Severity.WARNING,
                        message=f"Node {node} runs {count} compaction tasks (healthy maximum {max_per_node})",
                        impact="Node saturated by compaction; queries on it slow down",
                        subject=str(node),
                        running_tasks=count,
                        max_tasks=max_per_node,
                    )
                )

        rate = stats.get("success_rate")
        if rate is not None and rate < healthy_rate:
            findings.append(
                self.create_issue(
                    "low_task_success_rate",
                    Severity.WARNING,
                    message=f"Only {rate:.1f}% of recent compaction tasks succeeded",
                    impact="Failed tasks are retried and waste compaction capacity",
                    success_rate=rate,
                    finished_tasks=stats.get("finished_count", 0),
                    healthy_rate=healthy_rate,
                )
            )

        if stats.get("running_count") or stats.get("finished_count"):
            findings.append(
                self.create_insight(
                    "task_execution_analysis",
                    f"{stats.get('running_count', 0)} running, "
                    f"{stats.get('finished_count', 0)} finished in the window",
                    running_count=stats.get("running_count", 0),
                    finished_count=stats.get("finished_count", 0),
                    success_rate=rate,
                    tasks_per_node=stats.get("tasks_per_node", {}),
                )
            )
        return findings


@DimensionRegistry.register
class FEConfigDimension(BaseDimension):
    """FE ``lake_compaction_max_tasks``."""

    dimension_id = "fe_config"
    domain = "compaction"
    description = "FE compaction task limit"

    def check(self, snapshot: MetricSnapshot) -> List[Finding]:
        value = snapshot.get("fe_max_tasks")
        if value is None:
            return [
                self.create_insight(
                    "fe_config_access_error",
                    "lake_compaction_max_tasks could not be read from the FE",
                )
            ]

        max_tasks = int(value)
        node_count = len(snapshot.frame("nodes"))
        multiplier = int(self.get_threshold("fe_config.adaptive_multiplier", 16))
        adaptive = int(self.get_threshold("fe_config.adaptive_value", -1))
        disabled = int(self.get_threshold("fe_config.disabled_value", 0))
        min_recommended = int(self.get_threshold("fe_config.min_recommended_max_tasks", 64))

        if max_tasks == adaptive:
            return [
                self.create_insight(
                    "adaptive_compaction_config",
                    f"lake_compaction_max_tasks is adaptive ({node_count} node(s) x {multiplier})",
                    effective_max_tasks=node_count * multiplier,
                    node_count=node_count,
                )
            ]
        if max_tasks == disabled:
            return [
                self.create_issue(
                    "compaction_disabled",
                    Severity.CRITICAL,
                    message="Lake compaction is disabled (lake_compaction_max_tasks = 0)",
                    impact="Compaction scores grow without bound; loads will eventually fail",
                    urgency="IMMEDIATE",
                    current_value=max_tasks,
                )
            ]
        if max_tasks < min_recommended:
            return [
                self.create_issue(
                    "low_max_compaction_tasks",
                    Severity.WARNING,
                    message=f"lake_compaction_max_tasks = {max_tasks} is below {min_recommended}",
                    impact="Cluster-wide compaction concurrency is capped too low",
                    current_value=max_tasks,
                    recommended_value=max(min_recommended, node_count * multiplier),
                )
            ]
        if node_count and max_tasks > node_count * multiplier * 4:
            return [
                self.create_issue(
                    "high_max_compaction_tasks",
                    Severity.INFO,
                    message=(
                        f"lake_compaction_max_tasks = {max_tasks} is far above "
                        f"{node_count} node(s) x {multiplier}"
                    ),
                    impact="Bursts of compaction may saturate the compute nodes",
                    current_value=max_tasks,
                    recommended_value=node_count * multiplier,
                )
            ]
        return []


@DimensionRegistry.register
class SystemPressureDimension(BaseDimension):
    """Combined pressure from running tasks and high-score partitions."""

    dimension_id = "system_pressure"
    domain = "compaction"
    description = "Overall compaction pressure"

    def check(self, snapshot: MetricSnapshot) -> List[Finding]:
        stats = snapshot.get("task_stats") or {}
        cs_stats = snapshot.get("cs_stats") or {}
        tasks_per_node = float(stats.get("avg_tasks_per_node", 0) or 0)
        partitions = int(cs_stats.get("partition_count", 0) or 0)

        metrics = {
            "avg_tasks_per_node": tasks_per_node,
            "high_cs_partitions": partitions,
            "running_tasks": stats.get("running_count", 0),
        }
        if (
            tasks_per_node > float(self.get_threshold("system_pressure.high_tasks_per_node", 8))
            or partitions > int(self.get_threshold("system_pressure.high_partition_count", 50))
        ):
            return [
                self.create_issue(
                    "high_system_compaction_pressure",
                    Severity.WARNING,
                    message=(
                        f"High compaction pressure: {tasks_per_node:.1f} tasks per node, "
                        f"{partitions} partition(s) above the warning score"
                    ),
                    impact="Compaction consumes CPU and IO needed by queries and loads",
                    urgency="WITHIN_HOURS",
                    **metrics,
                )
            ]
        if (
            tasks_per_node > float(self.get_threshold("system_pressure.elevated_tasks_per_node", 5))
            or partitions > int(self.get_threshold("system_pressure.elevated_partition_count", 20))
        ):
            return [
                self.create_insight(
                    "elevated_compaction_pressure",
                    f"Elevated compaction pressure: {tasks_per_node:.1f} tasks per node, "
                    f"{partitions} partition(s) above the warning score",
                    **metrics,
                )
            ]
        return []
