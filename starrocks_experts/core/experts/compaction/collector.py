"""Compaction metric collection for shared-data clusters.

Collected keys:
- high_cs_partitions: partitions whose max compaction score is at or above the warning band
- thread_config: compact_threads per node
- running_tasks / finished_tasks: lake compaction tasks
- fe_max_tasks: FE ``lake_compaction_max_tasks`` (None if unreadable)
- backends / compute_nodes: node lists for CPU cores and node count

Derived keys: ``cs_stats``, ``nodes``, ``task_stats``.
"""

from typing import Any, Dict, List, Optional

import pandas as pd

from ...collection.backends import BACKENDS_QUERY, normalize_backends
from ...collection.collector import DataCollector, NamedQuery
from ...collection.parsing import column, numeric_column, to_float
from ...collection.snapshot import CollectionScope, MetricSnapshot
from ....config.bands import classify_by_descending_threshold


def _fe_config_value(df: pd.DataFrame) -> Optional[float]:
    values = column(df, "Value")
    if values is None or len(values) == 0:
        return None
    return to_float(values.iloc[0])


class CompactionCollector(DataCollector):
    """Collect compaction scores, thread configuration and task state."""

    domain = "compaction"

    def build_queries(self, scope: CollectionScope) -> List[NamedQuery]:
        warning_score = self.rule_set.band("compaction_score").bands[-1].threshold
        limit = int(self.rule_set.get_threshold("collection_limit", 200))

        cs_sql = """
            SELECT DB_NAME, TABLE_NAME, PARTITION_NAME, MAX_CS, AVG_CS, P50_CS, ROW_COUNT, STORAGE_SIZE
            FROM information_schema.partitions_meta
            WHERE MAX_CS >= :warning_score
        """
        params: Dict[str, Any] = {"warning_score": warning_score}
        if scope.database:
            cs_sql += " AND DB_NAME = :database"
            params["database"] = scope.database
        if scope.table:
            cs_sql += " AND TABLE_NAME = :table"
            params["table"] = scope.table
        cs_sql += f" ORDER BY MAX_CS DESC LIMIT {limit}"

        window_hours = int(scope.window_hours)

        return [
            NamedQuery(key="high_cs_partitions", statement=cs_sql, params=params),
            NamedQuery(
                key="thread_config",
                statement="""
                    SELECT BE_ID, NAME, VALUE
                    FROM information_schema.be_configs
                    WHERE NAME = 'compact_threads'
                """,
            ),
            NamedQuery(
                key="running_tasks",
                statement="""
                    SELECT BE_ID, TXN_ID, TABLET_ID, VERSION, START_TIME, PROGRESS, STATUS, RUNS
                    FROM information_schema.be_cloud_native_compactions
                    WHERE START_TIME IS NOT NULL AND FINISH_TIME IS NULL
                """,
            ),
            NamedQuery(
                key="finished_tasks",
                statement=f"""
                    SELECT BE_ID, TXN_ID, TABLET_ID, START_TIME, FINISH_TIME, STATUS, RUNS
                    FROM information_schema.be_cloud_native_compactions
                    WHERE FINISH_TIME IS NOT NULL
                      AND FINISH_TIME >= DATE_SUB(NOW(), INTERVAL {window_hours} HOUR)
                """,
            ),
            NamedQuery(
                key="fe_max_tasks",
                statement="ADMIN SHOW FRONTEND CONFIG LIKE 'lake_compaction_max_tasks'",
                default=lambda: None,
                transform=_fe_config_value,
            ),
            NamedQuery(key="backends", statement=BACKENDS_QUERY),
            NamedQuery(key="compute_nodes", statement="SHOW COMPUTE NODES"),
        ]

    def derive(self, snapshot: MetricSnapshot) -> None:
        snapshot["cs_stats"] = self._cs_stats(snapshot.frame("high_cs_partitions"))

        compute_nodes = normalize_backends(snapshot.frame("compute_nodes"))
        backends = normalize_backends(snapshot.frame("backends"))
        nodes = compute_nodes if not compute_nodes.empty else backends
        snapshot["nodes"] = nodes

        snapshot["task_stats"] = self._task_stats(snapshot, len(nodes))

    def _cs_stats(self, partitions: pd.DataFrame) -> Dict[str, Any]:
        table = self.rule_set.band("compaction_score")
        counts = {band.name: 0 for band in table.bands}
        scores = numeric_column(partitions, "MAX_CS").dropna()
        for score in scores:
            band = classify_by_descending_threshold(score, table)
            if band is not None:
                counts[band.name] += 1
        return {
            "partition_count": int(len(scores)),
            "band_counts": counts,
            "max_score": float(scores.max()) if len(scores) else 0.0,
            "avg_score": round(float(scores.mean()), 2) if len(scores) else 0.0,
        }

    def _task_stats(self, snapshot: MetricSnapshot, node_count: int) -> Dict[str, Any]:
        running = snapshot.frame("running_tasks")
        finished = snapshot.frame("finished_tasks")

        per_node: Dict[str, int] = {}
        be_ids = column(running, "BE_ID")
        if be_ids is not None:
            per_node = {str(k): int(v) for k, v in be_ids.astype(str).value_counts().sort_index().items()}

        statuses = column(finished, "STATUS")
        finished_count = 0 if statuses is None else int(len(statuses))
        success_count = 0 if statuses is None else int(
            statuses.astype(str).str.upper().isin(["OK", "SUCCESS", "FINISHED"]).sum()
        )

        return {
            "running_count": int(len(running)),
            "tasks_per_node": per_node,
            "node_count": int(node_count),
            "avg_tasks_per_node": (
                round(len(running) / node_count, 2) if node_count else float(len(running))
            ),
            "finished_count": finished_count,
            "success_count": success_count,
            "success_rate": (
                round(success_count / finished_count * 100, 2) if finished_count else None
            ),
        }


def running_task_hours(running: pd.DataFrame, reference) -> pd.Series:
    """Hours each running task has been executing at the reference time."""
    starts = column(running, "START_TIME")
    if starts is None:
        return pd.Series(dtype=float)
    started = pd.to_datetime(starts, errors="coerce")
    hours = (pd.Timestamp(reference) - started).dt.total_seconds() / 3600
    return hours.astype(float)
