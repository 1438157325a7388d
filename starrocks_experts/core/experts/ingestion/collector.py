"""Ingestion metric collection.

Collected keys:
- load_stats: totals over the time window (dict)
- active_loads: PENDING / ETL / LOADING jobs
- failed_loads: recent CANCELLED jobs with their error messages
- routine_loads: SHOW ALL ROUTINE LOAD
- table_load_stats: busiest target tables in the window
- load_history: stream load creation times per table (frequency window)

Derived keys: ``load_summary``, ``queue``, ``error_patterns``,
``import_frequency``.
"""

from collections import Counter
from typing import Any, Dict, List

import numpy as np
import pandas as pd

from ...collection.collector import DataCollector, NamedQuery
from ...collection.parsing import column, to_float, to_int
from ...collection.snapshot import CollectionScope, MetricSnapshot

# Ordered: first keyword match wins
ERROR_KINDS = (
    ("timeout", ("timeout", "timed out")),
    ("format_error", ("format", "parse", "column count")),
    ("permission_error", ("permission", "access denied", "privilege")),
    ("memory_error", ("memory", "oom")),
    ("duplicate_key", ("duplicate", "primary key")),
    ("too_many_versions", ("too many versions", "too many tablet versions")),
)


def classify_load_error(message: Any) -> str:
    """Map a load error message to a coarse error kind."""
    if message is None or (isinstance(message, float) and pd.isna(message)):
        return "unknown"
    text = str(message).lower()
    for kind, keywords in ERROR_KINDS:
        if any(keyword in text for keyword in keywords):
            return kind
    return "unknown"


def _first_row(df: pd.DataFrame) -> Dict[str, Any]:
    if df is None or df.empty:
        return {}
    return {str(k).lower(): v for k, v in df.iloc[0].items()}


FREQUENCY_COLUMNS = [
    "table",
    "load_count",
    "failed_count",
    "avg_interval_seconds",
    "std_interval_seconds",
    "min_interval_seconds",
    "max_interval_seconds",
    "cv_pct",
    "regularity_score",
    "loads_per_hour",
]


def table_load_intervals(loads: pd.DataFrame) -> pd.DataFrame:
    """Interval statistics between consecutive loads of each table.

    Parameters
    ----------
    loads : pd.DataFrame
        One row per load with DB_NAME, TABLE_NAME, CREATE_TIME and STATE

    Returns
    -------
    pd.DataFrame
        One row per table with at least two loads (``FREQUENCY_COLUMNS``),
        most frequently loaded first. ``cv_pct`` is the coefficient of
        variation of the intervals; ``regularity_score`` is
        ``max(0, 100 - cv_pct)``.
    """
    created = column(loads, "CREATE_TIME")
    db = column(loads, "DB_NAME", "DATABASE_NAME")
    table = column(loads, "TABLE_NAME")
    if created is None or db is None or table is None:
        return pd.DataFrame(columns=FREQUENCY_COLUMNS)

    state = column(loads, "STATE")
    frame = pd.DataFrame({
        "table": db.astype(str) + "." + table.astype(str),
        "created": pd.to_datetime(created, errors="coerce"),
        "failed": state.astype(str).str.upper() == "CANCELLED" if state is not None else False,
    }).dropna(subset=["created"])
    if frame.empty:
        return pd.DataFrame(columns=FREQUENCY_COLUMNS)

    frame = frame.sort_values(["table", "created"], kind="mergesort")
    frame["interval"] = frame.groupby("table")["created"].diff().dt.total_seconds()
    stats = frame.groupby("table").agg(
        load_count=("created", "size"),
        failed_count=("failed", "sum"),
        avg_interval_seconds=("interval", "mean"),
        std_interval_seconds=("interval", lambda s: s.std(ddof=0)),
        min_interval_seconds=("interval", "min"),
        max_interval_seconds=("interval", "max"),
    ).reset_index()
    stats = stats[stats["load_count"] >= 2].copy()
    if stats.empty:
        return pd.DataFrame(columns=FREQUENCY_COLUMNS)

    avg = stats["avg_interval_seconds"]
    # simultaneous loads have no spread
    cv_pct = (stats["std_interval_seconds"] / avg.where(avg > 0)).fillna(0.0) * 100
    stats["cv_pct"] = cv_pct.round(1)
    stats["regularity_score"] = np.clip(100 - cv_pct, 0, 100).round().astype(int)
    stats["loads_per_hour"] = (3600.0 / avg.clip(lower=1.0)).round(2)
    stats["load_count"] = stats["load_count"].astype(int)
    stats["failed_count"] = stats["failed_count"].astype(int)

    stats = stats.sort_values(["loads_per_hour", "table"], ascending=[False, True])
    return stats[FREQUENCY_COLUMNS].reset_index(drop=True)


class IngestionCollector(DataCollector):
    """Collect load job statistics, routine loads and the load queue."""

    domain = "ingestion"

    def build_queries(self, scope: CollectionScope) -> List[NamedQuery]:
        hours = int(scope.window_hours)
        limit = int(self.rule_set.get_threshold("recent_failure_limit", 100))
        window = f"CREATE_TIME >= DATE_SUB(NOW(), INTERVAL {hours} HOUR)"
        frequency_hours = int(self.rule_set.get_threshold("import_frequency.window_hours", 168))
        frequency_limit = int(self.rule_set.get_threshold("import_frequency.row_limit", 20000))

        target = ""
        params: Dict[str, Any] = {}
        if scope.database:
            target += " AND DB_NAME = :database"
            params["database"] = scope.database
        if scope.table:
            target += " AND TABLE_NAME = :table"
            params["table"] = scope.table

        return [
            NamedQuery(
                key="load_stats",
                statement=f"""
                    SELECT COUNT(*) AS total_jobs,
                           SUM(CASE WHEN STATE = 'FINISHED' THEN 1 ELSE 0 END) AS finished_jobs,
                           SUM(CASE WHEN STATE = 'CANCELLED' THEN 1 ELSE 0 END) AS cancelled_jobs,
                           AVG(CASE WHEN STATE = 'FINISHED' AND LOAD_FINISH_TIME IS NOT NULL
                               THEN UNIX_TIMESTAMP(LOAD_FINISH_TIME) - UNIX_TIMESTAMP(LOAD_START_TIME)
                               ELSE NULL END) AS avg_load_seconds
                    FROM information_schema.loads
                    WHERE {window}{target}
                """,
                params=params,
                default=dict,
                transform=_first_row,
            ),
            NamedQuery(
                key="active_loads",
                statement=f"""
                    SELECT JOB_ID, LABEL, DB_NAME, TABLE_NAME, STATE, TYPE, CREATE_TIME, LOAD_START_TIME
                    FROM information_schema.loads
                    WHERE STATE IN ('PENDING', 'QUEUEING', 'ETL', 'LOADING'){target}
                    ORDER BY CREATE_TIME
                """,
                params=params,
            ),
            NamedQuery(
                key="failed_loads",
                statement=f"""
                    SELECT JOB_ID, LABEL, DB_NAME, TABLE_NAME, TYPE, ERROR_MSG, CREATE_TIME
                    FROM information_schema.loads
                    WHERE STATE = 'CANCELLED' AND {window}{target}
                    ORDER BY CREATE_TIME DESC
                    LIMIT {limit}
                """,
                params=params,
            ),
            NamedQuery(
                key="routine_loads",
                statement=(
                    f"SHOW ALL ROUTINE LOAD FROM `{scope.database}`"
                    if scope.database else "SHOW ALL ROUTINE LOAD"
                ),
            ),
            NamedQuery(
                key="table_load_stats",
                statement=f"""
                    SELECT DB_NAME, TABLE_NAME,
                           COUNT(*) AS load_count,
                           SUM(CASE WHEN STATE = 'FINISHED' THEN 1 ELSE 0 END) AS success_count,
                           SUM(CASE WHEN STATE = 'CANCELLED' THEN 1 ELSE 0 END) AS failed_count
                    FROM information_schema.loads
                    WHERE {window}{target}
                    GROUP BY DB_NAME, TABLE_NAME
                    ORDER BY load_count DESC
                    LIMIT 20
                """,
                params=params,
            ),
            NamedQuery(
                key="load_history",
                statement=f"""
                    SELECT DB_NAME, TABLE_NAME, CREATE_TIME, STATE
                    FROM information_schema.loads
                    WHERE TYPE = 'STREAM LOAD'
                      AND CREATE_TIME >= DATE_SUB(NOW(), INTERVAL {frequency_hours} HOUR){target}
                    ORDER BY DB_NAME, TABLE_NAME, CREATE_TIME
                    LIMIT {frequency_limit}
                """,
                params=params,
            ),
        ]

    def derive(self, snapshot: MetricSnapshot) -> None:
        stats = snapshot.get("load_stats") or {}
        total = to_int(stats.get("total_jobs"))
        cancelled = to_int(stats.get("cancelled_jobs"))
        snapshot["load_summary"] = {
            "total_jobs": total,
            "finished_jobs": to_int(stats.get("finished_jobs")),
            "cancelled_jobs": cancelled,
            "failure_rate_pct": round(cancelled / total * 100, 2) if total else None,
            "avg_load_seconds": to_float(stats.get("avg_load_seconds")),
        }

        states = column(snapshot.frame("active_loads"), "STATE")
        state_counts = Counter() if states is None else Counter(states.astype(str).str.upper())
        snapshot["queue"] = {
            "pending": state_counts["PENDING"] + state_counts["QUEUEING"],
            "etl": state_counts["ETL"],
            "loading": state_counts["LOADING"],
        }

        messages = column(snapshot.frame("failed_loads"), "ERROR_MSG")
        kinds = Counter() if messages is None else Counter(classify_load_error(m) for m in messages)
        snapshot["error_patterns"] = dict(sorted(kinds.items(), key=lambda kv: (-kv[1], kv[0])))

        snapshot["import_frequency"] = table_load_intervals(snapshot.frame("load_history"))
