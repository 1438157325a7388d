"""Ingestion diagnosis dimensions.

Dimensions:
- failure_rate: Cancelled share of load jobs in the window
- load_performance: Average load duration and volume
- routine_loads: Paused and cancelled routine load jobs
- load_queue: Pending jobs and long-running loads
- error_patterns: Recurring classified load errors
- import_frequency: Stream load intervals and their regularity per table
"""

from typing import List

import pandas as pd

from ...collection.parsing import column, row_value, to_int
from ...collection.snapshot import MetricSnapshot
from ...diagnosis.base import BaseDimension, Finding
from ...diagnosis.models import Severity
from ...diagnosis.registry import DimensionRegistry


@DimensionRegistry.register
class FailureRateDimension(BaseDimension):
    """Load failure rate bands, then an absolute count of cancelled jobs."""

    dimension_id = "failure_rate"
    domain = "ingestion"
    description = "Load job failure rate"

    def check(self, snapshot: MetricSnapshot) -> List[Finding]:
        summary = snapshot.get("load_summary") or {}
        total = summary.get("total_jobs", 0)
        cancelled = summary.get("cancelled_jobs", 0)
        rate = summary.get("failure_rate_pct")

        if rate is not None and total > 0:
            band = self.classify(rate, "load_failure_rate")
            if band is not None:
                return [
                    self.issue_from_band(
                        band,
                        message=f"{rate:.1f}% of load jobs failed ({cancelled} of {total})",
                        impact="Data arrives late or not at all; upstream retries add load",
                        failure_rate_pct=rate,
                        failed_jobs=cancelled,
                        total_jobs=total,
                    )
                ]

        frequent = int(self.get_threshold("frequent_failure_count", 5))
        if cancelled > frequent:
            return [
                self.create_issue(
                    "frequent_load_failures",
                    Severity.WARNING,
                    message=f"{cancelled} load jobs were cancelled in the window",
                    impact="Repeated failures hint at a systematic data or configuration problem",
                    failed_jobs=cancelled,
                    total_jobs=total,
                )
            ]
        return []


@DimensionRegistry.register
class LoadPerformanceDimension(BaseDimension):
    """Average load duration and the busiest target tables."""

    dimension_id = "load_performance"
    domain = "ingestion"
    description = "Load job performance"

    def check(self, snapshot: MetricSnapshot) -> List[Finding]:
        findings: List[Finding] = []
        summary = snapshot.get("load_summary") or {}
        avg_seconds = summary.get("avg_load_seconds")
        slow_seconds = float(self.get_threshold("slow_load_seconds", 300))

        if avg_seconds is not None and avg_seconds > slow_seconds:
            findings.append(
                self.create_issue(
                    "slow_load_performance",
                    Severity.WARNING,
                    message=f"Average load takes {avg_seconds:.0f}s (threshold {slow_seconds:.0f}s)",
                    impact="Slow loads widen the data freshness gap and hold resources longer",
                    avg_load_seconds=round(avg_seconds, 1),
                    threshold_seconds=slow_seconds,
                )
            )

        total = summary.get("total_jobs", 0)
        if total >= int(self.get_threshold("high_volume_load_count", 100)):
            findings.append(
                self.create_insight(
                    "high_volume_loading",
                    f"{total} load jobs in the window",
                    total_jobs=total,
                )
            )

        tables = snapshot.frame("table_load_stats")
        if not tables.empty:
            top = [
                {
                    "table": f"{row_value(row, 'DB_NAME', default='?')}.{row_value(row, 'TABLE_NAME', default='?')}",
                    "load_count": to_int(row_value(row, "load_count")),
                    "failed_count": to_int(row_value(row, "failed_count")),
                }
                for _, row in tables.head(5).iterrows()
            ]
            findings.append(
                self.create_insight(
                    "load_frequency_analysis",
                    f"Busiest target table: {top[0]['table']} ({top[0]['load_count']} loads)",
                    tables=top,
                )
            )
        return findings


@DimensionRegistry.register
class RoutineLoadDimension(BaseDimension):
    """Routine load jobs that stopped consuming."""

    dimension_id = "routine_loads"
    domain = "ingestion"
    description = "Routine load job state"

    def check(self, snapshot: MetricSnapshot) -> List[Finding]:
        jobs = snapshot.frame("routine_loads")
        if jobs.empty:
            return []

        findings: List[Finding] = []
        states = {}
        for _, job in jobs.iterrows():
            name = str(row_value(job, "Name", default="?"))
            db = row_value(job, "DbName")
            subject = f"{db}.{name}" if db else name
            state = str(row_value(job, "State", default="")).upper()
            states[state] = states.get(state, 0) + 1
            reason = row_value(job, "ReasonOfStateChanged", "OtherMsg", default="")

            if state == "PAUSED":
                findings.append(
                    self.create_issue(
                        "routine_load_paused",
                        Severity.WARNING,
                        message=f"Routine load {subject} is paused",
                        impact="Source data accumulates and the table falls behind",
                        subject=subject,
                        job_name=name,
                        reason=str(reason),
                    )
                )
            elif state == "CANCELLED":
                findings.append(
                    self.create_issue(
                        "routine_load_cancelled",
                        Severity.CRITICAL,
                        message=f"Routine load {subject} was cancelled",
                        impact="The job no longer consumes; it has to be recreated",
                        subject=subject,
                        job_name=name,
                        reason=str(reason),
                    )
                )

        findings.append(
            self.create_insight(
                "routine_load_summary",
                f"{len(jobs)} routine load job(s)",
                states=states,
            )
        )
        return findings


@DimensionRegistry.register
class LoadQueueDimension(BaseDimension):
    """Pending load backlog and long-running loads."""

    dimension_id = "load_queue"
    domain = "ingestion"
    description = "Load queue"

    def check(self, snapshot: MetricSnapshot) -> List[Finding]:
        findings: List[Finding] = []
        queue = snapshot.get("queue") or {}
        pending = queue.get("pending", 0)

        band = self.classify(pending, "pending_loads")
        if band is not None:
            findings.append(
                self.issue_from_band(
                    band,
                    message=f"{pending} load jobs waiting in the queue",
                    impact="Loads queue up; data freshness degrades and clients may time out",
                    pending_jobs=pending,
                    loading_jobs=queue.get("loading", 0),
                )
            )

        active = snapshot.frame("active_loads")
        starts = column(active, "LOAD_START_TIME")
        if starts is not None and snapshot.collected_at is not None:
            started = pd.to_datetime(starts, errors="coerce")
            hours = (pd.Timestamp(snapshot.collected_at) - started).dt.total_seconds() / 3600
            limit = float(self.get_threshold("long_running_hours", 2))
            long_running = active[hours > limit]
            if not long_running.empty:
                labels = column(long_running, "LABEL")
                findings.append(
                    self.create_issue(
                        "long_running_loads",
                        Severity.WARNING,
                        message=f"{len(long_running)} load job(s) running longer than {limit:g} hours",
                        impact="Long loads hold memory and block compaction of their tablets",
                        long_running_count=int(len(long_running)),
                        longest_hours=round(float(hours.max()), 2),
                        labels=[] if labels is None else [str(v) for v in labels.head(10)],
                    )
                )
        return findings


@DimensionRegistry.register
class ErrorPatternDimension(BaseDimension):
    """Recurring error kinds among failed loads."""

    dimension_id = "error_patterns"
    domain = "ingestion"
    description = "Load error patterns"

    def check(self, snapshot: MetricSnapshot) -> List[Finding]:
        minimum = int(self.get_threshold("error_pattern_min_occurrences", 5))
        findings: List[Finding] = []
        for kind, count in (snapshot.get("error_patterns") or {}).items():
            if count < minimum:
                continue
            findings.append(
                self.create_issue(
                    "recurring_error_pattern",
                    Severity.WARNING,
                    message=f"Recurring load error: {kind} ({count} occurrences)",
                    impact="Repeated identical errors point to a configuration or data issue",
                    subject=kind,
                    error_kind=kind,
                    occurrences=count,
                )
            )
        return findings


def frequency_pattern(avg_interval_seconds: float, pattern_minutes) -> str:
    """Name the load frequency of a table from its mean load interval.

    ``pattern_minutes`` maps pattern names to upper bounds in minutes,
    fastest first; intervals above every bound are ``low_frequency``.
    """
    minutes = avg_interval_seconds / 60
    for name, bound in pattern_minutes.items():
        if minutes < float(bound):
            return name
    return "low_frequency"


def regularity_level(cv_pct: float) -> str:
    if cv_pct < 20:
        return "very_regular"
    if cv_pct < 50:
        return "regular"
    if cv_pct < 100:
        return "irregular"
    return "very_irregular"


@DimensionRegistry.register
class ImportFrequencyDimension(BaseDimension):
    """Stream load frequency and regularity per table."""

    dimension_id = "import_frequency"
    domain = "ingestion"
    description = "Import frequency patterns"

    def check(self, snapshot: MetricSnapshot) -> List[Finding]:
        tables = snapshot.get("import_frequency")
        if not isinstance(tables, pd.DataFrame) or tables.empty:
            return [
                self.create_insight(
                    "import_frequency_no_data",
                    "Not enough stream load history to analyze import frequency",
                    window_hours=int(self.get_threshold("import_frequency.window_hours", 168)),
                )
            ]

        pattern_minutes = self.get_threshold("import_frequency.pattern_minutes") or {"high_frequency": 1}
        tables = tables.assign(
            pattern=[frequency_pattern(v, pattern_minutes) for v in tables["avg_interval_seconds"]],
            regularity=[regularity_level(v) for v in tables["cv_pct"]],
        )

        findings: List[Finding] = []
        high = tables[tables["pattern"] == "high_frequency"]
        max_high = int(self.get_threshold("import_frequency.max_high_frequency_tables", 3))
        if len(high) > max_high:
            findings.append(
                self.create_issue(
                    "excessive_high_frequency_imports",
                    Severity.WARNING,
                    message=f"{len(high)} tables are loaded more than once a minute",
                    impact="Many high-frequency loads create versions faster than compaction merges them",
                    urgency="WITHIN_DAYS",
                    high_frequency_tables=int(len(high)),
                    tables=[
                        {
                            "table": row["table"],
                            "loads_per_hour": float(row["loads_per_hour"]),
                            "avg_interval_seconds": round(float(row["avg_interval_seconds"]), 1),
                        }
                        for _, row in high.head(5).iterrows()
                    ],
                )
            )

        irregular_score = float(self.get_threshold("import_frequency.irregular_score", 40))
        irregular = tables[tables["regularity_score"] < irregular_score]
        share = float(self.get_threshold("import_frequency.irregular_table_share", 0.5))
        if len(irregular) > len(tables) * share:
            findings.append(
                self.create_issue(
                    "irregular_import_patterns",
                    Severity.WARNING,
                    message=f"{len(irregular)} of {len(tables)} tables are loaded at irregular intervals",
                    impact="Bursty loads cause uneven resource usage and latency spikes",
                    urgency="WITHIN_WEEKS",
                    irregular_tables=int(len(irregular)),
                    total_tables=int(len(tables)),
                    tables=[
                        {
                            "table": row["table"],
                            "regularity_score": int(row["regularity_score"]),
                            "cv_pct": float(row["cv_pct"]),
                        }
                        for _, row in irregular.head(5).iterrows()
                    ],
                )
            )

        findings.append(
            self.create_insight(
                "import_frequency_statistics",
                f"Import frequency of {len(tables)} table(s)",
                total_tables=int(len(tables)),
                frequency_distribution={k: int(v) for k, v in tables["pattern"].value_counts().items()},
                regularity_distribution={k: int(v) for k, v in tables["regularity"].value_counts().items()},
                most_frequent=[
                    {"table": row["table"], "loads_per_hour": float(row["loads_per_hour"])}
                    for _, row in tables.head(5).iterrows()
                ],
            )
        )
        return findings
