"""Storage diagnosis dimensions.

Dimensions:
- disk_usage: Per-node disk usage bands (emergency / critical / warning)
- free_space: Absolute free space floor per node
- tablet_health: Error tablets, tablet count per node, cluster error rate
- data_distribution: Data size imbalance across nodes
- large_partitions: Largest partitions (insight)
- memory_io: Node memory pressure that slows down disk IO
"""

from typing import List, Optional

import numpy as np

from ...diagnosis.base import BaseDimension, Finding
from ...diagnosis.models import Severity
from ...diagnosis.registry import DimensionRegistry
from ...collection.snapshot import MetricSnapshot


def _alive_nodes(snapshot: MetricSnapshot):
    nodes = snapshot.frame("nodes")
    if nodes.empty:
        return nodes
    return nodes[nodes["alive"]]


def estimate_time_to_full(avail_gb: Optional[float]) -> Optional[str]:
    """Rough time until a disk fills up, from its remaining free space."""
    if avail_gb is None:
        return None
    if avail_gb < 1:
        return "immediate"
    if avail_gb < 5:
        return "1-2 hours"
    if avail_gb < 10:
        return "4-8 hours"
    return "1-2 days"


@DimensionRegistry.register
class DiskUsageDimension(BaseDimension):
    """Classify each node's disk usage against the disk_usage bands."""

    dimension_id = "disk_usage"
    domain = "storage"
    description = "Per-node disk usage"

    _IMPACT = {
        "disk_emergency": "Writes and compaction fail once the disk is full; loads are rejected",
        "disk_critical": "Little headroom left for loads, compaction and clone tasks",
        "disk_warning": "Disk usage trending toward critical levels",
    }

    def check(self, snapshot: MetricSnapshot) -> List[Finding]:
        findings = []
        for _, node in _alive_nodes(snapshot).iterrows():
            usage = node["disk_used_pct"]
            band = self.classify(usage, "disk_usage")
            if band is None:
                continue
            avail_gb = None if np.isnan(node["avail_gb"]) else round(float(node["avail_gb"]), 2)
            extra = {}
            if band.issue_type == "disk_emergency":
                extra["estimated_time_to_full"] = estimate_time_to_full(avail_gb)
            findings.append(
                self.issue_from_band(
                    band,
                    message=f"Node {node['node']} disk usage at {usage:.1f}% ({band.name} level)",
                    impact=self._IMPACT.get(band.issue_type, ""),
                    subject=str(node["node"]),
                    usage_pct=round(float(usage), 2),
                    avail_gb=avail_gb,
                    **extra,
                )
            )
        return findings


@DimensionRegistry.register
class FreeSpaceDimension(BaseDimension):
    """Flag nodes whose free space is below an absolute floor."""

    dimension_id = "free_space"
    domain = "storage"
    description = "Absolute free space per node"

    def check(self, snapshot: MetricSnapshot) -> List[Finding]:
        minimum_gb = float(self.get_threshold("free_space_minimum_gb", 10))
        findings = []
        for _, node in _alive_nodes(snapshot).iterrows():
            avail = node["avail_gb"]
            if np.isnan(avail) or avail >= minimum_gb:
                continue
            findings.append(
                self.create_issue(
                    "low_free_space",
                    Severity.CRITICAL,
                    message=f"Node {node['node']} has only {avail:.1f} GB free (minimum {minimum_gb:.0f} GB)",
                    impact="Large loads or compactions may fail for lack of space",
                    urgency="IMMEDIATE",
                    subject=str(node["node"]),
                    avail_gb=round(float(avail), 2),
                    minimum_gb=minimum_gb,
                )
            )
        return findings


@DimensionRegistry.register
class TabletHealthDimension(BaseDimension):
    """Error tablets and tablet counts."""

    dimension_id = "tablet_health"
    domain = "storage"
    description = "Tablet health per node and cluster-wide"

    def check(self, snapshot: MetricSnapshot) -> List[Finding]:
        findings = []
        nodes = _alive_nodes(snapshot)
        max_tablets = float(self.get_threshold("max_tablets_per_be", 50000))

        for _, node in nodes.iterrows():
            errors = int(node["err_tablet_num"])
            band = self.classify(errors, "error_tablets")
            if band is not None:
                findings.append(
                    self.issue_from_band(
                        band,
                        message=f"Node {node['node']} has {errors} error tablet(s)",
                        impact="Replicas in error state reduce availability and may fail queries",
                        subject=str(node["node"]),
                        error_tablets=errors,
                    )
                )

            tablets = int(node["tablet_num"])
            if tablets > max_tablets:
                findings.append(
                    self.create_issue(
                        "high_tablet_count",
                        Severity.WARNING,
                        message=f"Node {node['node']} hosts {tablets} tablets (limit {max_tablets:.0f})",
                        impact="Too many tablets increase metadata memory and scheduling overhead",
                        subject=str(node["node"]),
                        tablet_count=tablets,
                        max_tablets=max_tablets,
                    )
                )

        totals = snapshot.get("tablet_totals", {})
        total = totals.get("total_tablets", 0)
        error_total = totals.get("error_tablets", 0)
        if total > 0:
            rate = error_total / total * 100
            if rate > float(self.get_threshold("error_tablet_rate_pct", 1.0)):
                findings.append(
                    self.create_issue(
                        "high_error_tablet_rate",
                        Severity.WARNING,
                        message=f"{rate:.2f}% of all tablets are in error state",
                        impact="Systemic replica problems; check disks and clone tasks",
                        error_rate_pct=round(rate, 2),
                        error_tablets=error_total,
                        total_tablets=total,
                    )
                )
        return findings


@DimensionRegistry.register
class DataDistributionDimension(BaseDimension):
    """Data size imbalance across nodes."""

    dimension_id = "data_distribution"
    domain = "storage"
    description = "Data distribution across nodes"

    def check(self, snapshot: MetricSnapshot) -> List[Finding]:
        nodes = _alive_nodes(snapshot)
        if len(nodes) < 2:
            return []
        sizes = nodes["data_used_gb"].dropna()
        if len(sizes) < 2 or sizes.mean() <= 0:
            return []

        imbalance = (sizes.max() - sizes.min()) / sizes.mean() * 100
        threshold = float(self.get_threshold("imbalance_threshold_pct", 20))
        if imbalance <= threshold:
            return []
        return [
            self.create_issue(
                "data_imbalance",
                Severity.WARNING,
                message=f"Data size differs by {imbalance:.1f}% across nodes (threshold {threshold:.0f}%)",
                impact="Hot nodes fill up first and carry more query and compaction load",
                imbalance_pct=round(float(imbalance), 1),
                max_gb=round(float(sizes.max()), 2),
                min_gb=round(float(sizes.min()), 2),
                node_count=int(len(sizes)),
            )
        ]


@DimensionRegistry.register
class LargePartitionsDimension(BaseDimension):
    """Summarize the largest partitions."""

    dimension_id = "large_partitions"
    domain = "storage"
    description = "Largest partitions"

    def is_applicable(self, snapshot: MetricSnapshot) -> bool:
        return not snapshot.frame("partition_sizes").empty

    def check(self, snapshot: MetricSnapshot) -> List[Finding]:
        partitions = snapshot.frame("partition_sizes")
        threshold = float(self.get_threshold("large_partition_gb", 10))
        large = partitions[partitions["storage_gb"] > threshold]
        if large.empty:
            return []

        top = [
            {
                "partition": f"{row['DB_NAME']}.{row['TABLE_NAME']}.{row['PARTITION_NAME']}",
                "size_gb": round(float(row["storage_gb"]), 2),
            }
            for _, row in large.head(5).iterrows()
        ]
        return [
            self.create_insight(
                "large_partitions_analysis",
                f"{len(large)} partition(s) larger than {threshold:.0f} GB",
                large_partition_count=int(len(large)),
                threshold_gb=threshold,
                largest=top,
            )
        ]


@DimensionRegistry.register
class MemoryIODimension(BaseDimension):
    """Node memory pressure that degrades IO (page cache starvation)."""

    dimension_id = "memory_io"
    domain = "storage"
    description = "Memory pressure affecting storage IO"

    def check(self, snapshot: MetricSnapshot) -> List[Finding]:
        findings = []
        for _, node in _alive_nodes(snapshot).iterrows():
            usage = node["mem_used_pct"]
            band = self.classify(usage, "node_memory")
            # strictly above the threshold
            if band is None or usage <= band.threshold:
                continue
            findings.append(
                self.issue_from_band(
                    band,
                    message=f"Node {node['node']} memory usage at {usage:.1f}% may slow down disk IO",
                    impact="Less page cache and slower flushes on this node",
                    subject=str(node["node"]),
                    mem_used_pct=round(float(usage), 2),
                )
            )
        return findings
