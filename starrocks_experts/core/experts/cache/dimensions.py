"""Data cache diagnosis dimensions.

Dimensions:
- hit_ratio: Per-node and overall cache hit ratio
- capacity: Cache disk usage per node
- hit_ratio_variance: Spread of hit ratios across nodes
"""

from typing import List

import numpy as np

from ...collection.snapshot import MetricSnapshot
from ...diagnosis.base import BaseDimension, Finding
from ...diagnosis.models import Severity
from ...diagnosis.registry import DimensionRegistry

_GB = 1024.0 ** 3


@DimensionRegistry.register
class HitRatioDimension(BaseDimension):
    """Cache hit ratio per node and for the whole cluster."""

    dimension_id = "hit_ratio"
    domain = "cache"
    description = "Data cache hit ratio"

    def check(self, snapshot: MetricSnapshot) -> List[Finding]:
        nodes = snapshot.frame("cache_nodes")
        if nodes.empty:
            return [
                self.create_insight(
                    "no_cache_metrics",
                    "No rows in information_schema.be_cache_metrics; cache performance cannot be assessed",
                )
            ]

        findings: List[Finding] = []
        for _, node in nodes.iterrows():
            ratio = node["hit_ratio"]
            band = self.classify(ratio, "hit_ratio")
            if band is None:
                continue
            findings.append(
                self.issue_from_band(
                    band,
                    message=f"Node {node['node']} cache hit ratio is {ratio:.1f}%",
                    impact="Reads go to object storage; query latency rises",
                    subject=str(node["node"]),
                    hit_ratio=round(float(ratio), 2),
                    hit_count=int(node["hit_count"]),
                    miss_count=int(node["miss_count"]),
                )
            )

        total_requests = float(nodes["requests"].sum())
        if total_requests > 0:
            overall = float(nodes["hit_count"].sum()) / total_requests * 100
            warning = self.band("hit_ratio").get_band("warning")
            if warning is not None and overall < warning.threshold:
                findings.append(
                    self.create_issue(
                        "overall_low_hit_ratio",
                        Severity.INFO,
                        message=f"Cluster-wide cache hit ratio is {overall:.1f}%",
                        impact="Overall query performance depends on object storage latency",
                        hit_ratio=round(overall, 2),
                        total_requests=int(total_requests),
                    )
                )
        return findings


@DimensionRegistry.register
class CapacityDimension(BaseDimension):
    """Cache disk usage per node."""

    dimension_id = "capacity"
    domain = "cache"
    description = "Data cache capacity"

    def check(self, snapshot: MetricSnapshot) -> List[Finding]:
        findings: List[Finding] = []
        for _, node in snapshot.frame("cache_nodes").iterrows():
            usage = node["usage_pct"]
            band = self.classify(usage, "capacity_usage")
            if band is None:
                continue
            findings.append(
                self.issue_from_band(
                    band,
                    message=f"Node {node['node']} cache is {usage:.1f}% full",
                    impact="Frequent evictions lower the hit ratio",
                    subject=str(node["node"]),
                    usage_pct=round(float(usage), 2),
                    capacity_gb=round(float(node["capacity_bytes"]) / _GB, 2),
                )
            )
        return findings


@DimensionRegistry.register
class HitRatioVarianceDimension(BaseDimension):
    """Standard deviation of hit ratios across nodes."""

    dimension_id = "hit_ratio_variance"
    domain = "cache"
    description = "Hit ratio spread across nodes"

    def check(self, snapshot: MetricSnapshot) -> List[Finding]:
        nodes = snapshot.frame("cache_nodes")
        if nodes.empty:
            return []
        ratios = nodes["hit_ratio"].dropna()
        if len(ratios) < int(self.get_threshold("min_nodes_for_variance", 2)):
            return []

        std_dev = float(np.std(ratios.values))
        findings: List[Finding] = []
        if std_dev > float(self.get_threshold("hit_ratio_std_dev", 15)):
            findings.append(
                self.create_issue(
                    "cache_hit_ratio_variance",
                    Severity.WARNING,
                    message=f"Cache hit ratios differ strongly across nodes (std dev {std_dev:.1f})",
                    impact="Hot data or uneven query routing concentrates misses on some nodes",
                    mean_hit_ratio=round(float(ratios.mean()), 2),
                    std_dev=round(std_dev, 2),
                    node_count=int(len(ratios)),
                )
            )
        findings.append(
            self.create_insight(
                "cache_hit_ratio_distribution",
                f"Hit ratio {ratios.min():.1f}% to {ratios.max():.1f}% across {len(ratios)} node(s)",
                mean=round(float(ratios.mean()), 2),
                std_dev=round(std_dev, 2),
                min=round(float(ratios.min()), 2),
                max=round(float(ratios.max()), 2),
            )
        )
        return findings
