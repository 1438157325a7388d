"""Memory diagnosis dimensions.

Dimensions:
- node_memory: Per-node process memory bands
- query_memory: Memory held by individual running queries
- memory_skew: Spread of memory usage across nodes
"""

from typing import List

import numpy as np

from ...collection.snapshot import MetricSnapshot
from ...diagnosis.base import BaseDimension, Finding
from ...diagnosis.models import Severity
from ...diagnosis.registry import DimensionRegistry


@DimensionRegistry.register
class NodeMemoryDimension(BaseDimension):
    """Classify each node's memory usage."""

    dimension_id = "node_memory"
    domain = "memory"
    description = "Per-node memory usage"

    _IMPACT = {
        "memory_emergency": "Queries and loads are being cancelled with memory limit exceeded",
        "high_memory_usage": "Large queries are likely to fail; the node risks OOM",
        "elevated_memory_usage": "Little headroom for query spikes",
    }

    def check(self, snapshot: MetricSnapshot) -> List[Finding]:
        findings: List[Finding] = []
        for _, node in snapshot.frame("nodes").iterrows():
            usage = node["mem_used_pct"]
            band = self.classify(usage, "node_memory")
            if band is None:
                continue
            limit = node["mem_limit_gb"]
            findings.append(
                self.issue_from_band(
                    band,
                    message=f"Node {node['node']} memory usage at {usage:.1f}%",
                    impact=self._IMPACT.get(band.issue_type, ""),
                    subject=str(node["node"]),
                    mem_used_pct=round(float(usage), 2),
                    mem_limit_gb=None if np.isnan(limit) else round(float(limit), 2),
                )
            )
        return findings


@DimensionRegistry.register
class QueryMemoryDimension(BaseDimension):
    """Running queries holding an outsized amount of memory."""

    dimension_id = "query_memory"
    domain = "memory"
    description = "Per-query memory"

    def is_applicable(self, snapshot: MetricSnapshot) -> bool:
        return not snapshot.frame("query_memory").empty

    def check(self, snapshot: MetricSnapshot) -> List[Finding]:
        queries = snapshot.frame("query_memory")
        top = int(self.get_threshold("top_queries", 10))
        findings: List[Finding] = []
        for _, query in queries.head(top).iterrows():
            band = self.classify(query["memory_gb"], "query_memory_gb")
            if band is None:
                continue
            findings.append(
                self.issue_from_band(
                    band,
                    message=f"Query {query['query_id']} uses {query['memory_gb']:.1f} GB of memory",
                    impact="One query can starve the rest of the workload",
                    subject=str(query["query_id"]),
                    memory_gb=round(float(query["memory_gb"]), 2),
                    user=query["user"],
                    database=query["database"],
                )
            )
        return findings


@DimensionRegistry.register
class MemorySkewDimension(BaseDimension):
    """Standard deviation of memory usage across nodes."""

    dimension_id = "memory_skew"
    domain = "memory"
    description = "Memory usage skew across nodes"

    def check(self, snapshot: MetricSnapshot) -> List[Finding]:
        usage = snapshot.frame("nodes")
        if usage.empty:
            return []
        usage = usage["mem_used_pct"].dropna()
        if len(usage) < int(self.get_threshold("min_nodes_for_skew", 3)):
            return []

        std_dev = float(np.std(usage.values))
        findings: List[Finding] = []
        threshold = float(self.get_threshold("skew_std_dev_pct", 15))
        if std_dev > threshold:
            findings.append(
                self.create_issue(
                    "memory_usage_skew",
                    Severity.WARNING,
                    message=f"Memory usage differs strongly across nodes (std dev {std_dev:.1f} points)",
                    impact="Hot nodes hit memory limits while others idle",
                    std_dev=round(std_dev, 2),
                    max_pct=round(float(usage.max()), 2),
                    min_pct=round(float(usage.min()), 2),
                    node_count=int(len(usage)),
                )
            )
        findings.append(
            self.create_insight(
                "memory_distribution",
                f"Node memory usage {usage.min():.1f}% to {usage.max():.1f}% (mean {usage.mean():.1f}%)",
                mean_pct=round(float(usage.mean()), 2),
                std_dev=round(std_dev, 2),
            )
        )
        return findings
