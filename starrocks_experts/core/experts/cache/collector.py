"""Data cache metric collection for shared-data clusters.

Collected key: ``cache_metrics`` (information_schema.be_cache_metrics).
Derived key: ``cache_nodes`` with hit ratio and capacity usage per node.
"""

from typing import List

import numpy as np
import pandas as pd

from ...collection.collector import DataCollector, NamedQuery
from ...collection.parsing import column, numeric_column
from ...collection.snapshot import CollectionScope, MetricSnapshot

CACHE_NODE_COLUMNS = [
    "node",
    "hit_count",
    "miss_count",
    "requests",
    "hit_ratio",
    "capacity_bytes",
    "used_bytes",
    "usage_pct",
]


def _counts(df: pd.DataFrame, *names: str) -> pd.Series:
    series = numeric_column(df, *names)
    if series.empty:
        return pd.Series([0.0] * len(df), index=df.index)
    return series.fillna(0)


def cache_node_stats(metrics: pd.DataFrame) -> pd.DataFrame:
    """Hit ratio and capacity usage per node.

    Nodes without requests get a NaN hit ratio; nodes without a known
    capacity get a NaN usage.
    """
    if metrics is None or metrics.empty:
        return pd.DataFrame(columns=CACHE_NODE_COLUMNS)

    ids = column(metrics, "BE_ID", "NODE_ID")
    hits = _counts(metrics, "hit_count")
    misses = _counts(metrics, "miss_count")
    capacity = _counts(metrics, "disk_cache_capacity_bytes")
    used = _counts(metrics, "disk_cache_bytes")
    requests = hits + misses

    stats = pd.DataFrame({
        "node": ids.astype(str).values if ids is not None else [f"node-{i}" for i in range(len(metrics))],
        "hit_count": hits.values,
        "miss_count": misses.values,
        "requests": requests.values,
        "hit_ratio": np.where(requests > 0, hits / requests.where(requests > 0, 1) * 100, np.nan),
        "capacity_bytes": capacity.values,
        "used_bytes": used.values,
        "usage_pct": np.where(capacity > 0, used / capacity.where(capacity > 0, 1) * 100, np.nan),
    })
    return stats[CACHE_NODE_COLUMNS]


class CacheCollector(DataCollector):
    """Collect data cache metrics per compute node."""

    domain = "cache"

    def build_queries(self, scope: CollectionScope) -> List[NamedQuery]:
        return [
            NamedQuery(key="cache_metrics", statement="SELECT * FROM information_schema.be_cache_metrics"),
        ]

    def derive(self, snapshot: MetricSnapshot) -> None:
        snapshot["cache_nodes"] = cache_node_stats(snapshot.frame("cache_metrics"))
