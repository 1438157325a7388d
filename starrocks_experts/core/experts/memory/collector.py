"""Memory metric collection.

Collected keys: ``backends``, ``compute_nodes``, ``current_queries``.
Derived keys: ``nodes`` (normalized, alive only) and ``query_memory``
(queries with their memory in GB, largest first).
"""

from typing import List

import numpy as np
import pandas as pd

from ...collection.backends import BACKENDS_QUERY, normalize_backends
from ...collection.collector import DataCollector, NamedQuery
from ...collection.parsing import column, parse_storage_size, to_float
from ...collection.snapshot import CollectionScope, MetricSnapshot

_BYTES_IN_GB = 1024.0 ** 3


def query_memory_gb(queries: pd.DataFrame) -> pd.Series:
    """Memory per query in GB from SHOW PROC '/current_queries'.

    ``MemoryUsageBytes`` holds raw byte counts on some versions and
    human-readable sizes ("1.2 GB") on others.
    """
    raw = column(queries, "MemoryUsageBytes", "MemoryUsage", "MemUsage")
    if raw is None:
        return pd.Series([np.nan] * len(queries), index=queries.index, dtype=float)

    def convert(value):
        if isinstance(value, str) and not value.strip().replace(".", "", 1).isdigit():
            size = parse_storage_size(value)
            return np.nan if size is None else size
        number = to_float(value)
        return np.nan if number is None else number / _BYTES_IN_GB

    return raw.map(convert).astype(float)


class MemoryCollector(DataCollector):
    """Collect node memory usage and running query memory."""

    domain = "memory"

    def build_queries(self, scope: CollectionScope) -> List[NamedQuery]:
        return [
            NamedQuery(key="backends", statement=BACKENDS_QUERY),
            NamedQuery(key="compute_nodes", statement="SHOW COMPUTE NODES"),
            NamedQuery(key="current_queries", statement="SHOW PROC '/current_queries'"),
        ]

    def derive(self, snapshot: MetricSnapshot) -> None:
        frames = [
            frame for frame in (
                normalize_backends(snapshot.frame("backends")),
                normalize_backends(snapshot.frame("compute_nodes")),
            )
            if not frame.empty
        ]
        nodes = pd.concat(frames, ignore_index=True) if frames else normalize_backends(pd.DataFrame())
        snapshot["nodes"] = nodes[nodes["alive"].astype(bool)].reset_index(drop=True)

        queries = snapshot.frame("current_queries")
        if queries.empty:
            snapshot["query_memory"] = pd.DataFrame(columns=["query_id", "user", "database", "memory_gb"])
            return

        ids = column(queries, "QueryId", "query_id")
        users = column(queries, "User")
        databases = column(queries, "Database", "Db")
        frame = pd.DataFrame({
            "query_id": ids.astype(str).values if ids is not None else [str(i) for i in range(len(queries))],
            "user": users.astype(str).values if users is not None else [""] * len(queries),
            "database": databases.astype(str).values if databases is not None else [""] * len(queries),
            "memory_gb": query_memory_gb(queries).values,
        })
        snapshot["query_memory"] = (
            frame.dropna(subset=["memory_gb"])
            .sort_values("memory_gb", ascending=False, kind="mergesort")
            .reset_index(drop=True)
        )
