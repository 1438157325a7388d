"""Storage metric collection: backend disks, tablets and large partitions."""

from typing import List

import pandas as pd

from ...collection.backends import BACKENDS_QUERY, normalize_backends
from ...collection.collector import DataCollector, NamedQuery
from ...collection.parsing import numeric_column
from ...collection.snapshot import CollectionScope, MetricSnapshot

BYTES_PER_GB = 1024 ** 3


class StorageCollector(DataCollector):
    """Collect backend capacity and partition sizes."""

    domain = "storage"

    def build_queries(self, scope: CollectionScope) -> List[NamedQuery]:
        limit = int(self.rule_set.get_threshold("large_partition_limit", 50))

        partitions_sql = """
            SELECT DB_NAME, TABLE_NAME, PARTITION_NAME, ROW_COUNT, STORAGE_SIZE
            FROM information_schema.partitions_meta
        """
        params = {}
        if scope.database:
            partitions_sql += " WHERE DB_NAME = :database"
            params["database"] = scope.database
            if scope.table:
                partitions_sql += " AND TABLE_NAME = :table"
                params["table"] = scope.table
        partitions_sql += f" ORDER BY STORAGE_SIZE DESC LIMIT {limit}"

        return [
            NamedQuery(key="backends", statement=BACKENDS_QUERY),
            NamedQuery(key="largest_partitions", statement=partitions_sql, params=params),
        ]

    def derive(self, snapshot: MetricSnapshot) -> None:
        nodes = normalize_backends(snapshot.frame("backends"))
        snapshot["nodes"] = nodes
        snapshot["tablet_totals"] = {
            "total_tablets": int(nodes["tablet_num"].sum()) if not nodes.empty else 0,
            "error_tablets": int(nodes["err_tablet_num"].sum()) if not nodes.empty else 0,
        }

        partitions = snapshot.frame("largest_partitions")
        if not partitions.empty:
            partitions = partitions.copy()
            sizes = numeric_column(partitions, "STORAGE_SIZE")
            partitions["storage_gb"] = (
                sizes.values / BYTES_PER_GB if len(sizes) == len(partitions) else float("nan")
            )
        else:
            partitions = pd.DataFrame(columns=["DB_NAME", "TABLE_NAME", "PARTITION_NAME", "storage_gb"])
        snapshot["partition_sizes"] = partitions
