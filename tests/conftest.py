"""Pytest configuration and shared fixtures for StarRocks-Experts tests."""

import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest
import pandas as pd

# Add package to path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from tests.fixtures import (
    FakeDataSource,
    backends_frame,
    compute_nodes_frame,
    run_mode_frame,
)

FIXED_NOW = datetime(2025, 1, 15, 12, 0, 0)
GB = 1024 ** 3


# ============================================================================
# Clock
# ============================================================================


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock():
    """Deterministic collection clock."""
    return lambda: FIXED_NOW


# ============================================================================
# Storage
# ============================================================================


@pytest.fixture
def storage_emergency_source() -> FakeDataSource:
    """One backend at 96% disk usage, everything else normal."""
    return FakeDataSource({
        "SHOW BACKENDS": backends_frame({"MaxDiskUsedPct": "96.00 %", "AvailCapacity": "40.000 GB"}),
    })


@pytest.fixture
def storage_mixed_source() -> FakeDataSource:
    """Three backends: one near full, one with error tablets, data imbalance."""
    return FakeDataSource({
        "SHOW BACKENDS": backends_frame(
            {"MaxDiskUsedPct": "91.50 %", "AvailCapacity": "5.000 GB", "DataUsedCapacity": "900.000 GB"},
            {"ErrTabletNum": "3", "DataUsedCapacity": "300.000 GB"},
            {"DataUsedCapacity": "300.000 GB"},
        ),
        "partitions_meta": pd.DataFrame({
            "DB_NAME": ["sales", "sales"],
            "TABLE_NAME": ["orders", "orders"],
            "PARTITION_NAME": ["p20250101", "p20250102"],
            "ROW_COUNT": [100000000, 500000],
            "STORAGE_SIZE": [25 * GB, 2 * GB],
        }),
    })


# ============================================================================
# Compaction
# ============================================================================


def compaction_responses(run_mode: str = "shared_data") -> dict:
    return {
        "'run_mode'": run_mode_frame(run_mode),
        "partitions_meta": pd.DataFrame({
            "DB_NAME": ["sales", "sales", "logs"],
            "TABLE_NAME": ["orders", "items", "events"],
            "PARTITION_NAME": ["p1", "p2", "p3"],
            "MAX_CS": [1500.0, 600.0, 150.0],
            "AVG_CS": [800.0, 300.0, 90.0],
            "P50_CS": [700.0, 250.0, 80.0],
            "ROW_COUNT": [1000, 1000, 1000],
            "STORAGE_SIZE": [GB, GB, GB],
        }),
        "be_configs": pd.DataFrame({
            "BE_ID": ["10001"],
            "NAME": ["compact_threads"],
            "VALUE": ["2"],
        }),
        "lake_compaction_max_tasks": pd.DataFrame({
            "Key": ["lake_compaction_max_tasks"],
            "Value": ["-1"],
        }),
        "SHOW COMPUTE NODES": compute_nodes_frame({"CpuCores": "16"}),
    }


@pytest.fixture
def compaction_source() -> FakeDataSource:
    """Shared-data cluster with one partition in each score band and too few threads."""
    return FakeDataSource(compaction_responses())


# ============================================================================
# Ingestion
# ============================================================================


@pytest.fixture
def ingestion_source() -> FakeDataSource:
    """30% failed loads, a paused routine load, a queue build-up and recurring timeouts."""
    active = pd.DataFrame({
        "JOB_ID": list(range(1, 9)),
        "LABEL": [f"label_{i}" for i in range(1, 9)],
        "DB_NAME": ["sales"] * 8,
        "TABLE_NAME": ["orders"] * 8,
        "STATE": ["PENDING"] * 7 + ["LOADING"],
        "TYPE": ["BROKER"] * 8,
        "CREATE_TIME": [FIXED_NOW - timedelta(hours=6)] * 8,
        "LOAD_START_TIME": [None] * 7 + [FIXED_NOW - timedelta(hours=5)],
    })
    failed = pd.DataFrame({
        "JOB_ID": list(range(100, 106)),
        "LABEL": [f"failed_{i}" for i in range(6)],
        "DB_NAME": ["sales"] * 6,
        "TABLE_NAME": ["orders"] * 6,
        "TYPE": ["STREAM"] * 6,
        "ERROR_MSG": ["type:LOAD_RUN_FAIL; msg:timeout by txn manager"] * 6,
        "CREATE_TIME": [FIXED_NOW - timedelta(hours=1)] * 6,
    })
    return FakeDataSource({
        "AS total_jobs": pd.DataFrame({
            "total_jobs": [50],
            "finished_jobs": [35],
            "cancelled_jobs": [15],
            "avg_load_seconds": [120.0],
        }),
        "STATE IN ('PENDING'": active,
        "STATE = 'CANCELLED' AND": failed,
        "ROUTINE LOAD": pd.DataFrame({
            "Id": ["12001"],
            "Name": ["orders_kafka"],
            "DbName": ["sales"],
            "TableName": ["orders"],
            "State": ["PAUSED"],
            "ReasonOfStateChanged": ["Kafka offset out of range"],
        }),
        "GROUP BY DB_NAME": pd.DataFrame({
            "DB_NAME": ["sales"],
            "TABLE_NAME": ["orders"],
            "load_count": [50],
            "success_count": [35],
            "failed_count": [15],
        }),
    })


# ============================================================================
# Memory
# ============================================================================


@pytest.fixture
def memory_source() -> FakeDataSource:
    """One node at 96% memory, skewed usage, one 60 GB query."""
    return FakeDataSource({
        "SHOW BACKENDS": backends_frame(
            {"MemUsedPct": "96.00 %"},
            {"MemUsedPct": "50.00 %"},
            {"MemUsedPct": "40.00 %"},
        ),
        "current_queries": pd.DataFrame({
            "QueryId": ["q-big", "q-small"],
            "User": ["etl", "analyst"],
            "Database": ["sales", "sales"],
            "MemoryUsageBytes": [60 * GB, GB],
        }),
    })


# ============================================================================
# Cache
# ============================================================================


@pytest.fixture
def cache_source() -> FakeDataSource:
    """Two compute nodes: one with a 20% hit ratio and a 97% full cache."""
    return FakeDataSource({
        "'run_mode'": run_mode_frame("shared_data"),
        "be_cache_metrics": pd.DataFrame({
            "BE_ID": ["10001", "10002"],
            "hit_count": [200, 900],
            "miss_count": [800, 100],
            "disk_cache_capacity_bytes": [100 * GB, 100 * GB],
            "disk_cache_bytes": [97 * GB, 50 * GB],
        }),
    })


# ============================================================================
# Cluster-wide
# ============================================================================


@pytest.fixture
def cluster_source() -> FakeDataSource:
    """Shared-data cluster with a 96% full backend and the compaction backlog."""
    responses = compaction_responses()
    responses["SHOW BACKENDS"] = backends_frame({"MaxDiskUsedPct": "96.00 %", "AvailCapacity": "40.000 GB"})
    return FakeDataSource(responses)


@pytest.fixture
def empty_source() -> FakeDataSource:
    """Reachable cluster whose every query returns no rows (shared-data)."""
    return FakeDataSource({"'run_mode'": run_mode_frame("shared_data")})
