"""Normalization of ``SHOW BACKENDS`` / ``SHOW COMPUTE NODES`` rows.

Several experts read the node list; this turns the raw, string-typed
SHOW output into one numeric frame with stable column names.
"""

import pandas as pd

from .parsing import numeric_column, parse_storage_size, column

NODE_COLUMNS = [
    "node",
    "backend_id",
    "alive",
    "disk_used_pct",
    "avail_gb",
    "total_gb",
    "data_used_gb",
    "tablet_num",
    "err_tablet_num",
    "mem_used_pct",
    "mem_limit_gb",
    "cpu_cores",
]

BACKENDS_QUERY = "SHOW BACKENDS"


def _sizes(df: pd.DataFrame, *names: str) -> pd.Series:
    series = column(df, *names)
    if series is None:
        return pd.Series([float("nan")] * len(df), index=df.index, dtype=float)
    return series.map(lambda v: parse_storage_size(v)).astype(float)


def _numbers(df: pd.DataFrame, *names: str) -> pd.Series:
    series = numeric_column(df, *names)
    if series.empty and len(df):
        return pd.Series([float("nan")] * len(df), index=df.index, dtype=float)
    return series


def normalize_backends(raw: pd.DataFrame) -> pd.DataFrame:
    """Normalize SHOW BACKENDS output.

    Parameters
    ----------
    raw : pd.DataFrame
        Raw rows (IP, Alive, MaxDiskUsedPct "85.2 %", AvailCapacity "1.2 TB", ...)

    Returns
    -------
    pd.DataFrame
        Columns of NODE_COLUMNS; sizes in GB, percentages as floats.
        Empty input gives an empty frame with these columns.
    """
    if raw is None or raw.empty:
        return pd.DataFrame(columns=NODE_COLUMNS)

    ip = column(raw, "IP", "Host")
    node = ip.astype(str) if ip is not None else pd.Series(
        [f"node-{i}" for i in range(len(raw))], index=raw.index
    )
    backend_id = column(raw, "BackendId", "ComputeNodeId")
    alive = column(raw, "Alive")

    nodes = pd.DataFrame({
        "node": node.values,
        "backend_id": backend_id.astype(str).values if backend_id is not None else node.values,
        "alive": (
            alive.astype(str).str.lower().isin(["true", "1"]).values
            if alive is not None else [True] * len(raw)
        ),
        "disk_used_pct": _numbers(raw, "MaxDiskUsedPct", "UsedPct").values,
        "avail_gb": _sizes(raw, "AvailCapacity").values,
        "total_gb": _sizes(raw, "TotalCapacity", "DataTotalCapacity").values,
        "data_used_gb": _sizes(raw, "DataUsedCapacity").values,
        "tablet_num": _numbers(raw, "TabletNum").fillna(0).values,
        "err_tablet_num": _numbers(raw, "ErrTabletNum").fillna(0).values,
        "mem_used_pct": _numbers(raw, "MemUsedPct").values,
        "mem_limit_gb": _sizes(raw, "MemLimit").values,
        "cpu_cores": _numbers(raw, "CpuCores").values,
    })
    return nodes[NODE_COLUMNS]
