"""Collection module: fail-soft collectors and metric snapshots."""

from .snapshot import CollectionScope, MetricSnapshot
from .collector import DataCollector, NamedQuery
from .backends import BACKENDS_QUERY, NODE_COLUMNS, normalize_backends
from .architecture import SHARED_DATA, SHARED_NOTHING, UNKNOWN, detect_run_mode
from .parsing import (
    column,
    numeric_column,
    parse_percent,
    parse_storage_size,
    row_value,
    to_float,
    to_int,
)

__all__ = [
    "CollectionScope",
    "MetricSnapshot",
    "DataCollector",
    "NamedQuery",
    "BACKENDS_QUERY",
    "NODE_COLUMNS",
    "normalize_backends",
    "SHARED_DATA",
    "SHARED_NOTHING",
    "UNKNOWN",
    "detect_run_mode",
    "column",
    "numeric_column",
    "parse_percent",
    "parse_storage_size",
    "row_value",
    "to_float",
    "to_int",
]
