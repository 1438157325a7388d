"""Test fixtures for StarRocks-Experts.

Provides an in-memory data source and builders for the result sets the
collectors read.
"""

from .fake_datasource import (
    FakeDataSource,
    FakeHandle,
    backends_frame,
    compute_nodes_frame,
    run_mode_frame,
)

__all__ = [
    "FakeDataSource",
    "FakeHandle",
    "backends_frame",
    "compute_nodes_frame",
    "run_mode_frame",
]
