"""Metric snapshot: named sub-results collected for one diagnosis."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional

import pandas as pd


@dataclass(frozen=True)
class CollectionScope:
    """Optional filters narrowing what a collector fetches.

    Attributes
    ----------
    database : str, optional
        Target database
    table : str, optional
        Target table (requires database)
    window_hours : int
        Look-back window for time-bounded queries
    """

    database: Optional[str] = None
    table: Optional[str] = None
    window_hours: int = 24

    def to_dict(self) -> Dict[str, Any]:
        return {
            "database": self.database,
            "table": self.table,
            "window_hours": self.window_hours,
        }


class MetricSnapshot:
    """Named sub-results (tables, counters, dicts) of one collection run.

    Parameters
    ----------
    domain : str
        Domain of the collector that produced the snapshot
    collected_at : datetime, optional
        Reference time for duration computations (defaults to now)
    scope : CollectionScope, optional
        Filters used during collection
    data : Dict[str, Any], optional
        Initial sub-results

    Example
    -------
    >>> snapshot = MetricSnapshot("storage", data={"backends": backends_df})
    >>> snapshot.frame("backends").shape
    (3, 12)
    >>> snapshot.frame("missing").empty
    True
    """

    def __init__(
        self,
        domain: str,
        collected_at: Optional[datetime] = None,
        scope: Optional[CollectionScope] = None,
        data: Optional[Dict[str, Any]] = None,
    ):
        self.domain = domain
        self.collected_at = collected_at or datetime.now()
        self.scope = scope or CollectionScope()
        self._data: Dict[str, Any] = dict(data or {})
        self.collection_errors: Dict[str, str] = {}

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._data[key] = value

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def keys(self) -> List[str]:
        return list(self._data.keys())

    def get(self, key: str, default: Any = None) -> Any:
        """Get a sub-result, or default when absent or None."""
        value = self._data.get(key)
        return default if value is None else value

    def frame(self, key: str) -> pd.DataFrame:
        """Get a tabular sub-result; absent or non-tabular keys give an empty frame."""
        value = self._data.get(key)
        if isinstance(value, pd.DataFrame):
            return value
        return pd.DataFrame()

    def record_error(self, key: str, error: BaseException) -> None:
        """Remember that a sub-query failed and fell back to its default."""
        self.collection_errors[key] = f"{type(error).__name__}: {error}"

    @property
    def is_empty(self) -> bool:
        """True when no sub-result carries any data."""
        for value in self._data.values():
            if isinstance(value, pd.DataFrame):
                if not value.empty:
                    return False
            elif value not in (None, {}, [], 0):
                return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly ``raw_data`` payload."""
        data: Dict[str, Any] = {}
        for key, value in self._data.items():
            if isinstance(value, pd.DataFrame):
                data[key] = value.to_dict(orient="records")
            else:
                data[key] = value
        return {
            "domain": self.domain,
            "collected_at": self.collected_at.isoformat(),
            "scope": self.scope.to_dict(),
            "data": data,
            "collection_errors": dict(self.collection_errors),
        }
