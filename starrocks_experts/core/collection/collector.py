"""Fail-soft metric collection.

A collector is a fixed list of named queries. Each query is attempted
once; a failure (permission error, missing relation, version
incompatibility) is logged and replaced by the query's default value,
so one bad query never aborts the collection.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, TYPE_CHECKING
import logging
import time

import pandas as pd

from .snapshot import CollectionScope, MetricSnapshot

if TYPE_CHECKING:
    from ...config.ruleset import RuleSet
    from ...io.datasource import QueryHandle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NamedQuery:
    """One collection query.

    Attributes
    ----------
    key : str
        Snapshot key receiving the result
    statement : str
        SQL statement with ``:name`` bind parameters
    params : Mapping[str, Any]
        Bind parameter values
    default : Callable[[], Any]
        Factory for the value used when the query fails
    transform : Callable[[pd.DataFrame], Any], optional
        Post-processing of the raw rows (e.g. reduce to a counter dict)
    """

    key: str
    statement: str
    params: Mapping[str, Any] = field(default_factory=dict)
    default: Callable[[], Any] = pd.DataFrame
    transform: Optional[Callable[[pd.DataFrame], Any]] = None


class DataCollector(ABC):
    """Base class for per-expert collectors.

    Subclasses implement ``build_queries`` and may override ``derive`` to
    compute aggregates from the raw results.

    Parameters
    ----------
    rule_set : RuleSet
        Rule set of the owning expert (queries may embed thresholds)
    clock : Callable[[], datetime], optional
        Source of ``collected_at``; injectable for tests
    """

    domain: str = "general"

    def __init__(
        self,
        rule_set: "RuleSet",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.rule_set = rule_set
        self.clock = clock or datetime.now

    @abstractmethod
    def build_queries(self, scope: CollectionScope) -> List[NamedQuery]:
        """Return the named queries for this scope."""
        pass

    def derive(self, snapshot: MetricSnapshot) -> None:
        """Add derived sub-results computed from the raw ones (CPU only)."""
        return None

    def collect(
        self,
        handle: "QueryHandle",
        scope: Optional[CollectionScope] = None,
    ) -> MetricSnapshot:
        """Run every named query and return the snapshot.

        Parameters
        ----------
        handle : QueryHandle
            Scoped data source handle
        scope : CollectionScope, optional
            Target object and time window filters

        Returns
        -------
        MetricSnapshot
            One entry per query key, plus derived entries
        """
        scope = scope or CollectionScope()
        snapshot = MetricSnapshot(self.domain, collected_at=self.clock(), scope=scope)
        start_time = time.time()

        queries = self.build_queries(scope)
        for named in queries:
            snapshot[named.key] = self._run_query(handle, named, snapshot)

        try:
            self.derive(snapshot)
        except Exception as e:
            logger.warning("[%s] deriving aggregates failed: %s", self.domain, e)
            snapshot.record_error("derived", e)

        logger.debug(
            "[%s] collected %d queries (%d failed) in %.2fs",
            self.domain,
            len(queries),
            len(snapshot.collection_errors),
            time.time() - start_time,
        )
        return snapshot

    def _run_query(
        self,
        handle: "QueryHandle",
        named: NamedQuery,
        snapshot: MetricSnapshot,
    ) -> Any:
        try:
            result = handle.query(named.statement, dict(named.params) or None)
            if named.transform is not None:
                result = named.transform(result)
            return result
        except Exception as e:
            logger.warning("[%s] collection of '%s' failed: %s", self.domain, named.key, e)
            snapshot.record_error(named.key, e)
            return named.default()

    def describe(self) -> Dict[str, str]:
        """Statements issued for the default scope, keyed by snapshot key."""
        return {q.key: " ".join(q.statement.split()) for q in self.build_queries(CollectionScope())}
