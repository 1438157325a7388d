"""Runtime configuration for diagnosis runs.

Provides:
- DiagnosticsConfig: data source, expert scope, collection scope and
  rule set overrides, loadable from YAML

Example config file::

    url: mysql+pymysql://root@fe-host:9030
    expert_scope: [storage, compaction]
    max_workers: 4
    include_details: false
    window_hours: 24
    target:
      database: sales
      table: orders
    rulesets:
      storage: configs/storage_strict.yaml
    audit_log: logs/diagnostics.jsonl
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from ..core.collection.snapshot import CollectionScope
from ..errors import ConfigurationError
from .ruleset import RuleSet


@dataclass
class DiagnosticsConfig:
    """Configuration for single-expert and coordinated analyses.

    Attributes
    ----------
    url : str, optional
        SQLAlchemy URL of the cluster's FE query port
    expert_scope : List[str]
        Experts to run (empty = all registered experts)
    max_workers : int, optional
        Thread pool size for coordinated runs (None = one per expert)
    include_details : bool
        Attach raw collected data to expert results
    include_cross_analysis : bool
        Evaluate cross-module impact rules
    window_hours : int
        Time window for time-bounded collection queries
    database : str, optional
        Target database filter
    table : str, optional
        Target table filter
    ruleset_paths : Dict[str, Path]
        Per-domain rule set files overriding the builtins
    audit_log : Path, optional
        JSON-lines file receiving one record per analysis
    """

    url: Optional[str] = None
    expert_scope: List[str] = field(default_factory=list)
    max_workers: Optional[int] = None
    include_details: bool = False
    include_cross_analysis: bool = True
    window_hours: int = 24
    database: Optional[str] = None
    table: Optional[str] = None
    ruleset_paths: Dict[str, Path] = field(default_factory=dict)
    audit_log: Optional[Path] = None

    def __post_init__(self):
        if self.window_hours <= 0:
            raise ConfigurationError(f"window_hours must be positive, got {self.window_hours}")
        if self.max_workers is not None and self.max_workers <= 0:
            raise ConfigurationError(f"max_workers must be positive, got {self.max_workers}")
        if self.table and not self.database:
            raise ConfigurationError("A target table requires a target database")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DiagnosticsConfig":
        """Create from dictionary."""
        data = data or {}
        target = data.get("target") or {}
        audit_log = data.get("audit_log")
        return cls(
            url=data.get("url"),
            expert_scope=list(data.get("expert_scope") or []),
            max_workers=data.get("max_workers"),
            include_details=bool(data.get("include_details", False)),
            include_cross_analysis=bool(data.get("include_cross_analysis", True)),
            window_hours=int(data.get("window_hours", 24)),
            database=target.get("database"),
            table=target.get("table"),
            ruleset_paths={
                domain: Path(p) for domain, p in (data.get("rulesets") or {}).items()
            },
            audit_log=Path(audit_log) if audit_log else None,
        )

    @classmethod
    def from_yaml(cls, path: Path) -> "DiagnosticsConfig":
        """Load configuration from YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data)

    @classmethod
    def default(cls) -> "DiagnosticsConfig":
        """Create default configuration (all experts, builtin rule sets)."""
        return cls()

    def load_rulesets(self) -> Dict[str, RuleSet]:
        """Load the rule set overrides named in ``ruleset_paths``.

        Raises
        ------
        ConfigurationError
            If a file is malformed or declares a different domain
        """
        rulesets = {}
        for domain, path in self.ruleset_paths.items():
            rule_set = RuleSet.from_yaml(path)
            if rule_set.domain != domain:
                raise ConfigurationError(
                    f"Rule set file {path} declares domain '{rule_set.domain}', "
                    f"expected '{domain}'"
                )
            rulesets[domain] = rule_set
        return rulesets

    def collection_scope(self) -> CollectionScope:
        """Target filters handed to every collector."""
        return CollectionScope(
            database=self.database,
            table=self.table,
            window_hours=self.window_hours,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "url": self.url,
            "expert_scope": self.expert_scope,
            "max_workers": self.max_workers,
            "include_details": self.include_details,
            "include_cross_analysis": self.include_cross_analysis,
            "window_hours": self.window_hours,
            "target": {"database": self.database, "table": self.table},
            "rulesets": {d: str(p) for d, p in self.ruleset_paths.items()},
            "audit_log": str(self.audit_log) if self.audit_log else None,
        }
