"""Versioned, read-only rule sets per diagnostic domain.

A RuleSet bundles the severity band tables, scalar thresholds and
scoring penalties of one domain (storage, compaction, ingestion, memory,
cache). Instances are frozen and deep-immutable, so one rule set can be
shared by reference across concurrently running experts.

Builtin rule sets ship as YAML under ``config/rulesets/``.

Example
-------
>>> from starrocks_experts.config import get_default_ruleset
>>> rules = get_default_ruleset("storage")
>>> rules.band("disk_usage").threshold("emergency")
95.0
>>> tuned = rules.with_overrides(thresholds={"free_space_minimum_gb": 20})
>>> tuned.get_threshold("free_space_minimum_gb")
20
"""

import copy
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

from ..errors import ConfigurationError
from .bands import BandTable

RULESETS_DIR = Path(__file__).parent / "rulesets"


def _freeze(value: Any) -> Any:
    """Recursively convert dicts and lists into read-only equivalents."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    return value


def _deep_merge(base: Dict[str, Any], overrides: Mapping) -> Dict[str, Any]:
    """Merge overrides into base in place; nested mappings merge key by key."""
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = copy.deepcopy(value)
    return base


@dataclass(frozen=True)
class ScoringPolicy:
    """Health score penalties for one domain.

    Attributes
    ----------
    critical_penalty : float
        Points subtracted per critical issue
    warning_penalty : float
        Points subtracted per warning
    info_penalty : float
        Points subtracted per informational issue
    type_penalties : Mapping[str, float]
        Per issue type overrides (e.g. emergency issues subtract more)
    """

    critical_penalty: float = 25.0
    warning_penalty: float = 10.0
    info_penalty: float = 5.0
    type_penalties: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self):
        for name in ("critical_penalty", "warning_penalty", "info_penalty"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"Scoring {name} must be >= 0")
        for issue_type, penalty in self.type_penalties.items():
            if penalty < 0:
                raise ConfigurationError(
                    f"Scoring penalty for '{issue_type}' must be >= 0, got {penalty}"
                )
        object.__setattr__(self, "type_penalties", MappingProxyType(dict(self.type_penalties)))

    def penalty_for(self, issue_type: str, severity: str) -> float:
        """Penalty for one issue of the given type and severity."""
        if issue_type in self.type_penalties:
            return self.type_penalties[issue_type]
        if severity == "critical":
            return self.critical_penalty
        if severity == "warning":
            return self.warning_penalty
        return self.info_penalty

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ScoringPolicy":
        """Build from the ``scoring`` section of a rule set file."""
        data = data or {}
        try:
            return cls(
                critical_penalty=float(data.get("critical_penalty", 25.0)),
                warning_penalty=float(data.get("warning_penalty", 10.0)),
                info_penalty=float(data.get("info_penalty", 5.0)),
                type_penalties={
                    str(k): float(v) for k, v in (data.get("type_penalties") or {}).items()
                },
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Malformed scoring section: {e}") from e

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "critical_penalty": self.critical_penalty,
            "warning_penalty": self.warning_penalty,
            "info_penalty": self.info_penalty,
            "type_penalties": dict(self.type_penalties),
        }


@dataclass(frozen=True)
class RuleSet:
    """Immutable thresholds and band tables for one domain.

    Attributes
    ----------
    domain : str
        Domain name (storage, compaction, ...)
    version : str
        Rule set version
    description : str
        Human-readable description
    bands : Mapping[str, BandTable]
        Severity band tables by metric name
    thresholds : Mapping[str, Any]
        Scalar thresholds and nested parameter groups
    scoring : ScoringPolicy
        Health score penalties
    """

    domain: str
    version: str
    description: str = ""
    bands: Mapping[str, BandTable] = field(default_factory=dict)
    thresholds: Mapping[str, Any] = field(default_factory=dict)
    scoring: ScoringPolicy = field(default_factory=ScoringPolicy)

    def __post_init__(self):
        if not self.domain:
            raise ConfigurationError("Rule set is missing 'domain'")
        if not self.version:
            raise ConfigurationError(f"Rule set '{self.domain}' is missing 'version'")
        for name, table in self.bands.items():
            if not isinstance(table, BandTable):
                raise ConfigurationError(
                    f"Rule set '{self.domain}': band '{name}' is not a BandTable"
                )
        object.__setattr__(self, "bands", MappingProxyType(dict(self.bands)))
        object.__setattr__(self, "thresholds", _freeze(dict(self.thresholds)))

    def band(self, name: str) -> BandTable:
        """Get a band table by name.

        Raises
        ------
        KeyError
            If the rule set defines no such table
        """
        try:
            return self.bands[name]
        except KeyError:
            raise KeyError(f"Rule set '{self.domain}' has no band table '{name}'") from None

    def get_threshold(self, name: str, default: Any = None) -> Any:
        """Get a threshold by name, with dotted paths for nested groups.

        Parameters
        ----------
        name : str
            Threshold name, e.g. "free_space_minimum_gb" or "thread_config.min_per_core"
        default : Any
            Value returned when the threshold is not defined

        Returns
        -------
        Any
            Threshold value
        """
        node: Any = self.thresholds
        for part in name.split("."):
            if not isinstance(node, Mapping) or part not in node:
                return default
            node = node[part]
        return node

    def validate_requirements(
        self,
        bands: List[str],
        thresholds: List[str],
    ) -> None:
        """Check that the tables and thresholds an expert relies on exist.

        Raises
        ------
        ConfigurationError
            If any required entry is missing
        """
        missing = [f"bands.{b}" for b in bands if b not in self.bands]
        missing += [
            f"thresholds.{t}" for t in thresholds if self.get_threshold(t) is None
        ]
        if missing:
            raise ConfigurationError(
                f"Rule set '{self.domain}' v{self.version} is missing: {', '.join(missing)}"
            )

    def with_overrides(
        self,
        thresholds: Optional[Dict[str, Any]] = None,
        scoring: Optional[Dict[str, Any]] = None,
        version: Optional[str] = None,
    ) -> "RuleSet":
        """Return a new rule set with thresholds and scoring merged in.

        Nested groups merge key by key, so overriding
        ``{"thread_config": {"min_per_core": 0.5}}`` keeps the other
        ``thread_config`` entries.
        """
        data = self.to_dict()
        if thresholds:
            _deep_merge(data["thresholds"], thresholds)
        if scoring:
            _deep_merge(data["scoring"], scoring)
        if version:
            data["version"] = version
        return RuleSet.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RuleSet":
        """Build a rule set from a parsed YAML mapping.

        Raises
        ------
        ConfigurationError
            If the mapping is malformed
        """
        if not isinstance(data, dict):
            raise ConfigurationError("Rule set must be a mapping")

        thresholds = data.get("thresholds") or {}
        if not isinstance(thresholds, dict):
            raise ConfigurationError("Rule set 'thresholds' must be a mapping")

        bands_data = data.get("bands") or {}
        if not isinstance(bands_data, dict):
            raise ConfigurationError("Rule set 'bands' must be a mapping")

        return cls(
            domain=str(data.get("domain") or ""),
            version=str(data.get("version") or ""),
            description=str(data.get("description") or ""),
            bands={name: BandTable.from_dict(name, raw) for name, raw in bands_data.items()},
            thresholds=thresholds,
            scoring=ScoringPolicy.from_dict(data.get("scoring")),
        )

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "RuleSet":
        """Load a rule set from a YAML file.

        Raises
        ------
        ConfigurationError
            If the file cannot be parsed or is malformed
        """
        path = Path(path)
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot load rule set from {path}: {e}") from e
        return cls.from_dict(data)

    @classmethod
    def default(cls, domain: str) -> "RuleSet":
        """Builtin rule set of a domain (see get_default_ruleset)."""
        return get_default_ruleset(domain)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain (mutable) dictionary."""
        return {
            "domain": self.domain,
            "version": self.version,
            "description": self.description,
            "bands": {name: table.to_dict() for name, table in self.bands.items()},
            "thresholds": _thaw(self.thresholds),
            "scoring": self.scoring.to_dict(),
        }

    def to_yaml(self) -> str:
        """Serialize to YAML text."""
        return yaml.safe_dump(self.to_dict(), sort_keys=False)


# =============================================================================
# Registry
# =============================================================================

RULESET_REGISTRY: Dict[str, RuleSet] = {}

_BUILTINS_LOADED = False


def register_ruleset(rule_set: RuleSet) -> None:
    """Register a rule set as the default for its domain."""
    RULESET_REGISTRY[rule_set.domain.lower()] = rule_set


def get_default_ruleset(domain: str) -> RuleSet:
    """Get the registered rule set for a domain.

    Raises
    ------
    ConfigurationError
        If no rule set is registered for the domain
    """
    _ensure_builtins_loaded()

    key = domain.lower()
    if key not in RULESET_REGISTRY:
        raise ConfigurationError(
            f"No rule set for domain '{domain}'. "
            f"Available: {sorted(RULESET_REGISTRY.keys())}"
        )
    return RULESET_REGISTRY[key]


def list_available_rulesets() -> List[str]:
    """List domains with a registered rule set."""
    _ensure_builtins_loaded()
    return sorted(RULESET_REGISTRY.keys())


def _ensure_builtins_loaded() -> None:
    """Ensure builtin rule sets are loaded."""
    global _BUILTINS_LOADED
    if _BUILTINS_LOADED:
        return

    _load_builtin_rulesets()
    _BUILTINS_LOADED = True


def _load_builtin_rulesets() -> None:
    """Load builtin rule sets from config/rulesets/*.yaml."""
    for yaml_path in sorted(RULESETS_DIR.glob("*.yaml")):
        rule_set = RuleSet.from_yaml(yaml_path)
        # Explicit registrations win over builtins
        RULESET_REGISTRY.setdefault(rule_set.domain.lower(), rule_set)
