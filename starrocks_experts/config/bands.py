"""Ordered severity band tables.

A band table replaces nested threshold ladders: bands are listed from
most to least severe and a single routine returns the first band the
value falls into.

Example
-------
>>> table = BandTable.from_dict("disk_usage", {
...     "direction": "above",
...     "bands": [
...         {"name": "emergency", "threshold": 95, "severity": "critical",
...          "issue_type": "disk_emergency"},
...         {"name": "warning", "threshold": 85, "severity": "warning",
...          "issue_type": "disk_warning"},
...     ],
... })
>>> classify_by_descending_threshold(96.0, table).issue_type
'disk_emergency'
>>> classify_by_descending_threshold(50.0, table) is None
True
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from ..errors import ConfigurationError

VALID_SEVERITIES = ("critical", "warning", "info")
VALID_DIRECTIONS = ("above", "below")
VALID_URGENCIES = ("IMMEDIATE", "WITHIN_HOURS", "WITHIN_DAYS", "WITHIN_WEEKS")


@dataclass(frozen=True)
class Band:
    """One severity band.

    Attributes
    ----------
    name : str
        Band name (emergency, critical, warning, ...)
    threshold : float
        Boundary value of the band
    severity : str
        Issue severity produced by this band
    issue_type : str
        Issue type produced by this band
    urgency : str, optional
        Urgency attached to produced issues
    """

    name: str
    threshold: float
    severity: str
    issue_type: str
    urgency: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        data = {
            "name": self.name,
            "threshold": self.threshold,
            "severity": self.severity,
            "issue_type": self.issue_type,
        }
        if self.urgency:
            data["urgency"] = self.urgency
        return data


@dataclass(frozen=True)
class BandTable:
    """Bands ordered from most to least severe.

    Attributes
    ----------
    name : str
        Table name (metric it classifies)
    direction : str
        "above": value >= threshold matches (usage-like metrics).
        "below": value < threshold matches (ratio-like metrics).
    bands : Tuple[Band, ...]
        Bands, most severe first
    """

    name: str
    direction: str
    bands: Tuple[Band, ...]

    def __post_init__(self):
        if self.direction not in VALID_DIRECTIONS:
            raise ConfigurationError(
                f"Band table '{self.name}': direction must be one of "
                f"{VALID_DIRECTIONS}, got '{self.direction}'"
            )
        if not self.bands:
            raise ConfigurationError(f"Band table '{self.name}' has no bands")

        for band in self.bands:
            if band.severity not in VALID_SEVERITIES:
                raise ConfigurationError(
                    f"Band '{self.name}.{band.name}': unknown severity '{band.severity}'"
                )
            if band.urgency is not None and band.urgency not in VALID_URGENCIES:
                raise ConfigurationError(
                    f"Band '{self.name}.{band.name}': unknown urgency '{band.urgency}'"
                )

        # Most severe first: thresholds fall for "above", rise for "below"
        thresholds = [b.threshold for b in self.bands]
        for prev, cur in zip(thresholds, thresholds[1:]):
            if self.direction == "above" and cur > prev:
                raise ConfigurationError(
                    f"Band table '{self.name}' is not ordered from most to least severe: "
                    f"{thresholds}"
                )
            if self.direction == "below" and cur < prev:
                raise ConfigurationError(
                    f"Band table '{self.name}' is not ordered from most to least severe: "
                    f"{thresholds}"
                )

    def get_band(self, name: str) -> Optional[Band]:
        """Get a band by name."""
        for band in self.bands:
            if band.name == name:
                return band
        return None

    def threshold(self, name: str) -> float:
        """Get the threshold of a named band.

        Raises
        ------
        KeyError
            If the band is not defined
        """
        band = self.get_band(name)
        if band is None:
            raise KeyError(f"Band table '{self.name}' has no band '{name}'")
        return band.threshold

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "BandTable":
        """Build a band table from its YAML mapping.

        Raises
        ------
        ConfigurationError
            If a band is missing a required key or has a non-numeric threshold
        """
        if not isinstance(data, dict):
            raise ConfigurationError(f"Band table '{name}' must be a mapping")

        bands = []
        for raw in data.get("bands") or []:
            try:
                bands.append(
                    Band(
                        name=str(raw["name"]),
                        threshold=float(raw["threshold"]),
                        severity=str(raw["severity"]),
                        issue_type=str(raw["issue_type"]),
                        urgency=raw.get("urgency"),
                    )
                )
            except (KeyError, TypeError, ValueError) as e:
                raise ConfigurationError(
                    f"Band table '{name}': malformed band {raw!r} ({e})"
                ) from e

        return cls(
            name=name,
            direction=str(data.get("direction", "above")),
            bands=tuple(bands),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "direction": self.direction,
            "bands": [b.to_dict() for b in self.bands],
        }


def classify_by_descending_threshold(value: Any, table: BandTable) -> Optional[Band]:
    """Return the first (most severe) band matching value.

    Parameters
    ----------
    value : float
        Observed metric value. None and NaN never match.
    table : BandTable
        Band table to evaluate

    Returns
    -------
    Band or None
        Matching band, or None when the value is in the normal range
    """
    if value is None:
        return None
    try:
        value = float(value)
    except (TypeError, ValueError):
        return None
    if value != value:  # NaN
        return None

    for band in table.bands:
        if table.direction == "above" and value >= band.threshold:
            return band
        if table.direction == "below" and value < band.threshold:
            return band
    return None
