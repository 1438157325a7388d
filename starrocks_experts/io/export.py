"""Export functions for diagnosis results.

Provides:
- export_json: Full structured output
- export_yaml: Same payload as YAML
- export_recommendations_csv: Flattened prioritized recommendations

Rendering is a pure projection of ``to_dict()``; nothing here feeds back
into diagnosis.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict

import pandas as pd
import yaml

EXPORT_VERSION = "1.0"


def _payload(result: Any) -> Dict[str, Any]:
    data = result.to_dict()
    data["export_timestamp"] = datetime.now().isoformat()
    data["export_version"] = EXPORT_VERSION
    return data


def export_json(result: Any, output_path: Path) -> Path:
    """Export an ExpertResult or CoordinatedAnalysis to JSON.

    Parameters
    ----------
    result : ExpertResult or CoordinatedAnalysis
        Result to export
    output_path : Path
        Output file path

    Returns
    -------
    Path
        Path to created file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w") as f:
        json.dump(_payload(result), f, indent=2, default=str)

    return output_path


def export_yaml(result: Any, output_path: Path) -> Path:
    """Export an ExpertResult or CoordinatedAnalysis to YAML."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    # Round-trip through JSON so numpy scalars and timestamps become plain types
    data = json.loads(json.dumps(_payload(result), default=str))
    with open(output_path, "w") as f:
        yaml.safe_dump(data, f, sort_keys=False)

    return output_path


def export_recommendations_csv(analysis: Any, output_path: Path) -> Path:
    """Export prioritized recommendations as a flat table.

    Parameters
    ----------
    analysis : CoordinatedAnalysis
        Coordinated analysis result
    output_path : Path
        Output file path

    Returns
    -------
    Path
        Path to created file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    rows = []
    for rec in analysis.to_dict()["prioritized_recommendations"]:
        rows.append({
            "execution_order": rec["execution_order"],
            "priority": rec["priority"],
            "category": rec["category"],
            "title": rec["title"],
            "source_type": rec["source_type"],
            "source_expert": rec.get("source_expert"),
            "n_actions": len(rec.get("actions", [])),
            "risk_level": rec.get("risk_level"),
        })

    columns = [
        "execution_order", "priority", "category", "title",
        "source_type", "source_expert", "n_actions", "risk_level",
    ]
    pd.DataFrame(rows, columns=columns).to_csv(output_path, index=False)
    return output_path
