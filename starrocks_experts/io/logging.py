"""Logging utilities for StarRocks-Experts.

Provides console setup for the CLI, timestamped file logging and
structured audit records (JSON lines, YAML documents).
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Tuple, Union

import yaml

PathLike = Union[str, Path]

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_console_logging(verbose: bool = False, debug: bool = False) -> logging.Logger:
    """Configure root logging for command-line runs.

    Parameters
    ----------
    verbose : bool
        Log at INFO level.
    debug : bool
        Log at DEBUG level (wins over verbose).

    Returns
    -------
    logging.Logger
        The package logger.
    """
    level = logging.DEBUG if debug else (logging.INFO if verbose else logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    return logging.getLogger("starrocks_experts")


def get_timestamped_log_path(log_path: PathLike) -> Path:
    """Insert a run timestamp into a log file name.

    Example: diagnostics.log -> diagnostics_20251209_080530.log
    """
    log_path = Path(log_path)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    suffix = log_path.suffix or ".log"
    return log_path.parent / f"{log_path.stem}_{timestamp}{suffix}"


def get_file_logger(
    name: str,
    log_path: PathLike,
    level: int = logging.INFO,
    timestamped: bool = True,
) -> Tuple[logging.Logger, Path]:
    """Return a logger writing to its own file.

    Parameters
    ----------
    name : str
        Logger name, e.g. "starrocks_experts.core.coordination".
    log_path : PathLike
        Base path for the log file.
    level : int
        Logging level (default: INFO).
    timestamped : bool
        If True, add a timestamp to the file name to keep previous runs.

    Returns
    -------
    Tuple[logging.Logger, Path]
        The logger and the file it writes to.
    """
    actual_path = get_timestamped_log_path(log_path) if timestamped else Path(log_path)
    actual_path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        if isinstance(handler, logging.FileHandler):
            logger.removeHandler(handler)
            handler.close()
    handler = logging.FileHandler(actual_path, mode="a", encoding="utf-8")
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)
    return logger, actual_path


def _prepare_log_destination(log_path: PathLike) -> Path:
    path = Path(log_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def log_json(log_path: PathLike, record: dict[str, Any]) -> None:
    """Append one JSON line to log_path."""
    path = _prepare_log_destination(log_path)
    with path.open("a", encoding="utf-8") as handle:
        handle.write(json.dumps(record, default=str))
        handle.write("\n")


def log_yaml(
    log_path: PathLike | None,
    record: dict[str, Any],
    *,
    logger: logging.Logger | None = None,
) -> None:
    """Append a YAML document to log_path, or emit it through logger."""
    yaml_text = yaml.safe_dump(record, sort_keys=False, default_flow_style=False).rstrip("\n")
    message = f"{yaml_text}\n---"
    if logger is not None:
        logger.info("%s", message)
        return

    if log_path is None:
        raise ValueError("log_yaml requires log_path when no logger is given")
    path = _prepare_log_destination(log_path)
    with path.open("a", encoding="utf-8") as handle:
        handle.write(message)
        handle.write("\n")


def audit_record(result: Any) -> dict[str, Any]:
    """Condense an ExpertResult or CoordinatedAnalysis into an audit record.

    Only health and counts are kept; full payloads go through io.export.
    """
    data = result.to_dict()
    record: dict[str, Any] = {"logged_at": datetime.now().isoformat()}
    if "comprehensive_assessment" in data:
        assessment = data["comprehensive_assessment"]
        record.update(
            kind="coordinated_analysis",
            overall_health_score=assessment.get("overall_health_score"),
            health_level=assessment.get("health_level"),
            overall_status=assessment.get("overall_status"),
            **data.get("analysis_metadata", {}),
        )
    else:
        health = data.get("health", {})
        record.update(
            kind="expert_result",
            expert=data.get("expert"),
            score=health.get("score"),
            level=health.get("level"),
            status=health.get("status"),
            total_issues=data.get("diagnosis_results", {}).get("total_issues"),
        )
    return record


def write_audit(
    log_path: PathLike | None,
    result: Any,
    *,
    logger: logging.Logger | None = None,
) -> dict[str, Any]:
    """Append the audit record of result to log_path.

    ``.yaml``/``.yml`` files get YAML documents, anything else JSON lines.
    Without log_path the record goes to logger as YAML.
    """
    record = audit_record(result)
    if log_path is None:
        log_yaml(None, record, logger=logger)
    elif Path(log_path).suffix.lower() in (".yaml", ".yml"):
        log_yaml(log_path, record)
    else:
        log_json(log_path, record)
    return record
