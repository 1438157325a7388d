"""Unit tests for result export and audit logging."""

import json
import logging

import pandas as pd
import pytest
import yaml

from starrocks_experts.core.coordination import ExpertCoordinator
from starrocks_experts.core.experts import StorageExpert
from starrocks_experts.io import (
    audit_record,
    export_json,
    export_recommendations_csv,
    export_yaml,
    get_file_logger,
    log_yaml,
    write_audit,
)


@pytest.fixture
def storage_result(storage_emergency_source, clock):
    return StorageExpert(clock=clock).diagnose(storage_emergency_source, include_details=True)


@pytest.fixture
def analysis(cluster_source, clock):
    return ExpertCoordinator(clock=clock).perform_coordinated_analysis(
        cluster_source, expert_scope=["storage", "compaction"]
    )


class TestExport:
    """Tests for JSON, YAML and CSV export."""

    def test_json(self, storage_result, tmp_path):
        """Test the full payload with export metadata."""
        path = export_json(storage_result, tmp_path / "nested" / "storage.json")
        data = json.loads(path.read_text())
        assert data["expert"] == "storage"
        assert data["export_version"] == "1.0"
        assert "export_timestamp" in data
        assert data["raw_data"]["data"]["nodes"][0]["node"] == "10.0.0.1"

    def test_yaml_matches_json(self, analysis, tmp_path):
        """Test YAML carries the same content as JSON."""
        from_json = json.loads(export_json(analysis, tmp_path / "a.json").read_text())
        from_yaml = yaml.safe_load(export_yaml(analysis, tmp_path / "a.yaml").read_text())
        for key in ("comprehensive_assessment", "prioritized_recommendations", "expert_failures"):
            assert from_yaml[key] == from_json[key]
        assert list(from_yaml) == list(from_json)

    def test_recommendations_csv(self, analysis, tmp_path):
        """Test one row per prioritized recommendation."""
        path = export_recommendations_csv(analysis, tmp_path / "plan.csv")
        table = pd.read_csv(path)
        assert len(table) == len(analysis.prioritized_recommendations)
        assert table.loc[0, "priority"] == "IMMEDIATE"
        assert list(table.columns) == [
            "execution_order", "priority", "category", "title",
            "source_type", "source_expert", "n_actions", "risk_level",
        ]


class TestAuditRecords:
    """Tests for audit_record and write_audit."""

    def test_expert_record(self, storage_result):
        """Test the condensed expert record."""
        record = audit_record(storage_result)
        assert record["kind"] == "expert_result"
        assert record["expert"] == "storage"
        assert record["score"] == 75.0
        assert record["status"] == "CRITICAL"
        assert record["total_issues"] == 1

    def test_coordinated_record(self, analysis):
        """Test the condensed coordinated record."""
        record = audit_record(analysis)
        assert record["kind"] == "coordinated_analysis"
        assert record["overall_health_score"] == 22.5
        assert record["overall_status"] == "CRITICAL"
        assert record["experts_count"] == 2

    def test_json_lines(self, storage_result, tmp_path):
        """Test records are appended one per line."""
        path = tmp_path / "logs" / "audit.jsonl"
        write_audit(path, storage_result)
        write_audit(path, storage_result)
        lines = path.read_text().splitlines()
        assert len(lines) == 2
        assert json.loads(lines[1])["expert"] == "storage"

    def test_yaml_documents(self, storage_result, tmp_path):
        """Test .yaml audit logs hold YAML documents."""
        path = tmp_path / "audit.yaml"
        write_audit(path, storage_result)
        documents = [d for d in yaml.safe_load_all(path.read_text()) if d]
        assert documents[0]["kind"] == "expert_result"

    def test_logger_destination(self, storage_result, caplog):
        """Test records sent to a logger when no path is given."""
        logger = logging.getLogger("starrocks_experts.tests.audit")
        with caplog.at_level(logging.INFO, logger="starrocks_experts.tests.audit"):
            write_audit(None, storage_result, logger=logger)
        assert "kind: expert_result" in caplog.text

    def test_log_yaml_needs_a_destination(self):
        """Test log_yaml without path or logger."""
        with pytest.raises(ValueError):
            log_yaml(None, {"a": 1})


class TestFileLogger:
    """Tests for get_file_logger."""

    def test_writes_to_file(self, tmp_path):
        """Test messages reach the log file."""
        logger, path = get_file_logger("starrocks_experts.tests.file", tmp_path / "run.log", timestamped=False)
        try:
            logger.info("collected %d keys", 3)
            for handler in logger.handlers:
                handler.flush()
            assert path == tmp_path / "run.log"
            assert "collected 3 keys" in path.read_text()
        finally:
            for handler in list(logger.handlers):
                logger.removeHandler(handler)
                handler.close()

    def test_timestamped_name(self, tmp_path):
        """Test a run timestamp is added to the file name."""
        logger, path = get_file_logger("starrocks_experts.tests.stamped", tmp_path / "run.log")
        try:
            assert path.name.startswith("run_")
            assert path.suffix == ".log"
        finally:
            for handler in list(logger.handlers):
                logger.removeHandler(handler)
                handler.close()
