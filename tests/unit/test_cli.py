"""Unit tests for the command-line interface."""

import importlib
import json

import pandas as pd
import pytest
import yaml
from click.testing import CliRunner

from starrocks_experts.cli import cli
from starrocks_experts.config import get_default_ruleset


@pytest.fixture
def runner(monkeypatch):
    monkeypatch.delenv("STARROCKS_URL", raising=False)
    return CliRunner()


@pytest.fixture
def use_source(monkeypatch):
    """Route the CLI's SQLAlchemy data source to a fake one."""
    urls = []

    def install(source):
        def factory(url):
            urls.append(url)
            return source

        monkeypatch.setattr(importlib.import_module("starrocks_experts.cli.main"), "SQLAlchemyDataSource", factory)
        return urls

    return install


class TestListingCommands:
    """experts and rules."""

    def test_experts(self, runner):
        """Test the plain listing."""
        result = runner.invoke(cli, ["experts"])
        assert result.exit_code == 0
        for name in ("storage", "compaction", "ingestion", "memory", "cache"):
            assert name in result.output

    def test_experts_json(self, runner):
        """Test the JSON listing."""
        result = runner.invoke(cli, ["experts", "--json"])
        listing = json.loads(result.output)
        assert [e["name"] for e in listing] == ["storage", "compaction", "ingestion", "memory", "cache"]

    def test_rules(self, runner):
        """Test printing a builtin rule set."""
        result = runner.invoke(cli, ["rules", "storage"])
        assert result.exit_code == 0
        data = yaml.safe_load(result.output)
        assert data["domain"] == "storage"
        assert "disk_usage" in data["bands"]

    def test_rules_file_domain_mismatch(self, runner, tmp_path):
        """Test a rule set file for another domain."""
        path = tmp_path / "memory.yaml"
        path.write_text(get_default_ruleset("memory").to_yaml())
        result = runner.invoke(cli, ["rules", "storage", "--file", str(path)])
        assert result.exit_code == 1
        assert "not 'storage'" in result.output


class TestDiagnoseCommand:
    """diagnose EXPERT."""

    def test_summary_output(self, runner, use_source, storage_emergency_source):
        """Test the human-readable report."""
        urls = use_source(storage_emergency_source)
        result = runner.invoke(cli, ["diagnose", "storage", "--url", "mysql+pymysql://root@fe:9030"])
        assert result.exit_code == 0, result.output
        assert "storage: score 75.0 (GOOD, CRITICAL)" in result.output
        assert "[critical]" in result.output
        assert "Next check in: 30 minutes" in result.output
        assert urls == ["mysql+pymysql://root@fe:9030"]
        assert storage_emergency_source.disposed

    def test_url_from_environment(self, runner, use_source, storage_emergency_source):
        """Test STARROCKS_URL."""
        urls = use_source(storage_emergency_source)
        result = runner.invoke(cli, ["diagnose", "storage"], env={"STARROCKS_URL": "sqlite://"})
        assert result.exit_code == 0, result.output
        assert urls == ["sqlite://"]

    def test_missing_url(self, runner):
        """Test a usage error without any data source."""
        result = runner.invoke(cli, ["diagnose", "storage"])
        assert result.exit_code == 2
        assert "No data source" in result.output

    def test_json_output(self, runner, use_source, storage_emergency_source):
        """Test --json prints the full result."""
        use_source(storage_emergency_source)
        result = runner.invoke(cli, ["diagnose", "storage", "--url", "sqlite://", "--json"])
        data = json.loads(result.output)
        assert data["expert"] == "storage"
        assert data["health"]["score"] == 75.0

    def test_yaml_file_output(self, runner, use_source, storage_emergency_source, tmp_path):
        """Test --output with a YAML file."""
        use_source(storage_emergency_source)
        path = tmp_path / "storage.yaml"
        result = runner.invoke(cli, ["diagnose", "storage", "--url", "sqlite://", "-o", str(path)])
        assert result.exit_code == 0, result.output
        data = yaml.safe_load(path.read_text())
        assert data["expert"] == "storage"
        assert data["export_version"] == "1.0"

    def test_csv_rejected(self, runner, use_source, storage_emergency_source, tmp_path):
        """Test CSV output is refused for a single expert."""
        use_source(storage_emergency_source)
        result = runner.invoke(
            cli, ["diagnose", "storage", "--url", "sqlite://", "-o", str(tmp_path / "out.csv")]
        )
        assert result.exit_code == 2

    def test_precondition_failure(self, runner, use_source, storage_emergency_source):
        """Test a shared-data expert on a shared-nothing cluster."""
        use_source(storage_emergency_source)
        result = runner.invoke(cli, ["diagnose", "compaction", "--url", "sqlite://"])
        assert result.exit_code == 1
        assert "shared_data" in result.output
        assert storage_emergency_source.disposed

    def test_invalid_window(self, runner):
        """Test configuration validation errors."""
        result = runner.invoke(cli, ["diagnose", "storage", "--url", "sqlite://", "--window-hours", "0"])
        assert result.exit_code == 1
        assert "window_hours" in result.output

    def test_config_file_and_audit_log(self, runner, use_source, storage_emergency_source, tmp_path):
        """Test url and audit log read from a config file."""
        use_source(storage_emergency_source)
        audit = tmp_path / "audit.jsonl"
        config = tmp_path / "diagnostics.yaml"
        config.write_text(f"url: sqlite://\naudit_log: {audit}\n")

        result = runner.invoke(cli, ["diagnose", "storage", "--config", str(config)])
        assert result.exit_code == 0, result.output
        records = [json.loads(line) for line in audit.read_text().splitlines()]
        assert len(records) == 1
        assert records[0]["kind"] == "expert_result"
        assert records[0]["score"] == 75.0


class TestAnalyzeCommand:
    """analyze."""

    def test_coordinated_report(self, runner, use_source, cluster_source):
        """Test the overall summary and cross-module impacts."""
        use_source(cluster_source)
        result = runner.invoke(
            cli, ["analyze", "-e", "storage", "-e", "compaction", "--url", "sqlite://"]
        )
        assert result.exit_code == 0, result.output
        assert "Overall: score 22.5 (POOR, CRITICAL)" in result.output
        assert "Cross-module [HIGH]" in result.output
        assert "Recommendations:" in result.output

    def test_no_cross(self, runner, use_source, cluster_source):
        """Test --no-cross."""
        use_source(cluster_source)
        result = runner.invoke(
            cli, ["analyze", "-e", "storage", "-e", "compaction", "--url", "sqlite://", "--no-cross"]
        )
        assert "Overall: score 42.5" in result.output
        assert "Cross-module" not in result.output

    def test_csv_output(self, runner, use_source, cluster_source, tmp_path):
        """Test the flattened recommendation table."""
        use_source(cluster_source)
        path = tmp_path / "plan.csv"
        result = runner.invoke(
            cli, ["analyze", "-e", "storage", "-e", "compaction", "--url", "sqlite://", "-o", str(path)]
        )
        assert result.exit_code == 0, result.output
        table = pd.read_csv(path)
        assert table["execution_order"].tolist() == list(range(1, len(table) + 1))
        assert "cross_module_recommendation" in set(table["source_type"])

    def test_all_experts_failed(self, runner, use_source, storage_emergency_source):
        """Test exit code 1 when nothing succeeded."""
        use_source(storage_emergency_source)
        result = runner.invoke(
            cli, ["analyze", "-e", "compaction", "-e", "cache", "--url", "sqlite://"]
        )
        assert result.exit_code == 1
        assert "compaction" in result.output and "PreconditionError" in result.output

    def test_unknown_expert_choice(self, runner):
        """Test click rejects unknown expert names."""
        result = runner.invoke(cli, ["analyze", "-e", "network", "--url", "sqlite://"])
        assert result.exit_code == 2
