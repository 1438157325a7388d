"""Unit tests for the memory expert."""

import pandas as pd
import pytest

from starrocks_experts.core.experts import MemoryExpert
from starrocks_experts.core.experts.memory.collector import query_memory_gb
from starrocks_experts.core.recommendation import Priority
from starrocks_experts.core.scoring import HealthLevel, HealthStatus
from tests.fixtures import FakeDataSource, backends_frame


class TestMemoryPressure:
    """One node at 96% memory, skewed usage and a 60 GB query."""

    @pytest.fixture
    def result(self, memory_source, clock):
        return MemoryExpert(clock=clock).diagnose(memory_source)

    def test_issue_types(self, result):
        """Test node, query and skew findings."""
        diagnosis = result.diagnosis
        assert [i.type for i in diagnosis.criticals] == ["memory_emergency", "oversized_query_memory"]
        assert [i.type for i in diagnosis.warnings] == ["memory_usage_skew"]

    def test_node_metrics(self, result):
        """Test the emergency names the node and its limit."""
        issue = result.diagnosis.criticals[0]
        assert issue.subject == "10.0.0.1"
        assert issue.metrics["mem_used_pct"] == 96.0
        assert issue.metrics["mem_limit_gb"] == 64.0

    def test_query_metrics(self, result):
        """Test only the query above the band is reported."""
        issue = result.diagnosis.criticals[1]
        assert issue.subject == "q-big"
        assert issue.metrics["memory_gb"] == 60.0
        assert issue.metrics["user"] == "etl"

    def test_health(self, result):
        """Test type penalty 30 plus 25 and 10."""
        assert result.health.score == 35.0
        assert result.health.level is HealthLevel.POOR
        assert result.health.status is HealthStatus.CRITICAL

    def test_kill_query_command(self, result):
        """Test the oversized query can be killed by id."""
        rec = next(r for r in result.recommendations if "oversized_query_memory" in r.source_issue_types)
        assert rec.priority is Priority.HIGH
        assert "KILL QUERY 'q-big';" in [a.command for a in rec.actions]
        assert result.recommendations[0].priority is Priority.IMMEDIATE


class TestMemoryEdgeCases:
    """Balanced clusters and unusual inputs."""

    def test_balanced_cluster(self, clock):
        """Test no issues and a distribution insight."""
        source = FakeDataSource({"SHOW BACKENDS": backends_frame({}, {}, {})})
        result = MemoryExpert(clock=clock).diagnose(source)
        assert result.diagnosis.total_issues == 0
        assert [i.type for i in result.diagnosis.insights] == ["memory_distribution"]

    def test_skew_needs_three_nodes(self, clock):
        """Test two very different nodes are not judged for skew."""
        source = FakeDataSource({
            "SHOW BACKENDS": backends_frame({"MemUsedPct": "85.00 %"}, {"MemUsedPct": "10.00 %"}),
        })
        diagnosis = MemoryExpert(clock=clock).diagnose(source).diagnosis
        assert diagnosis.issue_types() == ["elevated_memory_usage"]

    def test_unreadable_queries(self, memory_source, clock):
        """Test the query dimension is skipped when the list cannot be read."""
        memory_source.responses["current_queries"] = RuntimeError("denied")
        result = MemoryExpert(clock=clock).diagnose(memory_source)
        assert "current_queries" in result.collection_errors
        assert "oversized_query_memory" not in result.diagnosis.issue_types()


class TestQueryMemoryParsing:
    """Tests for query_memory_gb."""

    def test_bytes_and_sizes(self):
        """Test raw bytes and human-readable sizes."""
        queries = pd.DataFrame({"MemoryUsageBytes": [2 * 1024 ** 3, "1.500 GB", "512.000 MB", None]})
        gb = query_memory_gb(queries)
        assert gb.iloc[0] == 2.0
        assert gb.iloc[1] == 1.5
        assert gb.iloc[2] == 0.5
        assert pd.isna(gb.iloc[3])

    def test_missing_column(self):
        """Test an unknown layout gives NaN for every query."""
        assert query_memory_gb(pd.DataFrame({"QueryId": ["a"]})).isna().all()
