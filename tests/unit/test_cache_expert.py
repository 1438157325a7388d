"""Unit tests for the data cache expert."""

import pandas as pd
import pytest

from starrocks_experts.core.experts import CacheExpert
from starrocks_experts.core.experts.cache.collector import cache_node_stats
from starrocks_experts.core.scoring import HealthStatus
from starrocks_experts.errors import PreconditionError
from tests.fixtures import FakeDataSource, run_mode_frame


class TestCacheProblems:
    """One compute node with a 20% hit ratio and a 97% full cache."""

    @pytest.fixture
    def result(self, cache_source, clock):
        return CacheExpert(clock=clock).diagnose(cache_source)

    def test_issue_types(self, result):
        """Test hit ratio, capacity and variance findings."""
        diagnosis = result.diagnosis
        assert [i.type for i in diagnosis.criticals] == ["low_cache_hit_ratio", "cache_capacity_critical"]
        assert [i.type for i in diagnosis.warnings] == ["cache_hit_ratio_variance"]
        assert diagnosis.issues == ()

    def test_node_metrics(self, result):
        """Test the failing node is named by its BE id."""
        hit, capacity = result.diagnosis.criticals
        assert hit.subject == "10001"
        assert hit.metrics["hit_ratio"] == 20.0
        assert capacity.metrics["usage_pct"] == 97.0
        assert capacity.metrics["capacity_gb"] == 100.0

    def test_health(self, result):
        """Test penalties of 20, 20 and 10."""
        assert result.health.score == 50.0
        assert result.health.status is HealthStatus.CRITICAL

    def test_distribution_insight(self, result):
        """Test the hit ratio spread summary."""
        insight = next(i for i in result.diagnosis.insights if i.type == "cache_hit_ratio_distribution")
        assert insight.details["min"] == 20.0
        assert insight.details["max"] == 90.0
        assert insight.details["mean"] == 55.0


class TestCacheEdgeCases:
    """Missing metrics and the shared-data requirement."""

    def test_overall_ratio_below_warning(self, clock):
        """Test the informational cluster-wide issue."""
        source = FakeDataSource({
            "'run_mode'": run_mode_frame("shared_data"),
            "be_cache_metrics": pd.DataFrame({
                "BE_ID": ["10001", "10002"],
                "hit_count": [550, 350],
                "miss_count": [450, 650],
                "disk_cache_capacity_bytes": [100, 100],
                "disk_cache_bytes": [10, 10],
            }),
        })
        diagnosis = CacheExpert(clock=clock).diagnose(source).diagnosis
        assert diagnosis.issue_types() == ["low_cache_hit_ratio", "overall_low_hit_ratio"]
        assert diagnosis.issues[0].metrics["hit_ratio"] == 45.0

    def test_no_metrics_is_an_insight(self, empty_source, clock):
        """Test an empty metrics table."""
        result = CacheExpert(clock=clock).diagnose(empty_source)
        assert result.diagnosis.total_issues == 0
        assert [i.type for i in result.diagnosis.insights] == ["no_cache_metrics"]
        assert result.health.score == 100.0

    def test_shared_nothing_rejected(self, cache_source, clock):
        """Test the cache expert refuses shared-nothing clusters."""
        cache_source.responses["'run_mode'"] = run_mode_frame("shared_nothing")
        with pytest.raises(PreconditionError):
            CacheExpert(clock=clock).diagnose(cache_source)
        assert cache_source.issued("be_cache_metrics") == []


class TestCacheNodeStats:
    """Tests for cache_node_stats."""

    def test_nodes_without_requests(self):
        """Test NaN ratio and usage when there is nothing to divide by."""
        stats = cache_node_stats(pd.DataFrame({
            "BE_ID": ["1"],
            "hit_count": [0],
            "miss_count": [0],
            "disk_cache_capacity_bytes": [0],
            "disk_cache_bytes": [0],
        }))
        assert pd.isna(stats.loc[0, "hit_ratio"])
        assert pd.isna(stats.loc[0, "usage_pct"])

    def test_empty(self):
        """Test empty input keeps the column layout."""
        stats = cache_node_stats(pd.DataFrame())
        assert stats.empty
        assert "hit_ratio" in stats.columns
