"""Unit tests for the storage expert."""

import pytest

from starrocks_experts.core.experts import StorageExpert
from starrocks_experts.core.recommendation import Priority, SOURCE_PREVENTIVE
from starrocks_experts.core.scoring import HealthLevel, HealthStatus
from starrocks_experts.errors import CollectionError
from tests.fixtures import FakeDataSource, backends_frame


class TestStorageEmergency:
    """One backend at 96% disk usage."""

    @pytest.fixture
    def result(self, storage_emergency_source, clock):
        return StorageExpert(clock=clock).diagnose(storage_emergency_source)

    def test_single_emergency_issue(self, result):
        """Test exactly one critical disk_emergency issue."""
        diagnosis = result.diagnosis
        assert diagnosis.total_issues == 1
        assert [i.type for i in diagnosis.criticals] == ["disk_emergency"]
        issue = diagnosis.criticals[0]
        assert issue.subject == "10.0.0.1"
        assert issue.metrics["usage_pct"] == 96.0
        assert issue.urgency.value == "IMMEDIATE"

    def test_health(self, result):
        """Test score 75, GOOD level, CRITICAL status."""
        assert result.health.score == 75.0
        assert result.health.level is HealthLevel.GOOD
        assert result.health.status is HealthStatus.CRITICAL
        assert result.next_check_interval == "30 minutes"

    def test_recommendations(self, result):
        """Test the emergency recommendation leads and the preventive tail closes."""
        first = result.recommendations[0]
        assert first.priority is Priority.IMMEDIATE
        assert first.category == "emergency_disk_management"
        assert first.source_issue_types == ("disk_emergency",)
        assert "10.0.0.1" in first.title
        assert result.recommendations[-1].source_type == SOURCE_PREVENTIVE

    def test_summary(self, result):
        """Test the storage-specific summary."""
        assert result.diagnosis.summary.startswith("Storage emergency")

    def test_session_released(self, storage_emergency_source, result):
        """Test one session opened and released."""
        assert storage_emergency_source.opened == 1
        assert storage_emergency_source.released == 1


class TestStorageMixed:
    """Three backends with several kinds of problems."""

    def test_issue_types(self, storage_mixed_source, clock):
        """Test every dimension reports its problem."""
        diagnosis = StorageExpert(clock=clock).diagnose(storage_mixed_source).diagnosis
        assert diagnosis.issue_types(severity=None) == [
            "disk_critical",
            "low_free_space",
            "error_tablets",
            "data_imbalance",
        ]
        assert [i.type for i in diagnosis.insights] == ["large_partitions_analysis"]
        assert diagnosis.insights[0].details["large_partition_count"] == 1

    def test_imbalance_metrics(self, storage_mixed_source, clock):
        """Test imbalance is (max - min) / mean."""
        diagnosis = StorageExpert(clock=clock).diagnose(storage_mixed_source).diagnosis
        imbalance = next(i for i in diagnosis.warnings if i.type == "data_imbalance")
        assert imbalance.metrics["imbalance_pct"] == 120.0

    def test_dead_nodes_ignored(self, clock):
        """Test that nodes reported as not alive are not classified."""
        source = FakeDataSource({
            "SHOW BACKENDS": backends_frame({"MaxDiskUsedPct": "99.00 %", "Alive": "false"}),
        })
        assert StorageExpert(clock=clock).diagnose(source).diagnosis.total_issues == 0


class TestMemoryAndTimeToFull:
    """Memory pressure on disk IO and the emergency fill estimate."""

    def _diagnose(self, clock, **overrides):
        source = FakeDataSource({"SHOW BACKENDS": backends_frame(overrides)})
        return StorageExpert(clock=clock).diagnose(source).diagnosis

    def test_memory_at_threshold_is_not_reported(self, clock):
        """Test 90% memory is still acceptable."""
        assert self._diagnose(clock, MemUsedPct="90.00 %").total_issues == 0

    def test_memory_above_threshold(self, clock):
        """Test 90.5% memory affects IO."""
        diagnosis = self._diagnose(clock, MemUsedPct="90.50 %")
        assert diagnosis.issue_types() == ["high_memory_affecting_io"]
        assert diagnosis.warnings[0].metrics["mem_used_pct"] == 90.5

    @pytest.mark.parametrize("avail, expected", [
        ("0.500 GB", "immediate"),
        ("3.000 GB", "1-2 hours"),
        ("40.000 GB", "1-2 days"),
    ])
    def test_emergency_time_to_full(self, clock, avail, expected):
        """Test the estimate follows the remaining free space."""
        diagnosis = self._diagnose(clock, MaxDiskUsedPct="97.00 %", AvailCapacity=avail)
        emergency = next(i for i in diagnosis.criticals if i.type == "disk_emergency")
        assert emergency.metrics["estimated_time_to_full"] == expected

    def test_critical_band_has_no_estimate(self, clock):
        """Test only the emergency band carries a fill estimate."""
        diagnosis = self._diagnose(clock, MaxDiskUsedPct="91.00 %")
        assert diagnosis.issue_types() == ["disk_critical"]
        assert "estimated_time_to_full" not in diagnosis.criticals[0].metrics


class TestStorageEdgeCases:
    """Empty and failing data sources."""

    def test_empty_cluster_is_healthy(self, clock):
        """Test no data gives score 100 and HEALTHY."""
        result = StorageExpert(clock=clock).diagnose(FakeDataSource())
        assert result.diagnosis.total_issues == 0
        assert result.health.score == 100.0
        assert result.health.status is HealthStatus.HEALTHY
        assert result.next_check_interval == "12 hours"
        assert [r.source_type for r in result.recommendations] == [SOURCE_PREVENTIVE]

    def test_collection_errors_reported(self, clock):
        """Test failed queries are listed on the result."""
        source = FakeDataSource({"SHOW BACKENDS": RuntimeError("denied")})
        result = StorageExpert(clock=clock).diagnose(source)
        assert "backends" in result.collection_errors
        assert result.health.status is HealthStatus.HEALTHY

    def test_details(self, storage_emergency_source, clock):
        """Test raw data only with include_details."""
        expert = StorageExpert(clock=clock)
        assert expert.diagnose(storage_emergency_source).raw_data is None

        raw = expert.diagnose(storage_emergency_source, include_details=True).raw_data
        assert raw["collected_at"] == "2025-01-15T12:00:00"
        assert raw["data"]["nodes"][0]["disk_used_pct"] == 96.0

    def test_connection_failure_propagates(self, clock):
        """Test a source that cannot open a session."""
        source = FakeDataSource(fail_on_session=CollectionError("CONNECT", OSError("refused")))
        with pytest.raises(CollectionError):
            StorageExpert(clock=clock).diagnose(source)

    def test_stricter_rule_set(self, storage_emergency_source, clock):
        """Test a tuned free space floor produces an extra issue."""
        expert = StorageExpert(clock=clock)
        strict = expert.rule_set.with_overrides(thresholds={"free_space_minimum_gb": 100})
        diagnosis = StorageExpert(rule_set=strict, clock=clock).diagnose(storage_emergency_source).diagnosis
        assert diagnosis.issue_types() == ["disk_emergency", "low_free_space"]

    def test_to_dict(self, storage_emergency_source, clock):
        """Test the serialized result layout."""
        data = StorageExpert(clock=clock).diagnose(storage_emergency_source).to_dict()
        assert data["expert"] == "storage"
        assert data["health"] == {"score": 75.0, "level": "GOOD", "status": "CRITICAL"}
        assert data["diagnosis_results"]["criticals"][0]["type"] == "disk_emergency"
        assert data["professional_recommendations"][0]["priority"] == "IMMEDIATE"
        assert data["rule_set_version"] == "1.0.0"
