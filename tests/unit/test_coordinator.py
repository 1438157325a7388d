"""Unit tests for multi-expert coordination."""

import pytest

from starrocks_experts.core.coordination import (
    CROSS_MODULE_CATEGORY,
    CROSS_MODULE_RULES,
    CoordinatorState,
    CrossModuleImpactRule,
    ExpertCoordinator,
    RecommendedApproach,
    correlation_strength,
)
from starrocks_experts.core.experts import StorageExpert
from starrocks_experts.core.recommendation import SOURCE_EXPERT, Priority
from starrocks_experts.config import get_default_ruleset


def _rank_order_ok(ranked) -> bool:
    recs = [r.recommendation for r in ranked]
    for prev, nxt in zip(recs, recs[1:]):
        if prev.priority.rank < nxt.priority.rank:
            return False
        if prev.priority is nxt.priority and not prev.is_cross_module and nxt.is_cross_module:
            return False
    return True


class TestStorageAndCompaction:
    """A full disk together with a compaction backlog."""

    @pytest.fixture
    def analysis(self, cluster_source, clock):
        coordinator = ExpertCoordinator(clock=clock)
        return coordinator.perform_coordinated_analysis(
            cluster_source, expert_scope=["storage", "compaction"]
        )

    def test_expert_results(self, analysis):
        """Test both experts succeed, in scope order."""
        assert list(analysis.expert_results) == ["storage", "compaction"]
        assert analysis.expert_failures == []
        assert analysis.comprehensive_assessment["expert_scores"] == {
            "storage": {"score": 75.0, "status": "CRITICAL"},
            "compaction": {"score": 10.0, "status": "CRITICAL"},
        }

    def test_rules_fire(self, analysis):
        """Test the disk/compaction and thread/score rules."""
        impacts = analysis.cross_module_analysis["impacts"]
        assert [i["rule_name"] for i in impacts] == ["storage_compaction_impact", "thread_cs_correlation"]
        assert [i["impact_level"] for i in impacts] == ["HIGH", "MEDIUM"]
        assert impacts[0]["affected_modules"] == ["storage", "compaction"]

    def test_correlations(self, analysis):
        """Test one correlation for the single expert pair."""
        correlations = analysis.cross_module_analysis["correlations"]
        assert len(correlations) == 1
        assert correlations[0]["type"] == "storage_compaction_health_correlation"
        assert correlations[0]["correlation_strength"] == "LOW"

    def test_assessment(self, analysis):
        """Test mean score minus 10 per impact."""
        assessment = analysis.comprehensive_assessment
        assert assessment["overall_health_score"] == 22.5
        assert assessment["health_level"] == "POOR"
        assert assessment["overall_status"] == "CRITICAL"
        assert assessment["cross_module_impact"] is True
        assert "cross-module impacts" in assessment["summary"]

    def test_risk(self, analysis):
        """Test expert risks plus the cross-module risk."""
        risk = analysis.comprehensive_assessment["system_risk_assessment"]
        assert risk["overall_risk_level"] == "CRITICAL"
        assert [r["source"] for r in risk["risk_breakdown"]] == ["storage", "compaction", "cross_module"]

    def test_key_findings(self, analysis):
        """Test critical messages and impact explanations are listed."""
        findings = analysis.comprehensive_assessment["key_findings"]
        assert findings[0].startswith("[storage]")
        assert any(f.startswith("[cross_module]") for f in findings)

    def test_recommendation_order(self, analysis):
        """Test priority order with cross-module first within a priority."""
        ranked = analysis.prioritized_recommendations
        assert [r.execution_order for r in ranked] == list(range(1, len(ranked) + 1))
        assert _rank_order_ok(ranked)
        assert ranked[0].recommendation.priority is Priority.IMMEDIATE

    def test_one_recommendation_per_fired_rule(self, analysis):
        """Test synthesized recommendations and their categories."""
        recs = [r.recommendation for r in analysis.prioritized_recommendations]
        cross = [r for r in recs if r.is_cross_module]
        assert [r.source_rule for r in cross] == ["storage_compaction_impact", "thread_cs_correlation"]
        assert all(r.category == CROSS_MODULE_CATEGORY for r in cross)
        assert cross[0].priority is Priority.HIGH
        assert cross[0].affected_modules == ("storage", "compaction")

        expert_total = sum(len(r.recommendations) for r in analysis.expert_results.values())
        assert len(recs) == expert_total + len(cross)

    def test_traceability(self, analysis):
        """Test expert recommendations trace back to issues of their expert."""
        for ranked in analysis.prioritized_recommendations:
            rec = ranked.recommendation
            if rec.source_type != SOURCE_EXPERT:
                continue
            issue_types = set(analysis.expert_results[rec.source_expert].diagnosis.issue_types())
            assert set(rec.source_issue_types) <= issue_types

    def test_metadata(self, analysis, cluster_source):
        """Test counts, state history and released sessions."""
        metadata = analysis.analysis_metadata
        assert metadata["experts_count"] == 2
        assert metadata["experts_failed"] == 0
        assert metadata["cross_impacts_found"] == 2
        assert metadata["state_history"] == [s.value for s in CoordinatorState]
        assert cluster_source.opened == cluster_source.released == 2

    def test_to_dict(self, analysis):
        """Test the serialized layout."""
        data = analysis.to_dict()
        assert set(data) == {
            "comprehensive_assessment",
            "expert_results",
            "cross_module_analysis",
            "prioritized_recommendations",
            "analysis_metadata",
            "expert_failures",
        }
        cross = [r for r in data["prioritized_recommendations"] if "coordination_notes" in r]
        assert len(cross) == 2
        assert data["prioritized_recommendations"][0]["execution_order"] == 1


class TestCrossAnalysisOptions:
    """Skipping and narrowing cross-module analysis."""

    def test_cross_analysis_skipped(self, cluster_source, clock):
        """Test no impacts and no penalty when disabled."""
        analysis = ExpertCoordinator(clock=clock).perform_coordinated_analysis(
            cluster_source, expert_scope=["storage", "compaction"], include_cross_analysis=False
        )
        assert analysis.cross_module_analysis["impacts"] == []
        assert analysis.comprehensive_assessment["overall_health_score"] == 42.5
        assert not any(r.recommendation.is_cross_module for r in analysis.prioritized_recommendations)

    def test_single_expert_fires_no_rules(self, compaction_source, clock):
        """Test rules need both of their experts."""
        analysis = ExpertCoordinator(clock=clock).perform_coordinated_analysis(
            compaction_source, expert_scope=["compaction"]
        )
        cross = analysis.cross_module_analysis
        assert cross["impacts"] == []
        assert cross["correlations"] == []
        assert cross["analysis_summary"] == "Modules are independent; no cross-module impact found"
        assert analysis.comprehensive_assessment["overall_health_score"] == 10.0

    def test_failing_rule_is_skipped(self, cluster_source, clock):
        """Test a raising rule condition does not stop the others."""
        broken = CrossModuleImpactRule(
            name="broken_rule",
            required_experts=("storage", "compaction"),
            condition=lambda storage, compaction: 1 / 0,
            impact_level="HIGH",
            explanation="never",
            recommended_approach=RecommendedApproach("none", Priority.LOW),
        )
        coordinator = ExpertCoordinator(clock=clock, rules=(broken,) + CROSS_MODULE_RULES)
        analysis = coordinator.perform_coordinated_analysis(
            cluster_source, expert_scope=["storage", "compaction"]
        )
        names = [i["rule_name"] for i in analysis.cross_module_analysis["impacts"]]
        assert names == ["storage_compaction_impact", "thread_cs_correlation"]

    def test_rule_set_overrides(self, storage_emergency_source, clock):
        """Test per-expert rule sets are used."""
        strict = get_default_ruleset("storage").with_overrides(thresholds={"free_space_minimum_gb": 100})
        analysis = ExpertCoordinator(rulesets={"storage": strict}, clock=clock).perform_coordinated_analysis(
            storage_emergency_source, expert_scope=["storage"]
        )
        assert "low_free_space" in analysis.expert_results["storage"].diagnosis.issue_types()


class TestFailureIsolation:
    """One expert failing must not take the others down."""

    def test_precondition_failure(self, storage_emergency_source, clock):
        """Test the cache expert on a shared-nothing cluster."""
        analysis = ExpertCoordinator(clock=clock).perform_coordinated_analysis(
            storage_emergency_source, expert_scope=["storage", "cache"]
        )
        assert list(analysis.expert_results) == ["storage"]
        assert [f.expert for f in analysis.expert_failures] == ["cache"]
        assert analysis.expert_failures[0].error_type == "PreconditionError"
        assert analysis.expert_failures[0].to_dict()["precondition_failed"] is True

        assessment = analysis.comprehensive_assessment
        assert assessment["overall_health_score"] == 75.0
        assert assessment["failed_experts"] == ["cache"]
        assert "1 expert(s) failed: cache" in assessment["summary"]
        assert storage_emergency_source.opened == storage_emergency_source.released

    def test_unexpected_exception(self, memory_source, clock, monkeypatch):
        """Test an arbitrary exception inside an expert."""
        def explode(self, *args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(StorageExpert, "diagnose", explode)
        analysis = ExpertCoordinator(clock=clock).perform_coordinated_analysis(
            memory_source, expert_scope=["storage", "memory"]
        )
        assert list(analysis.expert_results) == ["memory"]
        failure = analysis.expert_failures[0]
        assert failure.expert == "storage"
        assert failure.error_type == "RuntimeError"
        assert str(failure.cause) == "boom"
        assert analysis.analysis_metadata["experts_failed"] == 1

    def test_every_expert_failing(self, storage_emergency_source, clock):
        """Test a well-formed analysis even when nothing succeeds."""
        analysis = ExpertCoordinator(clock=clock).perform_coordinated_analysis(
            storage_emergency_source, expert_scope=["compaction", "cache"]
        )
        assert analysis.expert_results == {}
        assert len(analysis.expert_failures) == 2
        assert analysis.comprehensive_assessment["overall_health_score"] == 100.0
        assert analysis.prioritized_recommendations == []


class TestScope:
    """Expert scope resolution."""

    def test_empty_scope(self, empty_source, clock):
        """Test no experts selected."""
        analysis = ExpertCoordinator(clock=clock).perform_coordinated_analysis(empty_source, expert_scope=[])
        assessment = analysis.comprehensive_assessment
        assert assessment["overall_health_score"] == 100.0
        assert assessment["overall_status"] == "HEALTHY"
        assert assessment["summary"] == "No experts selected"
        assert assessment["system_risk_assessment"]["overall_risk_level"] == "LOW"
        assert analysis.analysis_metadata["experts_count"] == 0
        assert empty_source.opened == 0

    def test_unknown_expert(self, empty_source):
        """Test ValueError before anything runs."""
        with pytest.raises(ValueError, match="network"):
            ExpertCoordinator().perform_coordinated_analysis(empty_source, expert_scope=["storage", "network"])
        assert empty_source.opened == 0

    def test_duplicates_collapsed(self):
        """Test repeated names run once."""
        assert ExpertCoordinator().resolve_scope(["memory", "memory", "storage"]) == ["memory", "storage"]

    def test_all_experts_on_quiet_cluster(self, empty_source, clock):
        """Test the default scope runs every registered expert."""
        analysis = ExpertCoordinator(max_workers=2, clock=clock).perform_coordinated_analysis(empty_source)
        assert list(analysis.expert_results) == ["storage", "compaction", "ingestion", "memory", "cache"]
        assert analysis.comprehensive_assessment["overall_status"] == "HEALTHY"
        assert len(analysis.cross_module_analysis["correlations"]) == 10
        assert all(
            r.recommendation.source_type == "preventive" for r in analysis.prioritized_recommendations
        )


class TestCorrelationStrength:
    """Tests for correlation_strength."""

    @pytest.mark.parametrize("a, b, strength", [
        (90, 75, "HIGH"),
        (90, 70, "MEDIUM"),
        (90, 51, "MEDIUM"),
        (90, 50, "LOW"),
    ])
    def test_bands(self, a, b, strength):
        """Test the 20 and 40 point gaps."""
        assert correlation_strength(a, b) == strength
