"""Unit tests for the diagnosis engine, health scoring and recommendation generation."""

from typing import List

import pytest

from starrocks_experts.config import RuleSet, ScoringPolicy
from starrocks_experts.config.bands import BandTable
from starrocks_experts.core.collection import MetricSnapshot
from starrocks_experts.core.diagnosis import (
    BaseDimension,
    Diagnosis,
    DiagnosisEngine,
    DimensionRegistry,
    Insight,
    Issue,
    Severity,
    Urgency,
)
from starrocks_experts.core.recommendation import (
    SOURCE_EXPERT,
    SOURCE_PREVENTIVE,
    Action,
    Priority,
    Recommendation,
    RecommendationGenerator,
    RecommendationTemplate,
)
from starrocks_experts.core.scoring import HealthLevel, HealthScorer, HealthStatus, classify_health_level

DOMAIN = "unit_test_domain"


def _rule_set() -> RuleSet:
    return RuleSet(
        domain=DOMAIN,
        version="0.1",
        bands={
            "usage": BandTable.from_dict("usage", {
                "direction": "above",
                "bands": [
                    {"name": "critical", "threshold": 90, "severity": "critical",
                     "issue_type": "usage_critical", "urgency": "IMMEDIATE"},
                    {"name": "warning", "threshold": 80, "severity": "warning",
                     "issue_type": "usage_warning"},
                ],
            }),
        },
    )


@DimensionRegistry.register
class UsageDimension(BaseDimension):
    dimension_id = "usage"
    domain = DOMAIN

    def check(self, snapshot: MetricSnapshot) -> List:
        findings = []
        for name, value in (snapshot.get("usage") or {}).items():
            band = self.classify(value, "usage")
            if band is not None:
                findings.append(self.issue_from_band(band, message=f"{name} at {value}", subject=name))
        findings.append(self.create_insight("usage_seen", "usage read"))
        return findings


@DimensionRegistry.register
class BrokenDimension(BaseDimension):
    dimension_id = "broken"
    domain = DOMAIN

    def check(self, snapshot: MetricSnapshot) -> List:
        if snapshot.get("explode"):
            raise RuntimeError("boom")
        return [self.create_issue("never_reached", Severity.INFO, "informational")]


@DimensionRegistry.register
class OptionalDimension(BaseDimension):
    dimension_id = "optional"
    domain = DOMAIN

    def is_applicable(self, snapshot: MetricSnapshot) -> bool:
        return "optional_data" in snapshot

    def check(self, snapshot: MetricSnapshot) -> List:
        return [self.create_issue("optional_issue", Severity.WARNING, "optional")]


def _snapshot(**data) -> MetricSnapshot:
    return MetricSnapshot(DOMAIN, data=data)


class TestDiagnosisEngine:
    """Tests for DiagnosisEngine."""

    def test_bands_bucket_issues(self):
        """Test issues land in the bucket of their severity."""
        engine = DiagnosisEngine(DOMAIN, skip_dimensions=["broken"])
        diagnosis = engine.evaluate(_snapshot(usage={"a": 95, "b": 85, "c": 10}), _rule_set())

        assert [i.type for i in diagnosis.criticals] == ["usage_critical"]
        assert [i.type for i in diagnosis.warnings] == ["usage_warning"]
        assert diagnosis.criticals[0].urgency is Urgency.IMMEDIATE
        assert diagnosis.criticals[0].metrics["band"] == "critical"
        assert diagnosis.criticals[0].dimension == "usage"
        assert [i.type for i in diagnosis.insights] == ["usage_seen"]

    def test_deterministic(self):
        """Test the same snapshot and rule set give the same diagnosis."""
        engine = DiagnosisEngine(DOMAIN)
        snapshot = _snapshot(usage={"a": 95, "b": 85})
        assert engine.evaluate(snapshot, _rule_set()) == engine.evaluate(snapshot, _rule_set())

    def test_failing_dimension_is_isolated(self):
        """Test one raising dimension does not stop the others."""
        diagnosis = DiagnosisEngine(DOMAIN).evaluate(
            _snapshot(usage={"a": 95}, explode=True), _rule_set()
        )
        assert diagnosis.dimensions_failed == ("broken",)
        assert "usage" in diagnosis.dimensions_evaluated
        assert diagnosis.has_issue(types=["usage_critical"])
        assert not diagnosis.has_issue(types=["never_reached"])

    def test_not_applicable_dimension_skipped(self):
        """Test is_applicable gates a dimension."""
        engine = DiagnosisEngine(DOMAIN)
        assert not engine.evaluate(_snapshot(), _rule_set()).has_issue(types=["optional_issue"])
        assert engine.evaluate(_snapshot(optional_data=1), _rule_set()).has_issue(types=["optional_issue"])

    def test_summary_builder(self):
        """Test custom summaries."""
        engine = DiagnosisEngine(DOMAIN, summary_builder=lambda d: f"{d.total_issues} found")
        assert engine.evaluate(_snapshot(usage={"a": 95}), _rule_set()).summary == "2 found"


class TestDimensionRegistry:
    """Tests for DimensionRegistry."""

    def test_registration_order(self):
        """Test dimensions are listed in registration order."""
        assert [d.dimension_id for d in DimensionRegistry.for_domain(DOMAIN)] == ["usage", "broken", "optional"]

    def test_lookup(self):
        """Test lookup by domain and ID."""
        assert DimensionRegistry.get_dimension(DOMAIN, "usage") is UsageDimension
        assert DimensionRegistry.get_dimension(DOMAIN, "missing") is None
        assert DimensionRegistry.get_dimension("no_such_domain", "usage") is None

    def test_builtin_domains(self):
        """Test every builtin expert registers its dimensions."""
        import starrocks_experts.core.experts  # noqa: F401

        domains = DimensionRegistry.list_domains()
        for name in ("storage", "compaction", "ingestion", "memory", "cache", DOMAIN):
            assert name in domains


class TestDiagnosisModel:
    """Tests for Issue and Diagnosis."""

    def test_issue_defaults(self):
        """Test default urgency and read-only metrics."""
        issue = Issue(type="x", severity="warning", message="m", metrics={"a": 1})
        assert issue.severity is Severity.WARNING
        assert issue.urgency is Urgency.WITHIN_DAYS
        with pytest.raises(TypeError):
            issue.metrics["a"] = 2

    def test_has_issue_filters(self):
        """Test substring, severity and exact type filters combine."""
        diagnosis = Diagnosis.from_findings("storage", [
            Issue(type="disk_emergency", severity=Severity.CRITICAL, message="m"),
            Issue(type="disk_warning", severity=Severity.WARNING, message="m"),
            Insight(type="note", message="m"),
        ])
        assert diagnosis.has_issue(type_contains="disk", severity=Severity.CRITICAL)
        assert not diagnosis.has_issue(type_contains="disk_warning", severity=Severity.CRITICAL)
        assert diagnosis.has_issue(types=["disk_warning"])
        assert diagnosis.total_issues == 2
        assert diagnosis.to_dict()["total_issues"] == 2


class TestHealthScorer:
    """Tests for HealthScorer."""

    def _diagnosis(self, criticals=0, warnings=0, infos=0) -> Diagnosis:
        findings = (
            [Issue(type=f"c{i}", severity=Severity.CRITICAL, message="") for i in range(criticals)]
            + [Issue(type=f"w{i}", severity=Severity.WARNING, message="") for i in range(warnings)]
            + [Issue(type=f"i{i}", severity=Severity.INFO, message="") for i in range(infos)]
        )
        return Diagnosis.from_findings("test", findings)

    def test_no_issues(self):
        """Test a clean diagnosis scores 100."""
        health = HealthScorer().score(self._diagnosis())
        assert health.score == 100.0
        assert health.level is HealthLevel.EXCELLENT
        assert health.status is HealthStatus.HEALTHY

    def test_penalties(self):
        """Test default penalties of 25 / 10 / 5."""
        health = HealthScorer().score(self._diagnosis(criticals=1, warnings=1, infos=1))
        assert health.score == 60.0
        assert health.status is HealthStatus.CRITICAL

    def test_clamped_at_zero(self):
        """Test the lower bound."""
        assert HealthScorer().score(self._diagnosis(criticals=10)).score == 0.0

    def test_insights_are_free(self):
        """Test insights never change the score."""
        diagnosis = Diagnosis.from_findings("test", [Insight(type="x", message="")])
        assert HealthScorer().score(diagnosis).score == 100.0

    def test_more_issues_never_score_higher(self):
        """Test monotonicity when adding issues."""
        scorer = HealthScorer(ScoringPolicy(critical_penalty=15, warning_penalty=5, info_penalty=2))
        previous = 100.0
        for n in range(6):
            score = scorer.score(self._diagnosis(criticals=n, warnings=n)).score
            assert score <= previous
            previous = score

    @pytest.mark.parametrize("score, level", [
        (39.9, HealthLevel.POOR),
        (40, HealthLevel.FAIR),
        (60, HealthLevel.GOOD),
        (80, HealthLevel.EXCELLENT),
    ])
    def test_levels(self, score, level):
        """Test level boundaries."""
        assert classify_health_level(score) is level


class TestRecommendationGenerator:
    """Tests for RecommendationGenerator."""

    TEMPLATES = {
        "usage_critical": RecommendationTemplate(
            category="urgent_fix",
            title="Fix {subjects}",
            description="{count} node(s) over {threshold}",
            priority=Priority.IMMEDIATE,
            actions=(Action(action="Clean {subject}", command="CLEAN {subject};", per_subject=True),),
            aggregate=True,
        ),
        "usage_warning": RecommendationTemplate(
            category="planning",
            title="Plan for {subject}",
            priority=Priority.MEDIUM,
            priority_by_severity={"critical": Priority.HIGH},
        ),
    }
    PREVENTIVE = [RecommendationTemplate(category="monitoring", title="Monitor {domain}", priority=Priority.LOW)]

    def _diagnosis(self) -> Diagnosis:
        return Diagnosis.from_findings(DOMAIN, [
            Issue(type="usage_critical", severity=Severity.CRITICAL, message="", subject="a",
                  metrics={"threshold": 90}),
            Issue(type="usage_critical", severity=Severity.CRITICAL, message="", subject="b",
                  metrics={"threshold": 90}),
            Issue(type="usage_warning", severity=Severity.WARNING, message="", subject="c"),
            Issue(type="unmapped", severity=Severity.WARNING, message=""),
        ])

    def test_ordering_and_tail(self):
        """Test priority order followed by the preventive tail."""
        recs = RecommendationGenerator(DOMAIN, self.TEMPLATES, self.PREVENTIVE).generate(self._diagnosis())
        assert [r.category for r in recs] == ["urgent_fix", "planning", "monitoring"]
        assert [r.priority for r in recs] == [Priority.IMMEDIATE, Priority.MEDIUM, Priority.LOW]
        assert recs[-1].source_type == SOURCE_PREVENTIVE
        assert recs[-1].title == f"Monitor {DOMAIN}"

    def test_aggregation_and_rendering(self):
        """Test aggregated issues render one action per subject."""
        rec = RecommendationGenerator(DOMAIN, self.TEMPLATES).generate(self._diagnosis())[0]
        assert rec.title == "Fix a, b"
        assert rec.description == "2 node(s) over 90"
        assert [a.command for a in rec.actions] == ["CLEAN a;", "CLEAN b;"]
        assert rec.subjects == ("a", "b")
        assert rec.source_issue_types == ("usage_critical",)

    def test_unmapped_types_skipped(self):
        """Test issue types without a template produce nothing."""
        recs = RecommendationGenerator(DOMAIN, self.TEMPLATES).generate(self._diagnosis())
        assert all("unmapped" not in r.source_issue_types for r in recs)
        assert len(recs) == 2

    def test_every_expert_recommendation_traces_to_an_issue(self):
        """Test traceability of generated recommendations."""
        diagnosis = self._diagnosis()
        present = set(diagnosis.issue_types())
        for rec in RecommendationGenerator(DOMAIN, self.TEMPLATES, self.PREVENTIVE).generate(diagnosis):
            if rec.source_type == SOURCE_EXPERT:
                assert set(rec.source_issue_types) <= present

    def test_untraceable_recommendation_rejected(self):
        """Test the Recommendation constructor enforces traceability."""
        with pytest.raises(ValueError):
            Recommendation(category="x", priority=Priority.LOW, title="t")

    def test_unknown_placeholders_kept(self):
        """Test rendering leaves unknown placeholders alone."""
        template = RecommendationTemplate(category="c", title="Check {nothing_here}")
        diagnosis = Diagnosis.from_findings(DOMAIN, [Issue(type="t", severity=Severity.INFO, message="")])
        rec = RecommendationGenerator(DOMAIN, {"t": template}).generate(diagnosis)[0]
        assert rec.title == "Check {nothing_here}"
