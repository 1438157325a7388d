"""Data cache recommendation templates."""

from typing import Dict, List

from ...recommendation.generator import RecommendationTemplate
from ...recommendation.models import Action, Priority

CACHE_TEMPLATES: Dict[str, RecommendationTemplate] = {
    "low_cache_hit_ratio": RecommendationTemplate(
        category="cache_optimization",
        title="Improve data cache hit ratio on {subjects}",
        description="{count} node(s) serve too many reads from object storage",
        priority=Priority.MEDIUM,
        priority_by_severity={"critical": Priority.HIGH},
        actions=(
            Action(
                action="Warm up the cache for hot tables",
                command="CACHE SELECT * FROM <db>.<table> WHERE <hot range>;",
                risk_level="low",
                estimated_time="depends on data size",
            ),
            Action(
                action="Check that datacache is enabled for the hot tables",
                command="SHOW CREATE TABLE <db>.<table>; -- datacache.enable",
                risk_level="low",
            ),
        ),
        risk_level="low",
        aggregate=True,
    ),
    "overall_low_hit_ratio": RecommendationTemplate(
        category="cache_optimization",
        title="Review cache strategy for the cluster",
        description="Cluster-wide hit ratio is {hit_ratio}%",
        priority=Priority.LOW,
        actions=(Action(action="Compare cache capacity with the hot data set size", risk_level="low"),),
        risk_level="low",
    ),
    "cache_capacity_critical": RecommendationTemplate(
        category="cache_capacity",
        title="Expand data cache on {subjects}",
        description="Cache is nearly full on {count} node(s)",
        priority=Priority.HIGH,
        actions=(
            Action(
                action="Raise datacache_disk_size or add cache disks",
                risk_level="low",
            ),
            Action(action="Add compute nodes", risk_level="low"),
        ),
        risk_level="low",
        aggregate=True,
    ),
    "cache_capacity_warning": RecommendationTemplate(
        category="cache_capacity",
        title="Plan data cache capacity for {subjects}",
        description="Cache usage is high on {count} node(s)",
        priority=Priority.MEDIUM,
        actions=(Action(action="Track evictions and plan cache growth", risk_level="low"),),
        risk_level="low",
        aggregate=True,
    ),
    "cache_hit_ratio_variance": RecommendationTemplate(
        category="workload_balancing",
        title="Even out cache hit ratios",
        description="Hit ratio std dev across nodes is {std_dev}",
        priority=Priority.MEDIUM,
        actions=(
            Action(action="Check whether queries are balanced across compute nodes", risk_level="low"),
            Action(action="Look for hot partitions concentrated on few tablets", risk_level="low"),
            Action(action="Make cache capacity identical on every node", risk_level="low"),
        ),
        risk_level="low",
    ),
}

CACHE_PREVENTIVE: List[RecommendationTemplate] = [
    RecommendationTemplate(
        category="monitoring_alerting",
        title="Monitor data cache hit ratio",
        description="Track hit ratio trends to catch cache churn early",
        priority=Priority.LOW,
        actions=(
            Action(
                action="Chart hit ratio per node",
                command="SELECT * FROM information_schema.be_cache_metrics;",
                risk_level="low",
            ),
        ),
        risk_level="low",
    ),
]
