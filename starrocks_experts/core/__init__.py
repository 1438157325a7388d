"""Core diagnostic modules for StarRocks-Experts.

This package contains the analysis pipeline:
- collection: Fail-soft metric collection into snapshots
- diagnosis: Dimension registry and rule evaluation engine
- scoring: Health score, level and status
- recommendation: Template-driven recommendations
- experts: Domain experts (storage, compaction, ingestion, memory, cache)
- coordination: Multi-expert fan-out and cross-module analysis
"""
