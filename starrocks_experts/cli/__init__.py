"""Command-line interface for StarRocks-Experts.

Provides CLI commands for listing experts, running one expert and running
a coordinated analysis.

Example Usage
-------------
    # From command line:
    starrocks-experts --help
    starrocks-experts experts
    starrocks-experts diagnose storage --url mysql+pymysql://root@fe-host:9030
    starrocks-experts analyze --config diagnostics.yaml --output report.json
"""

from .main import cli, main

__all__ = [
    "cli",
    "main",
]
