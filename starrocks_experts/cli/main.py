"""Command-line interface for StarRocks-Experts.

Provides CLI commands for listing experts, diagnosing one domain and
running a coordinated analysis across domains.
"""

import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click

from .. import __version__
from ..config import DiagnosticsConfig, RuleSet, list_available_rulesets
from ..core.coordination import ExpertCoordinator
from ..core.experts import ExpertRegistry, get_available_experts
from ..errors import DiagnosticsError
from ..io import (
    SQLAlchemyDataSource,
    export_json,
    export_recommendations_csv,
    export_yaml,
    get_file_logger,
    setup_console_logging,
    write_audit,
)

MAX_LISTED_RECOMMENDATIONS = 10


def source_options(func):
    """Options shared by commands that talk to a cluster."""
    options = [
        click.option("--url", envvar="STARROCKS_URL",
                     help="SQLAlchemy URL of the FE query port (env: STARROCKS_URL)"),
        click.option("--config", "-c", "config_path", type=click.Path(exists=True),
                     help="Diagnostics configuration file (YAML)"),
        click.option("--database", help="Limit collection to one database"),
        click.option("--table", help="Limit collection to one table (needs --database)"),
        click.option("--window-hours", type=int, help="Look-back window for time-bounded queries"),
        click.option("--details", is_flag=True, help="Include collected raw data in the output"),
        click.option("--json", "as_json", is_flag=True, help="Print the full result as JSON"),
        click.option("--output", "-o", "output_path", type=click.Path(),
                     help="Write the result to a .json, .yaml or .csv file"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def load_config(
    config_path: Optional[str],
    url: Optional[str] = None,
    database: Optional[str] = None,
    table: Optional[str] = None,
    window_hours: Optional[int] = None,
    details: bool = False,
) -> DiagnosticsConfig:
    """Load the config file (if any) and apply command-line overrides."""
    cfg = DiagnosticsConfig.from_yaml(Path(config_path)) if config_path else DiagnosticsConfig.default()
    overrides = {
        "url": url,
        "database": database,
        "table": table,
        "window_hours": window_hours,
    }
    overrides = {key: value for key, value in overrides.items() if value is not None}
    if details:
        overrides["include_details"] = True
    return dataclasses.replace(cfg, **overrides) if overrides else cfg


def _data_source(cfg: DiagnosticsConfig) -> SQLAlchemyDataSource:
    if not cfg.url:
        raise click.UsageError("No data source: pass --url, set STARROCKS_URL or set url in --config")
    return SQLAlchemyDataSource(cfg.url)


def _write_output(result, output_path: Optional[str], coordinated: bool) -> Optional[Path]:
    if not output_path:
        return None
    path = Path(output_path)
    suffix = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        return export_yaml(result, path)
    if suffix == ".csv":
        if not coordinated:
            raise click.UsageError("CSV output is only available for 'analyze'")
        return export_recommendations_csv(result, path)
    return export_json(result, path)


def _echo_recommendations(recommendations) -> None:
    for order, rec in recommendations[:MAX_LISTED_RECOMMENDATIONS]:
        click.echo(f"  {order:>2}. [{rec.priority.value}] {rec.title} ({rec.category})")
    hidden = len(recommendations) - MAX_LISTED_RECOMMENDATIONS
    if hidden > 0:
        click.echo(f"  ... {hidden} more")


@click.group()
@click.version_option(version=__version__, prog_name="starrocks-experts")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option("--debug", is_flag=True, help="Enable debug output")
@click.option("--log-file", type=click.Path(dir_okay=False),
              help="Also write logs to this file (a run timestamp is added to the name)")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, debug: bool, log_file: Optional[str]) -> None:
    """StarRocks-Experts: expert diagnosis for StarRocks clusters.

    Each expert collects metrics for one domain (storage, compaction,
    ingestion, memory, cache), classifies them with a versioned rule set,
    scores health and recommends fixes. The coordinator runs several
    experts at once and correlates their findings.

    Examples:

        # List registered experts
        starrocks-experts experts

        # Diagnose storage on one cluster
        starrocks-experts diagnose storage --url mysql+pymysql://root@fe-host:9030

        # Run every expert and save the report
        starrocks-experts analyze --config diagnostics.yaml --output report.json

        # Show the thresholds in use for compaction
        starrocks-experts rules compaction
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["debug"] = debug
    ctx.obj["logger"] = setup_console_logging(verbose, debug)
    if log_file:
        _, ctx.obj["log_path"] = get_file_logger(
            "starrocks_experts",
            log_file,
            level=logging.DEBUG if debug else (logging.INFO if verbose else logging.WARNING),
        )


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Print as JSON")
def experts(as_json: bool) -> None:
    """List registered experts and their capabilities."""
    listing = get_available_experts()
    if as_json:
        click.echo(json.dumps(listing, indent=2))
        return
    for info in listing:
        click.echo(f"{info['name']:<12} v{info['version']:<8} {info['description']}")
        click.echo(f"{'':<22} {', '.join(info['capabilities'])}")


@cli.command()
@click.argument("domain", type=click.Choice(list_available_rulesets()))
@click.option("--file", "-f", "ruleset_path", type=click.Path(exists=True),
              help="Show a rule set file instead of the builtin one")
def rules(domain: str, ruleset_path: Optional[str]) -> None:
    """Print the rule set (thresholds and scoring) of DOMAIN as YAML."""
    try:
        rule_set = RuleSet.from_yaml(ruleset_path) if ruleset_path else RuleSet.default(domain)
    except DiagnosticsError as e:
        raise click.ClickException(str(e))
    if rule_set.domain != domain:
        raise click.ClickException(f"{ruleset_path} is a '{rule_set.domain}' rule set, not '{domain}'")
    click.echo(rule_set.to_yaml(), nl=False)


@cli.command()
@click.argument("expert_name", metavar="EXPERT", type=click.Choice(ExpertRegistry.list_names()))
@source_options
@click.pass_context
def diagnose(
    ctx: click.Context,
    expert_name: str,
    url: Optional[str],
    config_path: Optional[str],
    database: Optional[str],
    table: Optional[str],
    window_hours: Optional[int],
    details: bool,
    as_json: bool,
    output_path: Optional[str],
) -> None:
    """Run a single EXPERT against the cluster."""
    logger = ctx.obj["logger"]

    try:
        cfg = load_config(config_path, url, database, table, window_hours, details)
        rulesets = cfg.load_rulesets()
        expert = ExpertRegistry.create(expert_name, rule_set=rulesets.get(expert_name))
    except DiagnosticsError as e:
        raise click.ClickException(str(e))

    source = _data_source(cfg)
    logger.info(f"Running {expert_name} expert")
    try:
        result = expert.diagnose(
            source,
            include_details=cfg.include_details,
            scope=cfg.collection_scope(),
        )
    except DiagnosticsError as e:
        raise click.ClickException(str(e))
    finally:
        source.dispose()

    if cfg.audit_log:
        write_audit(cfg.audit_log, result)
    elif ctx.obj["verbose"]:
        write_audit(None, result, logger=logger)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2, default=str))
    else:
        health = result.health
        click.echo(
            f"{result.expert}: score {health.score:.1f} "
            f"({health.level.value}, {health.status.value})"
        )
        click.echo(result.diagnosis.summary)
        for issue in result.diagnosis.all_issues:
            click.echo(f"  - [{issue.severity.value}] {issue.message}")
        if result.recommendations:
            click.echo("Recommendations:")
            _echo_recommendations(list(enumerate(result.recommendations, start=1)))
        click.echo(f"Next check in: {result.next_check_interval}")

    written = _write_output(result, output_path, coordinated=False)
    if written:
        click.echo(f"Output saved to: {written}", err=as_json)


@cli.command()
@click.option("--experts", "-e", "expert_names", multiple=True,
              type=click.Choice(ExpertRegistry.list_names()),
              help="Expert to run (repeatable, default: all or config expert_scope)")
@click.option("--no-cross", is_flag=True, help="Skip cross-module impact analysis")
@click.option("--max-workers", type=int, help="Maximum experts running at once")
@source_options
@click.pass_context
def analyze(
    ctx: click.Context,
    expert_names: Tuple[str, ...],
    no_cross: bool,
    max_workers: Optional[int],
    url: Optional[str],
    config_path: Optional[str],
    database: Optional[str],
    table: Optional[str],
    window_hours: Optional[int],
    details: bool,
    as_json: bool,
    output_path: Optional[str],
) -> None:
    """Run several experts concurrently and correlate their findings."""
    logger = ctx.obj["logger"]

    try:
        cfg = load_config(config_path, url, database, table, window_hours, details)
        if expert_names:
            cfg = dataclasses.replace(cfg, expert_scope=list(expert_names))
        if max_workers is not None:
            cfg = dataclasses.replace(cfg, max_workers=max_workers)
        if no_cross:
            cfg = dataclasses.replace(cfg, include_cross_analysis=False)
        coordinator = ExpertCoordinator(
            rulesets=cfg.load_rulesets(),
            max_workers=cfg.max_workers,
        )
    except DiagnosticsError as e:
        raise click.ClickException(str(e))

    source = _data_source(cfg)
    scope = cfg.expert_scope or None
    logger.info(f"Running coordinated analysis: {', '.join(scope) if scope else 'all experts'}")
    try:
        analysis = coordinator.perform_coordinated_analysis(
            source,
            include_details=cfg.include_details,
            expert_scope=scope,
            include_cross_analysis=cfg.include_cross_analysis,
            scope=cfg.collection_scope(),
        )
    finally:
        source.dispose()

    if cfg.audit_log:
        write_audit(cfg.audit_log, analysis)
    elif ctx.obj["verbose"]:
        write_audit(None, analysis, logger=logger)

    if as_json:
        click.echo(json.dumps(analysis.to_dict(), indent=2, default=str))
    else:
        assessment = analysis.comprehensive_assessment
        click.echo(
            f"Overall: score {assessment['overall_health_score']} "
            f"({assessment['health_level']}, {assessment['overall_status']})"
        )
        for name, entry in assessment["expert_scores"].items():
            click.echo(f"  {name:<12} {entry['score']:>6.1f}  {entry['status']}")
        for failure in analysis.expert_failures:
            click.echo(f"  {failure.expert:<12} failed: {failure.error_type}: {failure.cause}")
        for impact in analysis.cross_module_analysis["impacts"]:
            click.echo(f"Cross-module [{impact['impact_level']}] {impact['explanation']}")
        click.echo(assessment["summary"])
        if analysis.prioritized_recommendations:
            click.echo("Recommendations:")
            _echo_recommendations([
                (ranked.execution_order, ranked.recommendation)
                for ranked in analysis.prioritized_recommendations
            ])

    written = _write_output(analysis, output_path, coordinated=True)
    if written:
        click.echo(f"Output saved to: {written}", err=as_json)

    if analysis.expert_failures and not analysis.expert_results:
        click.echo("All experts failed", err=True)
        sys.exit(1)


def main() -> None:
    """Main entry point for CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
