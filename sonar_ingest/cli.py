"""CLI entry point: command definitions using Click.

Commands:
    init            Generate a template config file
    tests           Import xUnit test reports, emit the test measures
    analysis        Persist an analysis result set, emit measures and issues
    build-settings  Show defines/includes read from compilation db and build logs
    stylesheets     List the bundled report stylesheets
"""

import json
import logging
import sys
from typing import Any

import click

from sonar_ingest import __version__


# ---------------------------------------------------------------------------
# Helpers shared by all data commands
# ---------------------------------------------------------------------------

def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)-7s %(name)s - %(message)s",
        stream=sys.stderr,
    )


def _load_config(ctx: click.Context):
    """Load config and apply command-line overrides. Exits on error."""
    from sonar_ingest.config import ConfigError, load

    obj = ctx.obj
    try:
        config = load(obj["config_path"])
    except ConfigError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(1)

    if obj["strict"]:
        config.error_recovery = False
    return config


def _emit_json(data: Any, ctx: click.Context) -> None:
    """Write JSON to stdout or to the file specified by --output."""
    obj = ctx.obj
    indent = 2 if obj["pretty"] else None
    text = json.dumps(data, indent=indent, ensure_ascii=False)

    output_path: str | None = obj["output_path"]
    if output_path:
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(text)
        click.echo(f"Report written to '{output_path}'", err=True)
    else:
        click.echo(text)


def _handle_pipeline_errors(func):
    """Decorator that turns fatal pipeline errors into a clean exit."""
    import functools

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        from sonar_ingest.errors import (
            MalformedReportError,
            PipelineError,
            SinkRejectedError,
            TransformError,
        )

        try:
            return func(*args, **kwargs)
        except TransformError as exc:
            click.echo(f"Transformation error: {exc}", err=True)
            sys.exit(1)
        except MalformedReportError as exc:
            click.echo(f"Report error: {exc}", err=True)
            sys.exit(1)
        except SinkRejectedError as exc:
            click.echo(f"Rejected by the measure store: {exc}", err=True)
            sys.exit(1)
        except PipelineError as exc:
            click.echo(f"Import error: {exc}", err=True)
            sys.exit(1)

    return wrapper


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------

@click.group()
@click.option("--config", "config_path", default="sonar-ingest.yaml", show_default=True,
              help="Path to the configuration file.")
@click.option("--output", "output_path", default=None,
              help="Write JSON output to a file instead of stdout.")
@click.option("--pretty", is_flag=True, default=False,
              help="Pretty-print the JSON output.")
@click.option("--strict", is_flag=True, default=False,
              help="Abort on the first bad report (overrides recovery.error_recovery).")
@click.option("--verbose", is_flag=True, default=False,
              help="Enable verbose logging.")
@click.version_option(__version__, prog_name="sonar-ingest")
@click.pass_context
def cli(ctx: click.Context, config_path: str, output_path: str | None,
        pretty: bool, strict: bool, verbose: bool) -> None:
    """Import test reports and analysis results as measures and issues."""
    _setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["output_path"] = output_path
    ctx.obj["pretty"] = pretty
    ctx.obj["strict"] = strict
    ctx.obj["verbose"] = verbose


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------

@cli.command("init")
@click.option("--output", "output_path", default="sonar-ingest.yaml", show_default=True,
              help="Path where the template config file will be written.")
def init_command(output_path: str) -> None:
    """Generate a template sonar-ingest.yaml file."""
    from sonar_ingest.config import ConfigError, generate_template
    try:
        generate_template(output_path)
        click.echo(f"Template written to '{output_path}'.")
        click.echo("Edit it with your project key and report paths.")
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


# ---------------------------------------------------------------------------
# tests
# ---------------------------------------------------------------------------

@cli.command("tests")
@click.argument("patterns", nargs=-1)
@click.option("--xslt", default=None,
              help="Stylesheet name, path or URL (overrides xunit.xslt).")
@click.pass_context
@_handle_pipeline_errors
def tests_command(ctx: click.Context, patterns: tuple[str, ...], xslt: str | None) -> None:
    """Import xUnit reports matching PATTERNS (default: xunit.report_paths)."""
    from sonar_ingest.persistence import MeasureStore
    from sonar_ingest.pipeline import import_test_reports

    config = _load_config(ctx)
    if xslt:
        config.xslt = xslt

    store = MeasureStore()
    result = import_test_reports(config, store, patterns=list(patterns) or None)
    report = store.to_dict()
    report["statistics"] = None
    report["reports"] = []
    if result is not None:
        stats = result.statistics
        report["statistics"] = {
            "tests": stats.tests,
            "errors": stats.errors,
            "failures": stats.failures,
            "skipped": stats.skipped,
            "time_ms": stats.time_ms,
        }
        report["reports"] = [
            {
                "path": str(o.report),
                "outcome": o.outcome.value,
                "records": o.records,
                "error": o.error,
            }
            for o in result.outcomes
        ]
    _emit_json(report, ctx)


# ---------------------------------------------------------------------------
# analysis
# ---------------------------------------------------------------------------

@cli.command("analysis")
@click.argument("results_path", type=click.Path(dir_okay=False))
@click.pass_context
@_handle_pipeline_errors
def analysis_command(ctx: click.Context, results_path: str) -> None:
    """Persist the analysis result set RESULTS_PATH (JSON)."""
    from sonar_ingest.persistence import MeasureStore
    from sonar_ingest.pipeline import import_analysis_results

    config = _load_config(ctx)
    store = MeasureStore()
    files = import_analysis_results(config, store, results_path)
    if ctx.obj["verbose"]:
        click.echo(f"[verbose] {files} analyzed file(s) in '{results_path}'", err=True)
    report = store.to_dict()
    report["project_measures"] = store.rollup()
    _emit_json(report, ctx)


# ---------------------------------------------------------------------------
# build-settings
# ---------------------------------------------------------------------------

@cli.command("build-settings")
@click.pass_context
@_handle_pipeline_errors
def build_settings_command(ctx: click.Context) -> None:
    """Show the defines and include directories of the build."""
    from sonar_ingest.pipeline import collect_build_settings

    config = _load_config(ctx)
    _emit_json(collect_build_settings(config).to_dict(), ctx)


# ---------------------------------------------------------------------------
# stylesheets
# ---------------------------------------------------------------------------

@cli.command("stylesheets")
def stylesheets_command() -> None:
    """List the bundled stylesheets usable as xunit.xslt."""
    from sonar_ingest.reports.transform import bundled_stylesheets

    for name in bundled_stylesheets():
        click.echo(name)
