"""End-to-end import runs.

Functions:
    import_test_reports(config, sink)             -> XunitImport | None
    import_analysis_results(config, sink, path)   -> int  (files persisted)
    collect_build_settings(config)                -> BuildSettings

Each run reads the recovery policy once from *config* and threads it
through every stage.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from sonar_ingest.analysis import load_results
from sonar_ingest.client import StylesheetClient
from sonar_ingest.config import Config
from sonar_ingest.locator import locate_reports
from sonar_ingest.models import TestBatchStatistics
from sonar_ingest.persistence import PersistenceBridge, Sink
from sonar_ingest.project import ProjectFileSystem
from sonar_ingest.reports.aggregate import aggregate
from sonar_ingest.reports.batch import ReportOutcome, process_reports
from sonar_ingest.reports.build_settings import (
    BuildSettings,
    parse_build_log,
    parse_compilation_database,
)
from sonar_ingest.reports.transform import FormatTransformer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class XunitImport:
    """Statistics of one xUnit import plus what happened to each report."""

    statistics: TestBatchStatistics
    outcomes: list[ReportOutcome] = field(default_factory=list)


def import_test_reports(
    config: Config,
    sink: Sink,
    patterns: list[str] | None = None,
    client: StylesheetClient | None = None,
) -> XunitImport | None:
    """Import the xUnit reports and save the test metrics on the project.

    Returns the statistics and per-report outcomes, or None when no report
    was found.
    """
    policy = config.recovery_policy()
    fs = ProjectFileSystem(config.base_dir, config.project_key)
    logger.debug("Project '%s' imports test metrics (%s mode)", fs.project, policy.mode)

    reports = locate_reports(config.base_dir, patterns or config.report_paths, config.encoding)
    if not reports:
        logger.debug("No reports found, nothing to process")
        return None

    with FormatTransformer(config.xslt, client) as transformer:
        batch = process_reports(reports, policy, transformer)

    logger.info("Parsing 'xUnit' format")
    stats = aggregate(batch.records)
    PersistenceBridge(sink, fs, policy, config.repository).save_test_statistics(stats)
    return XunitImport(statistics=stats, outcomes=batch.outcomes)


def import_analysis_results(config: Config, sink: Sink, results_path: Path | str) -> int:
    """Save the measures and issues of an analysis result set."""
    policy = config.recovery_policy()
    fs = ProjectFileSystem(config.base_dir, config.project_key)

    attempt = policy.attempt(lambda: load_results(results_path), what=f"analysis results '{results_path}'")
    results = attempt.value or []
    PersistenceBridge(sink, fs, policy, config.repository).save_source_results(results)
    return len(results)


def collect_build_settings(config: Config) -> BuildSettings:
    """Merge the compilation database and every build log into one view."""
    policy = config.recovery_policy()
    settings = BuildSettings()

    if config.compilation_database:
        database = Path(config.compilation_database)
        if not database.is_absolute():
            database = config.base_dir / database
        attempt = policy.attempt(
            lambda: parse_compilation_database(database, config.encoding),
            what=f"compilation database '{database}'",
        )
        if attempt.succeeded:
            settings.merge(attempt.value)

    for report in locate_reports(config.base_dir, config.build_logs, config.encoding):
        attempt = policy.attempt(
            lambda: parse_build_log(report.path, config.encoding),
            what=f"build log '{report}'",
        )
        if attempt.succeeded:
            settings.merge(attempt.value)

    return settings
