"""Hand measures and issues over to the measure/issue store.

Usage:
    store  = MeasureStore()
    bridge = PersistenceBridge(store, fs, policy, repository="cxx")
    bridge.save_test_statistics(stats)
    bridge.save_source_results(results)
    report = store.to_dict()

The store is only reached through the two calls of :class:`Sink`; how it
aggregates measures across the project hierarchy is its own business.
"""

import logging
from dataclasses import dataclass
from typing import Protocol

from sonar_ingest import metrics
from sonar_ingest.errors import SinkRejectedError, UnresolvedFileError
from sonar_ingest.metrics import Metric
from sonar_ingest.models import (
    Issue,
    IssueLocation,
    RuleKey,
    SourceFileResult,
    TestBatchStatistics,
)
from sonar_ingest.project import InputFile, ProjectFileSystem, Unit
from sonar_ingest.recovery import ErrorRecoveryPolicy

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Sink interface and in-memory implementation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PersistedLocation:
    unit: Unit
    line: int
    message: str


class Sink(Protocol):
    def save_metric(self, unit: Unit, metric: Metric, value: int) -> None:
        """Commit one measure. Raises SinkRejectedError if refused."""

    def save_issue(
        self,
        rule_key: RuleKey,
        unit: Unit,
        locations: list[PersistedLocation],
        message: str,
    ) -> None:
        """Commit one issue; ``locations[0]`` is the primary location."""


class MeasureStore:
    """In-memory sink that enforces the usual store constraints.

    A measure is refused when its metric is unknown, not applicable to the
    unit, of the wrong type, or already saved for that unit.
    Core file measures are rolled up to the project by :meth:`rollup`;
    derived measures only exist on the file they were computed for.
    """

    def __init__(self) -> None:
        self.measures: dict[tuple[str, str], int] = {}
        self.issues: list[dict] = []
        self._qualifiers: dict[str, str] = {}

    def save_metric(self, unit: Unit, metric: Metric, value: int) -> None:
        if metrics.ALL_METRICS.get(metric.key) != metric:
            raise SinkRejectedError(f"Unknown metric '{metric.key}'")
        if unit.qualifier not in metric.qualifiers:
            raise SinkRejectedError(
                f"Metric '{metric.key}' cannot be saved on {unit.qualifier} '{unit.key}'"
            )
        if not isinstance(value, metric.value_type) or isinstance(value, bool):
            raise SinkRejectedError(
                f"Metric '{metric.key}' expects {metric.value_type.__name__}, got {value!r}"
            )
        if (unit.key, metric.key) in self.measures:
            raise SinkRejectedError(
                f"Can not add the same measure twice on '{unit.key}': {metric.key}"
            )
        self.measures[(unit.key, metric.key)] = value
        self._qualifiers[unit.key] = unit.qualifier

    def save_issue(
        self,
        rule_key: RuleKey,
        unit: Unit,
        locations: list[PersistedLocation],
        message: str,
    ) -> None:
        if not locations:
            raise SinkRejectedError(f"Issue '{rule_key}' on '{unit.key}' has no location")
        primary, *secondary = locations
        self.issues.append({
            "rule": str(rule_key),
            "component": unit.key,
            "message": message,
            "primary_location": _location_to_dict(primary),
            "secondary_locations": [_location_to_dict(loc) for loc in secondary],
        })

    def rollup(self) -> dict[str, int]:
        """Sum every core measure saved on a file, keyed by metric."""
        totals: dict[str, int] = {}
        for (component, key), value in self.measures.items():
            metric = metrics.ALL_METRICS[key]
            if metric.kind != "core" or self._qualifiers[component] != metrics.FILE:
                continue
            totals[key] = totals.get(key, 0) + value
        return dict(sorted(totals.items()))

    def to_dict(self) -> dict:
        return {
            "measures": [
                {"component": component, "metric": metric, "value": value}
                for (component, metric), value in self.measures.items()
            ],
            "issues": self.issues,
        }


def _location_to_dict(location: PersistedLocation) -> dict:
    return {"component": location.unit.key, "line": location.line, "message": location.message}


# ---------------------------------------------------------------------------
# Bridge
# ---------------------------------------------------------------------------

def select_line(line: int | None) -> int:
    """Lines are 1-based; a missing or non-positive line means the first."""
    if line is None or line < 1:
        return 1
    return line


class PersistenceBridge:
    """Translate statistics, source measures and issues into sink calls."""

    def __init__(
        self,
        sink: Sink,
        fs: ProjectFileSystem,
        policy: ErrorRecoveryPolicy,
        repository: str = "cxx",
    ) -> None:
        self.sink = sink
        self.fs = fs
        self.policy = policy
        self.repository = repository

    # ------------------------------------------------------------------
    # Test statistics
    # ------------------------------------------------------------------

    def save_test_statistics(self, stats: TestBatchStatistics) -> bool:
        """Save the five test metrics on the project; False if nothing to save."""
        if not stats.publishable:
            logger.debug("The reports contain no testcases")
            return False

        values = (
            (metrics.TESTS, stats.tests),
            (metrics.TEST_ERRORS, stats.errors),
            (metrics.TEST_FAILURES, stats.failures),
            (metrics.SKIPPED_TESTS, stats.skipped),
            (metrics.TEST_EXECUTION_TIME, stats.time_ms),
        )
        project = self.fs.project
        with self.policy.group("test metrics") as group:
            for metric, value in values:
                group.attempt(
                    lambda: self.sink.save_metric(project, metric, value),
                    what=f"measure {metric.key.upper()} on '{project}'",
                )
        return True

    # ------------------------------------------------------------------
    # Source analysis results
    # ------------------------------------------------------------------

    def save_source_results(self, results: list[SourceFileResult]) -> None:
        # An unanalyzed module gets no measures at all.
        if not results:
            logger.debug("No source file was analyzed, nothing to save")
            return

        for result in results:
            attempt = self.policy.attempt(
                lambda: self._input_file(result.path),
                what=f"source file '{result.path}'",
            )
            if not attempt.succeeded:
                continue
            input_file = attempt.value
            self.save_measures(input_file, result)
            self.save_issues(input_file, result)

    def save_measures(self, input_file: InputFile, result: SourceFileResult) -> None:
        unknown = set(result.measures) - {m.key for m in metrics.SOURCE_METRICS}
        if unknown:
            logger.warning("Ignoring unknown metric(s) for '%s': %s", result.path, ", ".join(sorted(unknown)))

        with self.policy.group(f"measures of '{input_file}'") as group:
            for metric in metrics.SOURCE_METRICS:
                value = result.measures.get(metric.key, 0)
                group.attempt(
                    lambda: self.sink.save_metric(input_file, metric, value),
                    what=f"measure {metric.key.upper()} on '{input_file}'",
                )

    def save_issues(self, input_file: InputFile, result: SourceFileResult) -> None:
        issues: list[Issue] = []
        for issue in [*result.issues, *result.multi_location_issues]:
            if select_line(issue.line) not in result.nosonar_lines:
                issues.append(issue)
                continue
            logger.debug("NOSONAR on line %d of '%s' suppresses %s", select_line(issue.line), input_file, issue.rule)
            if issue.kind == "multi":
                result.multi_location_issues.remove(issue)

        with self.policy.group(f"issues of '{input_file}'") as group:
            for issue in issues:
                attempt = group.attempt(
                    lambda: self.save_issue(input_file, issue),
                    what=f"issue {issue.rule} on '{input_file}'",
                )
                if attempt.succeeded and issue.kind == "multi":
                    result.multi_location_issues.remove(issue)

    def save_issue(self, input_file: InputFile, issue: Issue) -> None:
        rule_key = RuleKey.parse(issue.rule, self.repository)
        if issue.kind == "multi":
            locations = [self._location(input_file, loc) for loc in issue.locations]
        else:
            locations = [self._location(input_file, IssueLocation(issue.line, issue.message))]
        self.sink.save_issue(rule_key, input_file, locations, issue.message)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _location(self, input_file: InputFile, location: IssueLocation) -> PersistedLocation:
        unit = input_file if location.file is None else self._input_file(location.file)
        return PersistedLocation(unit=unit, line=select_line(location.line), message=location.message)

    def _input_file(self, path: str) -> InputFile:
        input_file = self.fs.input_file(path)
        if input_file is None:
            raise UnresolvedFileError(f"'{path}' is not a file of project '{self.fs.project}'")
        return input_file