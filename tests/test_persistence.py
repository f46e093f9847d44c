"""Tests for sonar_ingest/persistence.py"""

import pytest

from sonar_ingest import metrics
from sonar_ingest.errors import SinkRejectedError, UnresolvedFileError
from sonar_ingest.models import (
    IssueLocation,
    MultiLocationIssue,
    RuleKey,
    SingleLocationIssue,
    SourceFileResult,
    TestBatchStatistics,
)
from sonar_ingest.persistence import (
    MeasureStore,
    PersistedLocation,
    PersistenceBridge,
    select_line,
)
from sonar_ingest.project import ProjectFileSystem, Unit
from sonar_ingest.recovery import ErrorRecoveryPolicy

PROJECT = "my-project"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class RecordingSink:
    """Sink that records every call and refuses the metric keys in *reject*."""

    def __init__(self, reject: tuple[str, ...] = ()) -> None:
        self.reject = reject
        self.metrics: list[tuple[str, str, int]] = []
        self.issues: list[tuple[RuleKey, str, list[PersistedLocation], str]] = []

    def save_metric(self, unit, metric, value):
        if metric.key in self.reject:
            raise SinkRejectedError(f"refused {metric.key}")
        self.metrics.append((unit.key, metric.key, value))

    def save_issue(self, rule_key, unit, locations, message):
        if message in self.reject:
            raise SinkRejectedError(f"refused issue '{message}'")
        self.issues.append((rule_key, unit.key, locations, message))


@pytest.fixture
def project_dir(tmp_path):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "main.cpp").write_text("int main() {}\n")
    (tmp_path / "src" / "util.h").write_text("#pragma once\n")
    return tmp_path


def _bridge(sink, project_dir, tolerant=True):
    fs = ProjectFileSystem(project_dir, PROJECT)
    return PersistenceBridge(sink, fs, ErrorRecoveryPolicy(tolerant))


# ---------------------------------------------------------------------------
# select_line()
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("line, expected", [(None, 1), (-3, 1), (0, 1), (1, 1), (5, 5)])
def test_select_line(line, expected):
    assert select_line(line) == expected


# ---------------------------------------------------------------------------
# save_test_statistics()
# ---------------------------------------------------------------------------

class TestSaveTestStatistics:
    def test_zero_tests_makes_no_calls(self, project_dir):
        sink = RecordingSink()
        saved = _bridge(sink, project_dir).save_test_statistics(TestBatchStatistics(skipped=3, time_ms=9))
        assert saved is False
        assert sink.metrics == []

    def test_five_metrics_on_the_project(self, project_dir):
        sink = RecordingSink()
        stats = TestBatchStatistics(tests=4, errors=0, failures=1, skipped=1, time_ms=45)
        assert _bridge(sink, project_dir).save_test_statistics(stats) is True
        assert sink.metrics == [
            (PROJECT, "tests", 4),
            (PROJECT, "test_errors", 0),
            (PROJECT, "test_failures", 1),
            (PROJECT, "skipped_tests", 1),
            (PROJECT, "test_execution_time", 45),
        ]

    def test_tolerant_rejection_keeps_the_other_metrics(self, project_dir):
        sink = RecordingSink(reject=("test_errors",))
        _bridge(sink, project_dir).save_test_statistics(TestBatchStatistics(tests=1))
        assert [m[1] for m in sink.metrics] == ["tests", "test_failures", "skipped_tests", "test_execution_time"]

    def test_strict_rejection_raises_after_the_group(self, project_dir):
        sink = RecordingSink(reject=("test_errors",))
        with pytest.raises(SinkRejectedError, match="refused test_errors"):
            _bridge(sink, project_dir, tolerant=False).save_test_statistics(TestBatchStatistics(tests=1))
        assert len(sink.metrics) == 4


# ---------------------------------------------------------------------------
# save_source_results()
# ---------------------------------------------------------------------------

class TestSaveSourceResults:
    def test_no_results_saves_nothing(self, project_dir):
        sink = RecordingSink()
        _bridge(sink, project_dir).save_source_results([])
        assert sink.metrics == []
        assert sink.issues == []

    def test_every_source_metric_is_saved_with_zero_default(self, project_dir):
        sink = RecordingSink()
        result = SourceFileResult(path="src/main.cpp", measures={"ncloc": 12, "complexity": 3})
        _bridge(sink, project_dir).save_source_results([result])

        saved = {metric: value for _, metric, value in sink.metrics}
        assert set(saved) == {m.key for m in metrics.SOURCE_METRICS}
        assert saved["ncloc"] == 12
        assert saved["complexity"] == 3
        assert saved["big_functions"] == 0
        assert {unit for unit, _, _ in sink.metrics} == {f"{PROJECT}:src/main.cpp"}

    def test_unknown_file_is_recovered_in_tolerant_mode(self, project_dir):
        sink = RecordingSink()
        results = [
            SourceFileResult(path="src/missing.cpp"),
            SourceFileResult(path="src/main.cpp"),
        ]
        _bridge(sink, project_dir).save_source_results(results)
        assert {unit for unit, _, _ in sink.metrics} == {f"{PROJECT}:src/main.cpp"}

    def test_unknown_file_aborts_in_strict_mode(self, project_dir):
        with pytest.raises(UnresolvedFileError, match="missing.cpp"):
            _bridge(RecordingSink(), project_dir, tolerant=False).save_source_results(
                [SourceFileResult(path="src/missing.cpp")]
            )


# ---------------------------------------------------------------------------
# Issues
# ---------------------------------------------------------------------------

class TestSaveIssues:
    def test_single_location_issue(self, project_dir):
        sink = RecordingSink()
        result = SourceFileResult(
            path="src/main.cpp",
            issues=[SingleLocationIssue(rule="TooManyLines", message="too long", line=0)],
        )
        _bridge(sink, project_dir).save_source_results([result])

        rule_key, unit, locations, message = sink.issues[0]
        assert rule_key == RuleKey("cxx", "TooManyLines")
        assert unit == f"{PROJECT}:src/main.cpp"
        assert [loc.line for loc in locations] == [1]
        assert message == "too long"

    def test_multi_location_issue_lines_and_clearing(self, project_dir):
        sink = RecordingSink()
        issue = MultiLocationIssue(
            rule="c:FunctionComplexity",
            locations=[
                IssueLocation(line=0, message="complexity is 25"),
                IssueLocation(line=5, message="+1: if"),
                IssueLocation(line=2, message="declared here", file="src/util.h"),
            ],
        )
        result = SourceFileResult(path="src/main.cpp", multi_location_issues=[issue])
        _bridge(sink, project_dir).save_source_results([result])

        rule_key, unit, locations, message = sink.issues[0]
        assert rule_key == RuleKey("c", "FunctionComplexity")
        assert message == "complexity is 25"
        assert [loc.line for loc in locations] == [1, 5, 2]
        assert locations[0].unit.key == f"{PROJECT}:src/main.cpp"
        assert locations[2].unit.key == f"{PROJECT}:src/util.h"
        assert result.multi_location_issues == []

    def test_rejected_multi_location_issue_stays_pending(self, project_dir):
        sink = RecordingSink(reject=("refused",))
        kept = MultiLocationIssue(rule="r", locations=[IssueLocation(line=3, message="refused")])
        saved = MultiLocationIssue(rule="r", locations=[IssueLocation(line=4, message="fine")])
        result = SourceFileResult(path="src/main.cpp", multi_location_issues=[kept, saved])
        _bridge(sink, project_dir).save_source_results([result])
        assert result.multi_location_issues == [kept]
        assert len(sink.issues) == 1

    def test_strict_rejection_raises_after_all_issues(self, project_dir):
        sink = RecordingSink(reject=("refused",))
        result = SourceFileResult(
            path="src/main.cpp",
            issues=[
                SingleLocationIssue(rule="r", message="refused", line=1),
                SingleLocationIssue(rule="r", message="fine", line=2),
            ],
        )
        with pytest.raises(SinkRejectedError):
            _bridge(sink, project_dir, tolerant=False).save_source_results([result])
        assert [i[3] for i in sink.issues] == ["fine"]

    def test_nosonar_lines_suppress_single_location_issues(self, project_dir):
        sink = RecordingSink()
        result = SourceFileResult(
            path="src/main.cpp",
            issues=[
                SingleLocationIssue(rule="r", message="suppressed", line=7),
                SingleLocationIssue(rule="r", message="reported", line=8),
            ],
            nosonar_lines={7},
        )
        _bridge(sink, project_dir).save_source_results([result])
        assert [i[3] for i in sink.issues] == ["reported"]

    def test_nosonar_on_primary_line_suppresses_multi_location_issue(self, project_dir):
        sink = RecordingSink()
        suppressed = MultiLocationIssue(
            rule="r",
            locations=[IssueLocation(line=7, message="suppressed"), IssueLocation(line=9, message="+1")],
        )
        reported = MultiLocationIssue(
            rule="r",
            locations=[IssueLocation(line=8, message="reported"), IssueLocation(line=7, message="+1")],
        )
        result = SourceFileResult(
            path="src/main.cpp",
            multi_location_issues=[suppressed, reported],
            nosonar_lines={7},
        )
        _bridge(sink, project_dir).save_source_results([result])
        assert [i[3] for i in sink.issues] == ["reported"]
        assert result.multi_location_issues == []


# ---------------------------------------------------------------------------
# MeasureStore
# ---------------------------------------------------------------------------

class TestMeasureStore:
    project = Unit(PROJECT, metrics.PROJECT)
    file = Unit(f"{PROJECT}:a.cpp", metrics.FILE)

    def test_saves_and_serializes(self):
        store = MeasureStore()
        store.save_metric(self.project, metrics.TESTS, 3)
        store.save_issue(
            RuleKey("cxx", "r"),
            self.file,
            [PersistedLocation(self.file, 4, "here"), PersistedLocation(self.file, 9, "and here")],
            "here",
        )
        assert store.to_dict() == {
            "measures": [{"component": PROJECT, "metric": "tests", "value": 3}],
            "issues": [{
                "rule": "cxx:r",
                "component": f"{PROJECT}:a.cpp",
                "message": "here",
                "primary_location": {"component": f"{PROJECT}:a.cpp", "line": 4, "message": "here"},
                "secondary_locations": [{"component": f"{PROJECT}:a.cpp", "line": 9, "message": "and here"}],
            }],
        }

    def test_rejects_duplicate_measure(self):
        store = MeasureStore()
        store.save_metric(self.file, metrics.NCLOC, 1)
        with pytest.raises(SinkRejectedError, match="same measure twice"):
            store.save_metric(self.file, metrics.NCLOC, 2)

    def test_rejects_file_metric_on_project(self):
        with pytest.raises(SinkRejectedError, match="cannot be saved"):
            MeasureStore().save_metric(self.project, metrics.NCLOC, 1)

    @pytest.mark.parametrize("value", [1.5, "3", True])
    def test_rejects_wrong_value_type(self, value):
        with pytest.raises(SinkRejectedError, match="expects int"):
            MeasureStore().save_metric(self.file, metrics.NCLOC, value)

    def test_rejects_unknown_metric(self):
        bogus = metrics.Metric("bogus", "Bogus", "core", frozenset({metrics.FILE}))
        with pytest.raises(SinkRejectedError, match="Unknown metric"):
            MeasureStore().save_metric(self.file, bogus, 1)

    def test_rollup_sums_core_file_measures_only(self):
        store = MeasureStore()
        other = Unit(f"{PROJECT}:b.cpp", metrics.FILE)
        store.save_metric(self.file, metrics.NCLOC, 10)
        store.save_metric(other, metrics.NCLOC, 5)
        store.save_metric(self.file, metrics.PUBLIC_API, 3)
        store.save_metric(self.project, metrics.TESTS, 4)
        assert store.rollup() == {"ncloc": 15}

    def test_rejects_issue_without_location(self):
        with pytest.raises(SinkRejectedError, match="no location"):
            MeasureStore().save_issue(RuleKey("cxx", "r"), self.file, [], "msg")
