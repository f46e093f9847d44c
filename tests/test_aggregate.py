"""Tests for reports/aggregate.py"""

from sonar_ingest.models import TestBatchStatistics, TestCaseRecord, TestStatus
from sonar_ingest.reports.aggregate import aggregate


def _record(status: TestStatus, time_ms: int = 0, name: str = "t") -> TestCaseRecord:
    return TestCaseRecord(name=name, status=status, time_ms=time_ms)


def test_empty_input_gives_zero_statistics():
    stats = aggregate([])
    assert stats == TestBatchStatistics()
    assert not stats.publishable


def test_mixed_run():
    records = [
        _record(TestStatus.PASSED, 10),
        _record(TestStatus.PASSED, 20),
        _record(TestStatus.FAILED, 5),
        _record(TestStatus.SKIPPED, 7),
        _record(TestStatus.PASSED, 3),
    ]
    stats = aggregate(records)
    assert stats == TestBatchStatistics(tests=4, errors=0, failures=1, skipped=1, time_ms=45)


def test_each_record_counts_in_one_bucket():
    records = [
        _record(TestStatus.ERRORED_OUT, 1),
        _record(TestStatus.ERRORED_OUT, 1),
        _record(TestStatus.FAILED, 1),
        _record(TestStatus.PASSED, 1),
    ]
    stats = aggregate(records)
    assert stats.tests == 4
    assert stats.errors == 2
    assert stats.failures == 1
    assert stats.skipped == 0
    assert stats.time_ms == 4


def test_only_skipped_records_are_not_publishable():
    stats = aggregate([_record(TestStatus.SKIPPED, 2), _record(TestStatus.SKIPPED, 3)])
    assert stats.tests == 0
    assert stats.skipped == 2
    assert stats.time_ms == 5
    assert not stats.publishable


def test_accepts_any_iterable():
    stats = aggregate(_record(TestStatus.PASSED, i) for i in range(3))
    assert stats.tests == 3
    assert stats.time_ms == 3
