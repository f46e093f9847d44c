"""Fold test case records into run-wide statistics.

Each record falls into exactly one bucket, checked in this order:
skipped, errored out, failed, passed. ``tests`` starts as the number of
records seen and has the skipped count removed at the end; the elapsed time
is summed over every record, skipped ones included.
"""

from dataclasses import replace
from functools import reduce
from typing import Iterable

from sonar_ingest.models import TestBatchStatistics, TestCaseRecord


def _fold(acc: TestBatchStatistics, record: TestCaseRecord) -> TestBatchStatistics:
    acc = replace(acc, tests=acc.tests + 1, time_ms=acc.time_ms + record.time_ms)
    if record.is_skipped:
        return replace(acc, skipped=acc.skipped + 1)
    if record.is_error:
        return replace(acc, errors=acc.errors + 1)
    if record.is_failure:
        return replace(acc, failures=acc.failures + 1)
    return acc


def aggregate(records: Iterable[TestCaseRecord]) -> TestBatchStatistics:
    seen = reduce(_fold, records, TestBatchStatistics())
    return replace(seen, tests=seen.tests - seen.skipped)
