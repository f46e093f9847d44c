"""Data models for the ingestion pipeline.

Contains the dataclasses that flow between stages:
    - Report, TestCaseRecord, TestBatchStatistics   (xUnit import)
    - RuleKey, IssueLocation, SingleLocationIssue,
      MultiLocationIssue, SourceFileResult          (source analysis import)
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Literal


# ---------------------------------------------------------------------------
# Reports and test results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Report:
    """A located report file; never mutated once discovered."""

    path: Path
    size: int
    encoding: str | None = None

    @classmethod
    def from_path(cls, path: Path | str, encoding: str | None = None) -> "Report":
        resolved = Path(path).resolve()
        return cls(path=resolved, size=resolved.stat().st_size, encoding=encoding)

    def __str__(self) -> str:
        return str(self.path)


class TestStatus(str, Enum):
    __test__ = False

    PASSED = "passed"
    FAILED = "failed"
    ERRORED_OUT = "erroredOut"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class TestCaseRecord:
    __test__ = False

    name: str
    status: TestStatus
    time_ms: int = 0
    classname: str | None = None
    message: str | None = None

    @property
    def is_skipped(self) -> bool:
        return self.status is TestStatus.SKIPPED

    @property
    def is_error(self) -> bool:
        return self.status is TestStatus.ERRORED_OUT

    @property
    def is_failure(self) -> bool:
        return self.status is TestStatus.FAILED


@dataclass(frozen=True)
class TestBatchStatistics:
    """Summary counters over every test case of one run.

    ``tests`` counts executed cases only; skipped cases are enumerated in
    ``skipped`` but excluded from ``tests``. ``time_ms`` covers all cases.
    """

    __test__ = False

    tests: int = 0
    errors: int = 0
    failures: int = 0
    skipped: int = 0
    time_ms: int = 0

    @property
    def publishable(self) -> bool:
        return self.tests > 0


# ---------------------------------------------------------------------------
# Issues
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RuleKey:
    repository: str
    rule: str

    @classmethod
    def parse(cls, value: str, default_repository: str) -> "RuleKey":
        """Accept ``repo:rule`` or a bare rule id."""
        repository, sep, rule = value.partition(":")
        if not sep:
            return cls(default_repository, value)
        return cls(repository, rule)

    def __str__(self) -> str:
        return f"{self.repository}:{self.rule}"


@dataclass(frozen=True)
class IssueLocation:
    """One flagged position. ``file`` of None means the owning source file."""

    line: int | None
    message: str = ""
    file: str | None = None


@dataclass
class SingleLocationIssue:
    rule: str
    message: str
    line: int | None = None
    kind: Literal["single"] = "single"


@dataclass
class MultiLocationIssue:
    rule: str
    locations: list[IssueLocation]
    kind: Literal["multi"] = "multi"

    @property
    def message(self) -> str:
        return self.locations[0].message if self.locations else ""

    @property
    def line(self) -> int | None:
        return self.locations[0].line if self.locations else None


Issue = SingleLocationIssue | MultiLocationIssue


@dataclass
class SourceFileResult:
    """Everything the upstream analyzer produced for one source file."""

    path: str
    measures: dict[str, int] = field(default_factory=dict)
    issues: list[SingleLocationIssue] = field(default_factory=list)
    multi_location_issues: list[MultiLocationIssue] = field(default_factory=list)
    nosonar_lines: set[int] = field(default_factory=set)
