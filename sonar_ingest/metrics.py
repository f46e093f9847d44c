"""Metric catalogue.

Core metrics are rolled up by the measure store across the project
hierarchy. Derived metrics are computed per file by the analyzer and are
never rolled up, so they must not be published for unanalyzed units.
"""

from dataclasses import dataclass
from typing import Literal

FILE = "FIL"
PROJECT = "TRK"


@dataclass(frozen=True)
class Metric:
    key: str
    name: str
    kind: Literal["core", "derived"]
    qualifiers: frozenset[str]
    value_type: type = int


def _core(key: str, name: str, *qualifiers: str) -> Metric:
    return Metric(key, name, "core", frozenset(qualifiers or (FILE,)))


def _derived(key: str, name: str) -> Metric:
    return Metric(key, name, "derived", frozenset((FILE,)))


# Source metrics, saved on every analyzed file
NCLOC = _core("ncloc", "Lines of code")
STATEMENTS = _core("statements", "Statements")
FUNCTIONS = _core("functions", "Functions")
CLASSES = _core("classes", "Classes")
COMPLEXITY = _core("complexity", "Cyclomatic complexity")
COGNITIVE_COMPLEXITY = _core("cognitive_complexity", "Cognitive complexity")
COMMENT_LINES = _core("comment_lines", "Comment lines")

PUBLIC_API = _derived("public_api", "Public API")
PUBLIC_UNDOCUMENTED_API = _derived("public_undocumented_api", "Public undocumented API")
COMPLEX_FUNCTIONS = _derived("complex_functions", "Complex functions")
COMPLEX_FUNCTIONS_LOC = _derived("complex_functions_loc", "Complex functions lines of code")
LOC_IN_FUNCTIONS = _derived("loc_in_functions", "Lines of code in functions")
BIG_FUNCTIONS = _derived("big_functions", "Big functions")
BIG_FUNCTIONS_LOC = _derived("big_functions_loc", "Big functions lines of code")

# Test execution metrics, saved on the project
TESTS = _core("tests", "Unit tests", FILE, PROJECT)
TEST_ERRORS = _core("test_errors", "Unit test errors", FILE, PROJECT)
TEST_FAILURES = _core("test_failures", "Unit test failures", FILE, PROJECT)
SKIPPED_TESTS = _core("skipped_tests", "Skipped unit tests", FILE, PROJECT)
TEST_EXECUTION_TIME = _core("test_execution_time", "Unit test duration (ms)", FILE, PROJECT)

SOURCE_METRICS: tuple[Metric, ...] = (
    NCLOC,
    STATEMENTS,
    FUNCTIONS,
    CLASSES,
    COMPLEXITY,
    COGNITIVE_COMPLEXITY,
    COMMENT_LINES,
    PUBLIC_API,
    PUBLIC_UNDOCUMENTED_API,
    COMPLEX_FUNCTIONS,
    COMPLEX_FUNCTIONS_LOC,
    LOC_IN_FUNCTIONS,
    BIG_FUNCTIONS,
    BIG_FUNCTIONS_LOC,
)

TEST_METRICS: tuple[Metric, ...] = (
    TESTS,
    TEST_ERRORS,
    TEST_FAILURES,
    SKIPPED_TESTS,
    TEST_EXECUTION_TIME,
)

ALL_METRICS: dict[str, Metric] = {m.key: m for m in SOURCE_METRICS + TEST_METRICS}
