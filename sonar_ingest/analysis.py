"""Load the source analysis result set produced by the analyzer.

Expected JSON shape::

    {
      "files": [
        {
          "path": "src/main.cpp",
          "measures": {"ncloc": 120, "complexity": 14},
          "nosonar_lines": [42],
          "issues": [
            {"rule": "TooManyLines", "line": 0, "message": "File has 1200 lines"}
          ],
          "multi_location_issues": [
            {"rule": "FunctionComplexity",
             "locations": [
               {"line": 10, "message": "Complexity is 25"},
               {"line": 12, "message": "+1: if"}
             ]}
          ]
        }
      ]
    }
"""

import json
from pathlib import Path
from typing import Any

from sonar_ingest.errors import EmptyReportError, MalformedReportError, ValueDomainError
from sonar_ingest.models import (
    IssueLocation,
    MultiLocationIssue,
    SingleLocationIssue,
    SourceFileResult,
)


def load_results(path: Path | str) -> list[SourceFileResult]:
    """Read the result set at *path*.

    Raises:
        EmptyReportError:     the file is empty
        MalformedReportError: unreadable, not JSON, or unexpected shape
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise MalformedReportError(path, f"cannot read: {exc}") from exc
    if not text.strip():
        raise EmptyReportError(path)
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedReportError(path, f"invalid JSON: {exc}") from exc

    files = raw.get("files") if isinstance(raw, dict) else None
    if not isinstance(files, list):
        raise MalformedReportError(path, "expected an object with a 'files' array")
    return [_file_result(path, index, entry) for index, entry in enumerate(files)]


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _file_result(source: Path, index: int, entry: Any) -> SourceFileResult:
    where = f"files[{index}]"
    if not isinstance(entry, dict) or not isinstance(entry.get("path"), str):
        raise MalformedReportError(source, f"{where} must be an object with a 'path' string")

    measures = entry.get("measures") or {}
    if not isinstance(measures, dict):
        raise MalformedReportError(source, f"{where}.measures must be an object")
    for key, value in measures.items():
        if not _is_int(value) or value < 0:
            raise ValueDomainError(source, f"{where}.measures.{key} must be a non-negative integer")

    return SourceFileResult(
        path=entry["path"],
        measures=dict(measures),
        issues=[
            SingleLocationIssue(
                rule=_rule(source, f"{where}.issues[{i}]", issue),
                message=str(issue.get("message", "")),
                line=_line(source, f"{where}.issues[{i}]", issue.get("line")),
            )
            for i, issue in enumerate(_list(source, where, entry, "issues"))
        ],
        multi_location_issues=[
            MultiLocationIssue(
                rule=_rule(source, f"{where}.multi_location_issues[{i}]", issue),
                locations=[
                    IssueLocation(
                        line=_line(source, f"{where}.multi_location_issues[{i}]", loc.get("line")),
                        message=str(loc.get("message", "")),
                        file=loc.get("file"),
                    )
                    for loc in _list(source, f"{where}.multi_location_issues[{i}]", issue, "locations")
                ],
            )
            for i, issue in enumerate(_list(source, where, entry, "multi_location_issues"))
        ],
        nosonar_lines={
            _line(source, f"{where}.nosonar_lines", line)
            for line in _list(source, where, entry, "nosonar_lines", objects=False)
        },
    )


def _list(source: Path, where: str, entry: dict, key: str, objects: bool = True) -> list:
    value = entry.get(key) or []
    if not isinstance(value, list) or (objects and not all(isinstance(v, dict) for v in value)):
        kind = "an array of objects" if objects else "an array"
        raise MalformedReportError(source, f"{where}.{key} must be {kind}")
    return value


def _rule(source: Path, where: str, issue: dict) -> str:
    rule = issue.get("rule")
    if not isinstance(rule, str) or not rule:
        raise MalformedReportError(source, f"{where} has no 'rule'")
    return rule


def _line(source: Path, where: str, value: Any) -> int | None:
    if value is None:
        return None
    if not _is_int(value):
        raise ValueDomainError(source, f"{where}: line {value!r} is not an integer")
    return value


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)
