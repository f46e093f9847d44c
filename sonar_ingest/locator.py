"""Resolve report path patterns to report files.

Patterns are glob expressions (``**`` matches any number of directories)
relative to the project base directory; absolute patterns are used as-is.
"""

import glob
import logging
from pathlib import Path

from sonar_ingest.models import Report

logger = logging.getLogger(__name__)


def locate_reports(
    base_dir: Path | str,
    patterns: list[str],
    encoding: str | None = None,
) -> list[Report]:
    """Return the reports matching *patterns*, in pattern order.

    Matches of a single pattern are sorted; a file matched by several
    patterns is reported once, at its first position.
    """
    base = Path(base_dir).resolve()
    seen: set[Path] = set()
    reports: list[Report] = []

    for pattern in patterns:
        pattern = pattern.strip()
        if not pattern:
            continue
        full = pattern if Path(pattern).is_absolute() else str(base / pattern)
        matches = sorted(Path(p).resolve() for p in glob.glob(full, recursive=True))
        files = [p for p in matches if p.is_file()]
        if not files:
            logger.warning("Cannot find any report matching '%s' (base dir '%s')", pattern, base)
            continue
        for path in files:
            if path in seen:
                continue
            seen.add(path)
            reports.append(Report.from_path(path, encoding=encoding))

    logger.debug("Located %d report(s)", len(reports))
    return reports
