"""Run every located report through transformation and parsing.

Reports are processed one at a time in discovery order. The records of a
report are only added to the batch once the whole report parsed cleanly,
so a report that fails half-way contributes nothing.
"""

import logging
from dataclasses import dataclass, field

from sonar_ingest.models import Report, TestCaseRecord
from sonar_ingest.recovery import ErrorRecoveryPolicy, Outcome
from sonar_ingest.reports.parser import parse_report
from sonar_ingest.reports.transform import FormatTransformer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReportOutcome:
    report: Report
    outcome: Outcome
    records: int = 0
    error: str | None = None


@dataclass
class BatchResult:
    records: list[TestCaseRecord] = field(default_factory=list)
    outcomes: list[ReportOutcome] = field(default_factory=list)

    @property
    def failed(self) -> list[ReportOutcome]:
        return [o for o in self.outcomes if o.outcome is Outcome.RECOVERED]


def process_reports(
    reports: list[Report],
    policy: ErrorRecoveryPolicy,
    transformer: FormatTransformer | None = None,
) -> BatchResult:
    """Parse *reports* into one record list plus a per-report outcome log.

    Raises:
        PipelineError: under strict mode, on the first report that fails.
    """
    transformer = transformer or FormatTransformer()
    result = BatchResult()

    for report in reports:
        logger.info("Processing report '%s'", report)
        attempt = policy.attempt(
            lambda: list(parse_report(transformer.transform(report))),
            what=f"report '{report}'",
        )
        records = attempt.value or []
        result.records.extend(records)
        result.outcomes.append(
            ReportOutcome(
                report=report,
                outcome=attempt.outcome,
                records=len(records),
                error=str(attempt.error) if attempt.error is not None else None,
            )
        )

    if result.failed:
        logger.warning("%d of %d report(s) skipped because of errors", len(result.failed), len(reports))
    return result
