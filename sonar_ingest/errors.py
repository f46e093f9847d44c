"""Error taxonomy shared by every pipeline stage.

    PipelineError
    ├── EmptyReportError        report resolved to zero bytes (never fatal)
    ├── MalformedReportError    structural parse failure
    │   └── ValueDomainError    well-formed field with an invalid value
    ├── TransformError          stylesheet could not produce a canonical report
    ├── SinkRejectedError       measure/issue store refused a submission
    └── UnresolvedFileError     path does not map to a project file
"""

from pathlib import Path


class PipelineError(Exception):
    """Base exception for all ingestion errors."""


# ---------------------------------------------------------------------------
# Report errors
# ---------------------------------------------------------------------------

class ReportError(PipelineError):
    """A failure tied to one report file."""

    def __init__(self, report: Path | str, detail: str) -> None:
        self.report = Path(report)
        self.detail = detail
        super().__init__(f"{self.report}: {detail}")


class EmptyReportError(ReportError):
    """Raised when a report holds no content at all."""

    def __init__(self, report: Path | str) -> None:
        super().__init__(report, "report is empty")


class MalformedReportError(ReportError):
    """Raised on bad markup, unexpected elements or bad encoding."""


class ValueDomainError(MalformedReportError):
    """Raised when an attribute parses but its value is out of range."""


class TransformError(ReportError):
    """Raised when the stylesheet step cannot produce a canonical report."""


# ---------------------------------------------------------------------------
# Persistence errors
# ---------------------------------------------------------------------------

class SinkRejectedError(PipelineError):
    """Raised by a sink that refuses a metric or issue submission."""


class UnresolvedFileError(PipelineError):
    """Raised when an analysis path cannot be mapped to a project file."""
