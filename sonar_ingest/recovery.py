"""Strict / tolerant error recovery.

Usage:
    policy = ErrorRecoveryPolicy(tolerant=True)
    attempt = policy.attempt(lambda: parse(report), what=f"report '{report}'")
    if attempt.succeeded:
        ...

    with policy.group("measures of 'a.cpp'") as group:
        for metric in metrics:
            group.attempt(lambda: sink.save_metric(...), what=metric.key)

``attempt`` returns a structured outcome instead of raising under tolerant
mode. Under strict mode every failure except an empty report propagates.
A ``group`` lets every sibling in the group run and raises the first
failure once the group is complete.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Generic, TypeVar

from sonar_ingest.errors import EmptyReportError, PipelineError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Outcome(str, Enum):
    SUCCEEDED = "succeeded"
    EMPTY = "empty"
    RECOVERED = "recovered"


@dataclass(frozen=True)
class Attempt(Generic[T]):
    outcome: Outcome
    value: T | None = None
    error: PipelineError | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is Outcome.SUCCEEDED


@dataclass(frozen=True)
class ErrorRecoveryPolicy:
    tolerant: bool = True

    @property
    def mode(self) -> str:
        return "tolerant" if self.tolerant else "strict"

    def attempt(self, action: Callable[[], T], what: str) -> Attempt[T]:
        """Run *action* and classify the result.

        Raises:
            PipelineError: under strict mode, for anything but an empty report.
        """
        try:
            return Attempt(Outcome.SUCCEEDED, value=action())
        except EmptyReportError as exc:
            logger.warning("The report '%s' seems to be empty, ignoring.", exc.report)
            return Attempt(Outcome.EMPTY, error=exc)
        except PipelineError as exc:
            logger.error("Cannot import %s, details: '%s'", what, exc)
            if not self.tolerant:
                raise
            return Attempt(Outcome.RECOVERED, error=exc)

    def group(self, name: str) -> "FailureGroup":
        return FailureGroup(self, name)


@dataclass
class FailureGroup:
    """Collects failures of sibling saves and applies the policy on exit."""

    policy: ErrorRecoveryPolicy
    name: str
    failures: list[PipelineError] = field(default_factory=list)

    def attempt(self, action: Callable[[], T], what: str) -> Attempt[T]:
        attempt = ErrorRecoveryPolicy(tolerant=True).attempt(action, what)
        if attempt.error is not None and attempt.outcome is Outcome.RECOVERED:
            self.failures.append(attempt.error)
        return attempt

    def __enter__(self) -> "FailureGroup":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc is not None or not self.failures:
            return
        if not self.policy.tolerant:
            logger.error(
                "%d failure(s) while saving %s, aborting (strict mode)",
                len(self.failures), self.name,
            )
            raise self.failures[0]
